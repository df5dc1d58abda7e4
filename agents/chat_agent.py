"""Chatbot proxy backed by the Gemini ``generateContent`` REST endpoint."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from agents.factory import register_agent
from agents.interfaces import BaseChatAgent
from schemas.contact import ChatTurn
from utils.async_http import AsyncHTTP, error_detail
from utils.errors import ChatGenerationError

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_BASE = "https://generativelanguage.googleapis.com"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"

_ROLE_MAP = {"user": "user", "assistant": "model"}


@register_agent(BaseChatAgent, "gemini", "default", is_default=True)
class GeminiChatAgent(BaseChatAgent):
    """Request one generated reply per call. Never retries on its own."""

    _ENDPOINT = "/v1beta/models/{model}:generateContent"

    def __init__(
        self,
        *,
        api_key: str,
        system_prompt: str = "",
        model: str = DEFAULT_GEMINI_MODEL,
        api_base: str = DEFAULT_GEMINI_BASE,
        timeout: float = 30.0,
        temperature: float = 0.7,
        max_output_tokens: int = 1024,
        http: Optional[AsyncHTTP] = None,
    ) -> None:
        if not api_key:
            raise ValueError("Gemini API key is required")
        self.api_key = api_key
        self.system_prompt = system_prompt.strip()
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._http = http or AsyncHTTP(base_url=api_base, timeout=timeout)

    def build_payload(
        self, message: str, history: Sequence[ChatTurn] = ()
    ) -> Dict[str, Any]:
        contents: List[Dict[str, Any]] = [
            {"role": _ROLE_MAP[turn.role], "parts": [{"text": turn.content}]}
            for turn in history
        ]
        prompt = f"User Question: {message}\n\nPlease provide a helpful response."
        if self.system_prompt:
            prompt = f"{self.system_prompt}\n\n{prompt}"
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        return {
            "contents": contents,
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    async def generate(self, message: str, history: Sequence[ChatTurn] = ()) -> str:
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        try:
            response = await self._http.post(
                self._ENDPOINT.format(model=self.model),
                headers=headers,
                json=self.build_payload(message, history),
            )
        except httpx.HTTPError as exc:
            raise ChatGenerationError(f"Gemini request failed: {exc}") from exc

        if not response.is_success:
            raise ChatGenerationError(
                f"Gemini API error: {response.status_code} - {error_detail(response)}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ChatGenerationError("Gemini returned a non-JSON response") from exc
        return _extract_text(data)

    async def aclose(self) -> None:
        await self._http.aclose()


def _extract_text(data: Any) -> str:
    if not isinstance(data, Mapping):
        raise ChatGenerationError("Gemini returned an unexpected payload")

    candidates = data.get("candidates") or []
    if not candidates:
        feedback = data.get("promptFeedback") or {}
        reason = feedback.get("blockReason") if isinstance(feedback, Mapping) else None
        raise ChatGenerationError(
            f"Gemini returned no candidates (blocked: {reason})"
            if reason
            else "Gemini returned no candidates"
        )

    content = candidates[0].get("content") or {}
    parts = content.get("parts") or []
    text = "".join(
        str(part.get("text", "")) for part in parts if isinstance(part, Mapping)
    ).strip()
    if not text:
        finish = candidates[0].get("finishReason")
        raise ChatGenerationError(f"Gemini returned an empty reply (finishReason={finish})")
    return text
