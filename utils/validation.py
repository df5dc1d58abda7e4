"""Validation helpers for contact-form and chat payloads."""

from __future__ import annotations

import re
from typing import Any, Mapping

from pydantic import ValidationError

from schemas.contact import ChatRequest, ContactSubmission

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[\d\s\-\+\(\)]+$")

MIN_PHONE_LENGTH = 10
MAX_CHAT_MESSAGE_LENGTH = 2000
MAX_CHAT_HISTORY = 20

CONTACT_FIELDS = ("name", "email", "phone", "message")


class InvalidSubmissionError(ValueError):
    """Raised when an inbound payload fails validation. The message is user-facing."""


def _squash_internal_whitespace(text: str) -> str:
    """Collapse repeated whitespace into single spaces and strip the result."""

    return re.sub(r"\s+", " ", text).strip()


def _field_text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        return ""
    return str(value).strip()


def is_valid_email(value: str | None) -> bool:
    return bool(value) and bool(EMAIL_RE.match(value))


def is_valid_phone(value: str | None) -> bool:
    if not value or len(value) < MIN_PHONE_LENGTH:
        return False
    return bool(PHONE_RE.match(value))


def validate_contact(payload: Any) -> ContactSubmission:
    """Return a :class:`ContactSubmission` or raise :class:`InvalidSubmissionError`."""

    if not isinstance(payload, Mapping):
        raise InvalidSubmissionError("All fields are required")

    values = {key: _field_text(payload, key) for key in CONTACT_FIELDS}
    if not all(values.values()):
        raise InvalidSubmissionError("All fields are required")

    values["name"] = _squash_internal_whitespace(values["name"])

    if not is_valid_email(values["email"]):
        raise InvalidSubmissionError("Invalid email format")

    if not is_valid_phone(values["phone"]):
        raise InvalidSubmissionError("Invalid phone number. Must be at least 10 digits.")

    return ContactSubmission(**values)


def validate_chat(payload: Any) -> ChatRequest:
    """Return a :class:`ChatRequest` or raise :class:`InvalidSubmissionError`."""

    if not isinstance(payload, Mapping):
        raise InvalidSubmissionError("Message is required")

    message = _field_text(payload, "message")
    if not message:
        raise InvalidSubmissionError("Message is required")
    if len(message) > MAX_CHAT_MESSAGE_LENGTH:
        raise InvalidSubmissionError(
            f"Message is too long (maximum {MAX_CHAT_MESSAGE_LENGTH} characters)"
        )

    history = payload.get("history") or []
    if not isinstance(history, list):
        raise InvalidSubmissionError("History must be a list of messages")

    try:
        request = ChatRequest(message=message, history=history[-MAX_CHAT_HISTORY:])
    except ValidationError as exc:
        raise InvalidSubmissionError("History contains an invalid message") from exc
    return request


__all__ = [
    "InvalidSubmissionError",
    "is_valid_email",
    "is_valid_phone",
    "validate_chat",
    "validate_contact",
]
