"""Abstract base classes for outbound collaborator extension points."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from schemas.contact import ChatTurn
from schemas.email import EmailEnvelope


class BaseEmailAgent(ABC):
    """Contract for agents that hand one email to a delivery service."""

    #: Human readable transport description used in status reports.
    method: str = "unknown"

    @abstractmethod
    async def send(self, envelope: EmailEnvelope) -> Optional[str]:
        """Submit *envelope* exactly once.

        Returns the provider's message identifier when available and raises
        :class:`utils.errors.EmailDeliveryError` on failure. Implementations
        must not retry; retrying belongs to the dispatcher.
        """

    async def aclose(self) -> None:
        """Release transport resources. Optional for stateless agents."""


class BaseChatAgent(ABC):
    """Contract for agents that request one generated reply."""

    @abstractmethod
    async def generate(
        self, message: str, history: Sequence[ChatTurn] = ()
    ) -> str:
        """Return generated text for *message*, raising
        :class:`utils.errors.ChatGenerationError` on failure."""

    async def aclose(self) -> None:
        """Release transport resources. Optional for stateless agents."""
