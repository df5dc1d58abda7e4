"""Transport-neutral description of one outbound email."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class EmailAddress:
    email: str
    name: Optional[str] = None

    def formatted(self) -> str:
        return f"{self.name} <{self.email}>" if self.name else self.email

    def as_dict(self) -> Dict[str, str]:
        data = {"email": self.email}
        if self.name:
            data["name"] = self.name
        return data


@dataclass(frozen=True)
class EmailEnvelope:
    sender: EmailAddress
    to: Tuple[EmailAddress, ...]
    subject: str
    html_content: str
    text_content: str
    reply_to: Optional[EmailAddress] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.to:
            raise ValueError("EmailEnvelope requires at least one recipient")

    @property
    def recipients(self) -> Tuple[str, ...]:
        return tuple(address.email for address in self.to)

    def to_brevo_payload(self) -> Dict[str, Any]:
        """Body accepted by the Brevo transactional email endpoint."""

        payload: Dict[str, Any] = {
            "sender": self.sender.as_dict(),
            "to": [address.as_dict() for address in self.to],
            "subject": self.subject,
            "htmlContent": self.html_content,
            "textContent": self.text_content,
        }
        if self.reply_to is not None:
            payload["replyTo"] = self.reply_to.as_dict()
        if self.tags:
            payload["tags"] = list(self.tags)
        return payload


__all__ = ["EmailAddress", "EmailEnvelope"]
