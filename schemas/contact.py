"""Schemas describing inbound contact-form and chat payloads."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field


class ContactSubmission(BaseModel):
    """A validated contact-form submission."""

    name: str
    email: str
    phone: str
    message: str


class ChatTurn(BaseModel):
    """One prior exchange in a chat conversation."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str
    history: List[ChatTurn] = Field(default_factory=list)


__all__ = ["ChatRequest", "ChatTurn", "ContactSubmission"]
