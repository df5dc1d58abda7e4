"""Shared abstract base classes for outbound collaborators."""

from .base import BaseChatAgent, BaseEmailAgent

__all__ = [
    "BaseChatAgent",
    "BaseEmailAgent",
]
