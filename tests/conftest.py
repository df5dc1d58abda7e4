"""Test configuration helpers and shared fixtures."""

from __future__ import annotations

import os
import sys
from collections import defaultdict
from pathlib import Path
from typing import Iterable, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("SETTINGS_SKIP_DOTENV", "1")

from agents.interfaces import BaseEmailAgent  # noqa: E402

# Variables read by config.config; cleared so a developer's shell does not leak in.
CONFIG_ENV_VARS = (
    "ADMIN_EMAIL",
    "APP_ENV",
    "BACKEND_URL",
    "BREVO_API_KEY",
    "BREVO_API_URL",
    "BREVO_FROM_EMAIL",
    "BREVO_FROM_NAME",
    "CHAT_RETRY_ATTEMPTS",
    "COMPANY_NAME",
    "EMAIL_BACKEND",
    "EMAIL_RETRY_ATTEMPTS",
    "EMAIL_RETRY_BASE_DELAY",
    "EMAIL_RETRY_MULTIPLIER",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "MAIL_FROM",
    "MAIL_FROM_NAME",
    "NODE_ENV",
    "PORT",
    "SMTP_HOST",
    "SMTP_PASS",
    "SMTP_PASSWORD",
    "SMTP_PORT",
    "SMTP_USER",
    "SMTP_USERNAME",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every configuration variable and disable ``.env`` loading."""

    monkeypatch.setenv("SETTINGS_SKIP_DOTENV", "1")
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def isolated_agent_registry(monkeypatch):
    """Provide an isolated registry for agent factory tests.

    The production registry is populated at import time by the built-in
    agent modules. For deterministic tests we swap it out with an empty
    registry that is restored automatically once the test completes.
    """

    from agents import factory

    registry = defaultdict(dict)
    monkeypatch.setattr(factory, "_REGISTRY", registry)
    monkeypatch.setattr(factory, "_DEFAULTS", {})
    return registry


class FakeSleep:
    """Records requested waits instead of sleeping."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(float(seconds))


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


class RecordingEmailAgent(BaseEmailAgent):
    """Email agent double that raises the scripted errors before succeeding."""

    method = "Recording transport"

    def __init__(self, failures: Optional[Iterable[Exception]] = None) -> None:
        self.sent = []
        self.calls = 0
        self.closed = False
        self._failures = list(failures or [])

    async def send(self, envelope):
        self.calls += 1
        if self._failures:
            raise self._failures.pop(0)
        self.sent.append(envelope)
        return f"<msg-{self.calls}@test>"

    async def aclose(self) -> None:
        self.closed = True



@pytest.fixture
def make_email_agent():
    """Build :class:`RecordingEmailAgent` instances with scripted failures."""

    def _make(*failures: Exception) -> RecordingEmailAgent:
        return RecordingEmailAgent(failures)

    return _make
