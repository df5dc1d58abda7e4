"""End-to-end tests for the aiohttp application."""

from __future__ import annotations

import pytest
import pytest_asyncio
from aiohttp import test_utils

from agents.interfaces import BaseChatAgent
from config.config import Settings
from utils.errors import ChatGenerationError, EmailDeliveryError
from web.app import create_app

CONTACT = {
    "name": "Jane Doe",
    "email": "jane@example.org",
    "phone": "+1 (555) 123-4567",
    "message": "Please call me back.",
}


class FakeChatAgent(BaseChatAgent):
    def __init__(self, *replies) -> None:
        self.replies = list(replies)
        self.prompts = []
        self.closed = False

    async def generate(self, message, history=()):
        self.prompts.append((message, list(history)))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def aclose(self) -> None:
        self.closed = True


def _settings(*, email: bool = True, chat: bool = False, **overrides) -> Settings:
    values = dict(
        company_name="Example Labs",
        email_backend="brevo",
        brevo_api_key="xkeysib-test" if email else None,
        from_email="noreply@example.com" if email else None,
        from_name="Example Labs" if email else None,
        admin_email="admin@example.com",
        gemini_api_key="g-key" if chat else None,
        email_retry_base_delay=0.0,
        chat_retry_attempts=1,
    )
    values.update(overrides)
    return Settings(**values)


@pytest_asyncio.fixture
async def make_client():
    clients = []

    async def _make(settings: Settings, **kwargs) -> test_utils.TestClient:
        server = test_utils.TestServer(create_app(settings, **kwargs))
        client = test_utils.TestClient(server)
        await client.start_server()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.close()


@pytest.mark.asyncio
async def test_root_and_ping(make_client, make_email_agent):
    client = await make_client(_settings(), email_agent=make_email_agent())

    root = await client.get("/")
    assert (await root.json())["status"] == "running"

    first = await (await client.get("/api/ping")).json()
    second = await (await client.get("/api/ping")).json()
    assert first["status"] == "alive"
    assert [first["pings"], second["pings"]] == [1, 2]


@pytest.mark.asyncio
async def test_health_reports_configuration(make_client):
    client = await make_client(_settings(email=False))

    await client.get("/api/ping")
    response = await client.get("/api/health")
    body = await response.json()

    assert response.status == 200
    assert body["status"] == "ok"
    assert body["emailService"] == "not configured"
    assert body["missingVars"] == ["BREVO_API_KEY", "BREVO_FROM_EMAIL", "BREVO_FROM_NAME"]
    assert body["chatService"] == "not configured"
    assert body["pings"] == 1


@pytest.mark.asyncio
async def test_contact_sends_admin_and_auto_reply(make_client, make_email_agent):
    agent = make_email_agent()
    client = await make_client(_settings(), email_agent=agent)

    response = await client.post("/api/contact", json=CONTACT)

    assert response.status == 200
    assert await response.json() == {"success": True, "message": "Email sent successfully!"}
    recipients = sorted(envelope.recipients[0] for envelope in agent.sent)
    assert recipients == ["admin@example.com", "jane@example.org"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({**CONTACT, "name": ""}, "All fields are required"),
        ({**CONTACT, "email": "jane@"}, "Invalid email format"),
        ({**CONTACT, "phone": "123"}, "Invalid phone number. Must be at least 10 digits."),
    ],
)
async def test_contact_validation_errors(make_client, make_email_agent, payload, message):
    agent = make_email_agent()
    client = await make_client(_settings(), email_agent=agent)

    response = await client.post("/api/contact", json=payload)

    assert response.status == 400
    assert await response.json() == {"success": False, "message": message}
    assert agent.calls == 0


@pytest.mark.asyncio
async def test_contact_rejects_malformed_json(make_client, make_email_agent):
    client = await make_client(_settings(), email_agent=make_email_agent())

    response = await client.post(
        "/api/contact", data="{not json", headers={"Content-Type": "application/json"}
    )

    assert response.status == 400
    assert (await response.json())["message"] == "Request body must be valid JSON"


@pytest.mark.asyncio
async def test_contact_without_email_configuration(make_client):
    client = await make_client(_settings(email=False))

    response = await client.post("/api/contact", json=CONTACT)

    assert response.status == 500
    assert "not configured" in (await response.json())["message"]


@pytest.mark.asyncio
async def test_contact_delivery_failure_after_retries(make_client, make_email_agent):
    agent = make_email_agent(
        *(EmailDeliveryError("Brevo API error: 500 - down") for _ in range(6))
    )
    client = await make_client(_settings(), email_agent=agent)

    response = await client.post("/api/contact", json=CONTACT)

    assert response.status == 500
    assert await response.json() == {
        "success": False,
        "message": "Failed to send email. Please try again later.",
    }
    assert agent.calls == 6


@pytest.mark.asyncio
async def test_chat_returns_reply(make_client):
    chat = FakeChatAgent("We build AI products.")
    client = await make_client(_settings(chat=True), chat_agent=chat)

    response = await client.post(
        "/api/chat",
        json={
            "message": "What do you do?",
            "history": [{"role": "user", "content": "Hi"}],
        },
    )

    assert response.status == 200
    assert await response.json() == {"success": True, "reply": "We build AI products."}
    message, history = chat.prompts[0]
    assert message == "What do you do?"
    assert history[0].content == "Hi"


@pytest.mark.asyncio
async def test_chat_is_not_retried_by_default(make_client):
    chat = FakeChatAgent(ChatGenerationError("quota"), "unused")
    client = await make_client(_settings(chat=True), chat_agent=chat)

    response = await client.post("/api/chat", json={"message": "hello"})

    assert response.status == 500
    assert len(chat.prompts) == 1


@pytest.mark.asyncio
async def test_chat_retry_is_configurable(make_client, monkeypatch):
    chat = FakeChatAgent(ChatGenerationError("quota"), "second time lucky")
    settings = _settings(chat=True, chat_retry_attempts=2)
    monkeypatch.setattr("config.config.INITIAL_BACKOFF_SECONDS", 0.0)
    client = await make_client(settings, chat_agent=chat)

    response = await client.post("/api/chat", json={"message": "hello"})

    assert response.status == 200
    assert (await response.json())["reply"] == "second time lucky"


@pytest.mark.asyncio
async def test_chat_unavailable_without_api_key(make_client):
    client = await make_client(_settings(chat=False))

    response = await client.post("/api/chat", json={"message": "hello"})

    assert response.status == 503


@pytest.mark.asyncio
async def test_chat_validation(make_client):
    client = await make_client(_settings(chat=True), chat_agent=FakeChatAgent())

    response = await client.post("/api/chat", json={"message": ""})

    assert response.status == 400
    assert (await response.json())["message"] == "Message is required"


@pytest.mark.asyncio
async def test_test_email_reports_missing_configuration(make_client):
    client = await make_client(_settings(email=False))

    response = await client.get("/api/test-email")
    body = await response.json()

    assert response.status == 500
    assert body["message"] == "Email not configured"
    assert body["missingVars"] == ["BREVO_API_KEY", "BREVO_FROM_EMAIL", "BREVO_FROM_NAME"]


@pytest.mark.asyncio
async def test_test_email_success(make_client, make_email_agent):
    agent = make_email_agent()
    client = await make_client(_settings(), email_agent=agent)

    response = await client.get("/api/test-email")
    body = await response.json()

    assert response.status == 200
    assert body["success"] is True
    assert body["config"] == {
        "method": "Recording transport",
        "from": "noreply@example.com",
        "attempts": 1,
    }
    assert agent.sent[0].recipients == ("admin@example.com",)


@pytest.mark.asyncio
async def test_cors_and_request_id_headers(make_client, make_email_agent):
    client = await make_client(_settings(), email_agent=make_email_agent())

    response = await client.get("/api/ping", headers={"X-Request-ID": "req-from-test"})
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert response.headers["X-Request-ID"] == "req-from-test"

    generated = await client.get("/api/health")
    assert generated.headers["X-Request-ID"].startswith("req-")

    preflight = await client.options(
        "/api/contact",
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert preflight.status == 204
    assert "POST" in preflight.headers["Access-Control-Allow-Methods"]


@pytest.mark.asyncio
async def test_unknown_route_is_404(make_client):
    client = await make_client(_settings(email=False))

    response = await client.get("/api/nope")

    assert response.status == 404
    assert response.headers["Access-Control-Allow-Origin"] == "*"


@pytest.mark.asyncio
async def test_cleanup_closes_agents(make_email_agent):
    agent = make_email_agent()
    chat = FakeChatAgent()
    app = create_app(_settings(chat=True), email_agent=agent, chat_agent=chat)
    client = test_utils.TestClient(test_utils.TestServer(app))
    await client.start_server()
    await client.close()

    assert agent.closed
    assert chat.closed
