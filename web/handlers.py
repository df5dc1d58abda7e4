"""
HTTP handlers for the relay backend.

Provides the liveness ping, the detailed health report, the contact-form
mailer, the chatbot proxy and an email self-test.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from aiohttp import web

from agents.email_agent import ContactMailer
from agents.health_agent import HealthReporter
from agents.interfaces import BaseChatAgent
from config.config import FeatureFlags, Settings
from utils.dispatcher import dispatch
from utils.errors import OperationError
from utils.observability import record_delivery
from utils.retry import RetryPolicy
from utils.validation import InvalidSubmissionError, validate_chat, validate_contact

logger = logging.getLogger(__name__)

SETTINGS_KEY = web.AppKey("settings", Settings)
FEATURES_KEY = web.AppKey("features", FeatureFlags)
HEALTH_KEY = web.AppKey("health", HealthReporter)
MAILER_KEY = web.AppKey("mailer", object)
CHAT_AGENT_KEY = web.AppKey("chat_agent", object)
CHAT_POLICY_KEY = web.AppKey("chat_policy", RetryPolicy)


def _error(message: str, status: int, **extra: Any) -> web.Response:
    body: Dict[str, Any] = {"success": False, "message": message}
    body.update(extra)
    return web.json_response(body, status=status)


async def _read_json(request: web.Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise InvalidSubmissionError("Request body must be valid JSON") from exc


async def root_handler(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS_KEY]
    return web.json_response(
        {"message": f"{settings.company_name} backend API", "status": "running"}
    )


async def ping_handler(request: web.Request) -> web.Response:
    """
    Liveness endpoint hit by the keep-alive pinger.

    Returns:
        JSON response with the ping counter and uptime
    """
    return web.json_response(request.app[HEALTH_KEY].record_ping())


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        JSON response with service configuration and liveness details
    """
    return web.json_response(request.app[HEALTH_KEY].snapshot())


async def contact_handler(request: web.Request) -> web.Response:
    try:
        submission = validate_contact(await _read_json(request))
    except InvalidSubmissionError as exc:
        return _error(str(exc), 400)

    features = request.app[FEATURES_KEY]
    mailer: ContactMailer | None = request.app.get(MAILER_KEY)
    if not features.email_configured or mailer is None:
        logger.error(
            "Cannot send email: missing environment variables: %s",
            ", ".join(features.missing_email_vars) or "<none>",
        )
        return _error(
            "Email service is not configured properly. Please contact the administrator.",
            500,
        )

    logger.info("Sending contact emails via %s", mailer.agent.method)
    delivery = await mailer.send_contact(submission)
    if not delivery.ok:
        logger.error(
            "Contact email delivery failed for %s: %s",
            submission.email,
            ", ".join(delivery.failures),
        )
        return _error("Failed to send email. Please try again later.", 500)

    logger.info("Emails sent successfully to: %s", submission.email)
    return web.json_response({"success": True, "message": "Email sent successfully!"})


async def chat_handler(request: web.Request) -> web.Response:
    try:
        chat_request = validate_chat(await _read_json(request))
    except InvalidSubmissionError as exc:
        return _error(str(exc), 400)

    agent: BaseChatAgent | None = request.app.get(CHAT_AGENT_KEY)
    if agent is None:
        return _error("Chatbot is not configured. Please try again later.", 503)

    def _log_retry(error: OperationError, delay: float) -> None:
        logger.warning(
            "Chat attempt %d failed: %s; retrying in %.1fs",
            error.attempt,
            error.cause,
            delay,
        )

    outcome = await dispatch(
        lambda: agent.generate(chat_request.message, chat_request.history),
        request.app[CHAT_POLICY_KEY],
        on_retry=_log_retry,
    )
    record_delivery("chat", outcome.ok, outcome.attempts_made)
    if not outcome.ok:
        logger.error("Chat generation failed: %s", outcome.cause)
        return _error("Failed to generate a response. Please try again later.", 500)

    return web.json_response({"success": True, "reply": outcome.value})


async def test_email_handler(request: web.Request) -> web.Response:
    features = request.app[FEATURES_KEY]
    mailer: ContactMailer | None = request.app.get(MAILER_KEY)
    if not features.email_configured or mailer is None:
        return _error(
            "Email not configured", 500, missingVars=list(features.missing_email_vars)
        )

    logger.info("Sending test email via %s", mailer.agent.method)
    outcome = await mailer.send_test_email()
    if not outcome.ok:
        return _error(
            f"Failed to send test email: {outcome.cause}",
            500,
            note="Check the email credentials in the environment variables",
        )

    return web.json_response(
        {
            "success": True,
            "message": f"Test email sent successfully! Check your inbox at {mailer.admin.email}",
            "config": {
                "method": mailer.agent.method,
                "from": mailer.sender.email,
                "attempts": outcome.attempts_made,
            },
        }
    )
