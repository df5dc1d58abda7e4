"""aiohttp application factory wiring settings, collaborators and routes."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from aiohttp import web

from agents.email_agent import ContactMailer
from agents.factory import create_agent, load_builtin_agents
from agents.health_agent import HealthReporter
from agents.interfaces import BaseChatAgent, BaseEmailAgent
from config.config import FeatureFlags, Settings
from schemas.email import EmailAddress
from templates.loader import render_template
from utils.observability import record_request, request_context, request_span
from web.handlers import (
    CHAT_AGENT_KEY,
    CHAT_POLICY_KEY,
    FEATURES_KEY,
    HEALTH_KEY,
    MAILER_KEY,
    SETTINGS_KEY,
    chat_handler,
    contact_handler,
    health_handler,
    ping_handler,
    root_handler,
    test_email_handler,
)

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Request-ID",
}


@web.middleware
async def cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    if request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers:
        response: web.StreamResponse = web.Response(status=204)
    else:
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers.update(_CORS_HEADERS)
            raise
    response.headers.update(_CORS_HEADERS)
    return response


@web.middleware
async def observability_middleware(
    request: web.Request, handler: Handler
) -> web.StreamResponse:
    resource = request.match_info.route.resource
    route = resource.canonical if resource is not None else request.path

    with request_context(request.headers.get("X-Request-ID")) as request_id:
        with request_span(f"{request.method} {route}"):
            try:
                response = await handler(request)
            except web.HTTPException as exc:
                record_request(route, exc.status)
                exc.headers["X-Request-ID"] = request_id
                raise
            except Exception:
                logger.exception("Unhandled error in %s %s", request.method, request.path)
                response = web.json_response(
                    {"success": False, "message": "Internal server error"}, status=500
                )
        response.headers["X-Request-ID"] = request_id
        record_request(route, response.status)
        return response


def build_email_agent(settings: Settings) -> BaseEmailAgent:
    """Instantiate the configured email backend from the agent registry."""

    load_builtin_agents()
    if settings.email_backend == "smtp":
        return create_agent(
            BaseEmailAgent,
            "smtp",
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            starttls=settings.smtp_starttls,
            timeout=settings.email_timeout_seconds,
        )
    return create_agent(
        BaseEmailAgent,
        "brevo",
        api_key=settings.brevo_api_key,
        api_url=settings.brevo_api_url,
        timeout=settings.email_timeout_seconds,
    )


def build_chat_agent(settings: Settings) -> BaseChatAgent:
    load_builtin_agents()
    system_prompt = render_template(
        "chat_system_prompt.txt",
        {
            "company_name": settings.company_name,
            "company_email": settings.admin_address or "",
            "contact_phone": settings.contact_phone,
        },
    )
    return create_agent(
        BaseChatAgent,
        "gemini",
        api_key=settings.gemini_api_key,
        system_prompt=system_prompt,
        model=settings.gemini_model,
        api_base=settings.gemini_api_base,
        timeout=settings.chat_timeout_seconds,
    )


def build_mailer(
    settings: Settings, agent: BaseEmailAgent
) -> ContactMailer:
    admin = settings.admin_address
    return ContactMailer(
        agent,
        sender=EmailAddress(str(settings.from_email), settings.from_name),
        admin=EmailAddress(str(admin), "Admin"),
        company_name=settings.company_name,
        contact_phone=settings.contact_phone,
        environment=settings.app_env,
        policy=settings.email_policy(),
    )


async def _close_collaborators(app: web.Application) -> None:
    mailer: Optional[ContactMailer] = app.get(MAILER_KEY)
    if mailer is not None:
        await mailer.agent.aclose()
    chat_agent: Optional[BaseChatAgent] = app.get(CHAT_AGENT_KEY)
    if chat_agent is not None:
        await chat_agent.aclose()


def create_app(
    settings: Settings,
    *,
    features: Optional[FeatureFlags] = None,
    email_agent: Optional[BaseEmailAgent] = None,
    chat_agent: Optional[BaseChatAgent] = None,
    health: Optional[HealthReporter] = None,
) -> web.Application:
    """Build the application. Feature availability is resolved here, once."""

    features = features or settings.features()

    app = web.Application(middlewares=[cors_middleware, observability_middleware])
    app[SETTINGS_KEY] = settings
    app[FEATURES_KEY] = features
    app[HEALTH_KEY] = health or HealthReporter(features)
    app[CHAT_POLICY_KEY] = settings.chat_policy()

    if features.email_configured:
        app[MAILER_KEY] = build_mailer(settings, email_agent or build_email_agent(settings))
    else:
        logger.warning(
            "Email service not configured - missing variables: %s",
            ", ".join(features.missing_email_vars),
        )

    if features.chat_configured:
        app[CHAT_AGENT_KEY] = chat_agent or build_chat_agent(settings)
    else:
        logger.warning("Chatbot not configured - GEMINI_API_KEY is not set")

    app.router.add_get("/", root_handler)
    app.router.add_get("/api/ping", ping_handler)
    app.router.add_get("/api/health", health_handler)
    app.router.add_post("/api/contact", contact_handler)
    app.router.add_post("/api/chat", chat_handler)
    app.router.add_get("/api/test-email", test_email_handler)

    app.on_cleanup.append(_close_collaborators)
    return app
