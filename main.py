import logging

from aiohttp import web

from config.config import Settings, mask_secret, settings
from utils.observability import configure_logging
from web.app import create_app

logger = logging.getLogger(__name__)


def _init_logging(level: str | int = logging.INFO) -> None:
    """Configure structured logging once per process."""

    configure_logging(level)


def _log_configuration(active: Settings) -> None:
    features = active.features()
    logger.info("Email backend: %s", active.email_backend)
    if active.email_backend == "smtp":
        logger.info("SMTP host: %s:%s", active.smtp_host or "NOT SET", active.smtp_port)
        logger.info("SMTP password: %s", mask_secret(active.smtp_password))
    else:
        logger.info("Brevo API key: %s", mask_secret(active.brevo_api_key))
    logger.info("From email: %s", active.from_email or "NOT SET")
    logger.info("Admin email: %s", active.admin_address or "NOT SET")
    if features.email_configured:
        logger.info("Email service configured")
    else:
        logger.warning(
            "Email service NOT configured - missing: %s",
            ", ".join(features.missing_email_vars),
        )
    logger.info(
        "Chatbot: %s", "configured" if features.chat_configured else "not configured"
    )


def main() -> None:
    _init_logging(settings.log_level)
    _log_configuration(settings)
    app = create_app(settings)
    logger.info("Server starting on %s:%d (%s)", settings.host, settings.port, settings.app_env)
    web.run_app(app, host=settings.host, port=settings.port, print=None)


if __name__ == "__main__":
    main()
