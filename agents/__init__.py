"""Agent modules for the contact relay backend."""

__all__ = [
    "brevo_email_agent",
    "chat_agent",
    "email_agent",
    "factory",
    "health_agent",
    "interfaces",
    "keep_alive_agent",
    "smtp_email_agent",
]
