"""Shared asynchronous SMTP helpers."""

from __future__ import annotations

from typing import Optional, Sequence

import aiosmtplib

DEFAULT_SMTP_PORT = 465
DEFAULT_TIMEOUT = 20.0


async def send_email(
    *,
    host: str,
    username: str,
    password: str,
    message: str,
    to_addrs: Sequence[str],
    from_addr: Optional[str] = None,
    port: int = DEFAULT_SMTP_PORT,
    starttls: bool = True,
    timeout: float = DEFAULT_TIMEOUT,
) -> None:
    """Submit *message* once. Port 465 uses implicit TLS, anything else STARTTLS if enabled."""

    if not to_addrs:
        raise ValueError("to_addrs must include at least one recipient")

    implicit_tls = int(port) == 465
    client = aiosmtplib.SMTP(
        hostname=host,
        port=port,
        use_tls=implicit_tls,
        start_tls=bool(starttls) and not implicit_tls,
        timeout=timeout,
    )
    await client.connect()
    try:
        if username:
            await client.login(username, password)
        await client.sendmail(from_addr or username, list(to_addrs), message)
    finally:
        try:
            await client.quit()
        except aiosmtplib.errors.SMTPException:
            client.close()
