# =====================================================================
# File: agents/email_agent.py
# Purpose: Central agent for all outbound email workflows (contact
#          notification, auto-reply, service test) of the relay backend.
# Every send is one dispatcher call; the backend agent underneath only
# ever performs a single attempt.
# =====================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from agents.interfaces import BaseEmailAgent
from schemas.contact import ContactSubmission
from schemas.email import EmailAddress, EmailEnvelope
from templates.loader import render_template
from utils.dispatcher import DispatchOutcome, dispatch
from utils.errors import OperationError
from utils.observability import record_delivery
from utils.retry import EMAIL_POLICY, RetryPolicy

logger = logging.getLogger(__name__)


def _human_timestamp(moment: datetime) -> str:
    return moment.strftime("%A, %B %d, %Y at %I:%M %p %Z").strip()


@dataclass(frozen=True)
class ContactDelivery:
    """Outcomes of the admin notification and the auto-reply."""

    admin: DispatchOutcome[Optional[str]]
    auto_reply: DispatchOutcome[Optional[str]]

    @property
    def ok(self) -> bool:
        return self.admin.ok and self.auto_reply.ok

    @property
    def failures(self) -> Tuple[str, ...]:
        return tuple(
            name
            for name, outcome in (("admin", self.admin), ("auto_reply", self.auto_reply))
            if not outcome.ok
        )


class ContactMailer:
    """
    Renders and sends contact-form emails through an email backend agent.
    Handles retries through the dispatcher and logs each failed attempt.
    """

    def __init__(
        self,
        agent: BaseEmailAgent,
        *,
        sender: EmailAddress,
        admin: EmailAddress,
        company_name: str,
        contact_phone: str = "",
        environment: str = "development",
        policy: RetryPolicy = EMAIL_POLICY,
        attempt_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.agent = agent
        self.sender = sender
        self.admin = admin
        self.company_name = company_name
        self.contact_phone = contact_phone
        self.environment = environment
        self.policy = policy
        self.attempt_timeout = attempt_timeout
        self._clock = clock

    # ------------------------
    # Message builders
    # ------------------------
    def build_admin_envelope(self, submission: ContactSubmission) -> EmailEnvelope:
        now = self._clock()
        context = {
            **submission.model_dump(),
            "company_name": self.company_name,
            "received_at": _human_timestamp(now),
            "year": now.year,
        }
        return EmailEnvelope(
            sender=self.sender,
            to=(self.admin,),
            subject=f"New Contact Form Submission from {submission.name}",
            html_content=render_template("contact_admin.html", context),
            text_content=render_template("contact_admin.txt", context),
            reply_to=EmailAddress(submission.email, submission.name),
        )

    def build_auto_reply_envelope(self, submission: ContactSubmission) -> EmailEnvelope:
        now = self._clock()
        context = {
            **submission.model_dump(),
            "company_name": self.company_name,
            "contact_phone": self.contact_phone,
            "year": now.year,
        }
        return EmailEnvelope(
            sender=self.sender,
            to=(EmailAddress(submission.email, submission.name),),
            subject=f"Thank You for Contacting {self.company_name}!",
            html_content=render_template("contact_autoreply.html", context),
            text_content=render_template("contact_autoreply.txt", context),
        )

    def build_test_envelope(self) -> EmailEnvelope:
        context = {
            "company_name": self.company_name,
            "method": self.agent.method,
            "environment": self.environment,
            "sent_at": _human_timestamp(self._clock()),
        }
        return EmailEnvelope(
            sender=self.sender,
            to=(self.admin,),
            subject=f"Test Email - {self.company_name} backend",
            html_content=render_template("test_email.html", context),
            text_content=render_template("test_email.txt", context),
        )

    # ------------------------
    # Public API
    # ------------------------
    async def deliver(
        self, envelope: EmailEnvelope, *, kind: str = "email"
    ) -> DispatchOutcome[Optional[str]]:
        """Send *envelope* with retries and return the dispatch outcome."""

        def _log_retry(error: OperationError, delay: float) -> None:
            logger.warning(
                "Email attempt %d/%d failed (%s): %s",
                error.attempt,
                self.policy.max_attempts,
                kind,
                error.cause,
            )
            logger.info("Retrying %s in %.1fs", kind, delay)

        outcome = await dispatch(
            lambda: self.agent.send(envelope),
            self.policy,
            attempt_timeout=self.attempt_timeout,
            on_retry=_log_retry,
        )
        record_delivery(kind, outcome.ok, outcome.attempts_made)
        if outcome.ok:
            logger.info(
                "Email sent (%s) -> %s after %d attempt(s)",
                kind,
                ",".join(envelope.recipients),
                outcome.attempts_made,
            )
        else:
            logger.error(
                "Email sending failed (%s) after all retries: %s",
                kind,
                outcome.cause,
            )
        return outcome

    async def send_contact(self, submission: ContactSubmission) -> ContactDelivery:
        """Send the admin notification and the auto-reply concurrently."""

        admin_outcome, reply_outcome = await asyncio.gather(
            self.deliver(self.build_admin_envelope(submission), kind="admin"),
            self.deliver(self.build_auto_reply_envelope(submission), kind="auto_reply"),
        )
        return ContactDelivery(admin=admin_outcome, auto_reply=reply_outcome)

    async def send_test_email(self) -> DispatchOutcome[Optional[str]]:
        return await self.deliver(self.build_test_envelope(), kind="test")
