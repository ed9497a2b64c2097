"""Email sending via Resend API.

Plain-text transactional emails for the identity lifecycle: verification
codes, password reset codes, and the post-verification welcome message.

Delivery is not part of any identity operation's contract. Services queue
OutboundEmail entries instead of sending; routes hand them to FastAPI
background tasks after the transaction commits, and failures are only logged.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx
from fastapi import BackgroundTasks

from employme.core.config import settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


class EmailSender:
    """Outbound email collaborator.

    Args:
        api_key: Resend API key. Empty disables delivery (development).
        from_address: Sender address shown to recipients.
    """

    def __init__(
        self,
        api_key: str | None = None,
        from_address: str | None = None,
    ) -> None:
        self.api_key = (
            api_key
            if api_key is not None
            else settings.resend_api_key.get_secret_value()
        )
        self.from_address = from_address or settings.email_from

    async def _send(self, *, to_email: str, subject: str, text: str) -> None:
        """POST one message to Resend.

        Raises:
            httpx.HTTPError: If the request fails or returns non-2xx.
        """
        if not self.api_key:
            logger.info(
                "Email delivery disabled, skipping message",
                extra={"subject": subject},
            )
            return

        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": self.from_address,
                    "to": to_email,
                    "subject": subject,
                    "text": text,
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()

    async def send_verification_email(
        self, *, to_email: str, name: str, code: str
    ) -> None:
        """Send the email verification code."""
        greeting = f"Hi {name}," if name else "Hi,"
        await self._send(
            to_email=to_email,
            subject="Verify your EmployMe account",
            text=(
                f"{greeting}\n\n"
                f"Your verification code is: {code}\n\n"
                f"This code expires in {settings.verification_code_ttl_minutes} "
                "minutes. If you didn't create an account, you can safely "
                "ignore this email."
            ),
        )

    async def send_password_reset_email(
        self, *, to_email: str, name: str, code: str
    ) -> None:
        """Send the password reset code."""
        greeting = f"Hi {name}," if name else "Hi,"
        await self._send(
            to_email=to_email,
            subject="Reset your EmployMe password",
            text=(
                f"{greeting}\n\n"
                f"Your password reset code is: {code}\n\n"
                f"This code expires in {settings.reset_code_ttl_minutes} "
                "minutes. If you didn't request a reset, you can safely "
                "ignore this email."
            ),
        )

    async def send_welcome_email(self, *, to_email: str, name: str) -> None:
        """Send the welcome message after a successful verification."""
        greeting = f"Hi {name}," if name else "Hi,"
        await self._send(
            to_email=to_email,
            subject="Welcome to EmployMe",
            text=(
                f"{greeting}\n\n"
                "Your email address is verified and your account is ready. "
                f"Sign in at {settings.frontend_url} to get started."
            ),
        )


async def deliver_best_effort(
    send: Callable[[], Awaitable[None]], *, kind: str
) -> None:
    """Await an email send and log instead of raising on failure.

    Args:
        send: Zero-argument callable returning the send coroutine.
        kind: Short label for the message type, used in the log record.
    """
    try:
        await send()
    except Exception:
        logger.warning(
            "Failed to send email", extra={"email_kind": kind}, exc_info=True
        )


@dataclass(frozen=True)
class OutboundEmail:
    """An email held back until the transaction that produced it commits.

    Attributes:
        kind: Short label for the message type, used in the log record.
        send: Zero-argument callable returning the send coroutine.
    """

    kind: str
    send: Callable[[], Awaitable[None]]

    async def deliver(self) -> None:
        await deliver_best_effort(self.send, kind=self.kind)


def schedule_outbox(
    background_tasks: BackgroundTasks, outbox: list[OutboundEmail]
) -> None:
    """Move queued emails onto the response's background tasks.

    Call only after ``db.commit()``: the tasks run once the response has
    been sent.
    """
    for email in outbox:
        background_tasks.add_task(email.deliver)
    outbox.clear()
