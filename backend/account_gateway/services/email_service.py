"""
Templated email dispatch for the forgot-password and verification flows.
"""
import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Optional, Protocol

from fastapi import Request, status
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from starlette.concurrency import run_in_threadpool

from account_gateway.config import DEFAULT_TEMPLATE_DIR, EmailSettings
from account_gateway.core.errors import GatewayError
from account_gateway.hooks import LocaleResolver, default_email_locale

logger = logging.getLogger(__name__)

FORGOT = "forgot"
CONFIRM = "confirm"

DEFAULT_SUBJECTS = {
    FORGOT: "Reset Password Request",
    CONFIRM: "Please Verify Your Account",
}


class Transport(Protocol):
    """Anything that can deliver a rendered message."""

    def send_mail(self, message: dict[str, Any]) -> None:
        ...


class SMTPTransport:
    """Sends each message over a fresh SMTP session."""

    def __init__(self, settings: EmailSettings):
        self.settings = settings

    def _new_connection(self) -> smtplib.SMTP:
        conn = smtplib.SMTP(host=self.settings.smtp_host, port=self.settings.smtp_port)
        if self.settings.smtp_starttls:
            conn.starttls()
        if self.settings.smtp_username:
            conn.login(self.settings.smtp_username, self.settings.smtp_password or "")
        return conn

    def send_mail(self, message: dict[str, Any]) -> None:
        email = EmailMessage()
        email["From"] = message["from"]
        email["To"] = message["to"]
        email["Subject"] = message["subject"]
        email.set_content(message.get("text") or "")
        if message.get("html"):
            email.add_alternative(message["html"], subtype="html")

        with self._new_connection() as conn:
            conn.send_message(email)


class Mailer:
    """Renders a template set and hands the result to the transport."""

    def __init__(
        self,
        settings: Optional[EmailSettings] = None,
        transport: Optional[Transport] = None,
        get_email_locale: Optional[LocaleResolver] = None,
    ):
        """
        Args:
            settings: Email options; without them and without an explicit
                transport, no mail can be sent
            transport: Overrides the SMTP transport built from settings
            get_email_locale: Resolves a template locale for a user
        """
        self.settings = settings
        self.from_address = settings.from_address if settings else None
        self.template_dir = Path(settings.template_dir) if settings else DEFAULT_TEMPLATE_DIR
        if transport is None and settings is not None:
            transport = SMTPTransport(settings)
        self.transport = transport
        self.get_email_locale = get_email_locale or default_email_locale

        if self.transport is None:
            logger.warning("*** Email Service is not configured ***")

    @property
    def configured(self) -> bool:
        return self.transport is not None

    def _render(self, directory: Path, context: dict[str, Any]) -> dict[str, str]:
        if not directory.is_dir():
            raise GatewayError(
                f"Cannot load template {directory.name}",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        env = Environment(
            loader=FileSystemLoader(str(directory)),
            autoescape=select_autoescape(["html"]),
        )
        rendered = {}
        for part, filename in (("subject", "subject.txt"), ("html", "html.html"), ("text", "text.txt")):
            try:
                rendered[part] = env.get_template(filename).render(**context).strip()
            except TemplateNotFound:
                rendered[part] = ""
        return rendered

    async def send(
        self,
        kind: str,
        user: dict[str, Any],
        request: Request,
        app_info: dict[str, Any],
    ) -> None:
        """
        Render the ``kind`` template set for ``user`` and send it.

        Args:
            kind: Template set name (``forgot`` or ``confirm``)
            user: Recipient user record, including its fresh token
            request: Current request, exposed to templates
            app_info: Application ``name`` and ``url`` for links

        Raises:
            GatewayError 500: If no transport is configured, the template
                cannot be loaded, or delivery fails
        """
        if self.transport is None:
            raise GatewayError(
                "Mail transport is not configured!",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        locale = await self.get_email_locale(user, request)
        directory = self.template_dir / kind
        if locale:
            directory = directory / locale

        context = {"user": user, "app": app_info, "request": request}
        rendered = await run_in_threadpool(self._render, directory, context)

        message = {
            "from": self.from_address,
            "to": user["email"],
            "subject": rendered["subject"] or f"{app_info['name']}: {DEFAULT_SUBJECTS.get(kind, kind)}",
            "html": rendered["html"],
            "text": rendered["text"],
        }
        try:
            await run_in_threadpool(self.transport.send_mail, message)
        except (smtplib.SMTPException, OSError) as e:
            raise GatewayError(
                f"Failed to send email: {e}",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            ) from e
        logger.info("Sent %s email to %s", kind, user["email"])
