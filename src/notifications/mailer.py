"""
Notification mailer.

Renders customer confirmations and business notifications from Jinja2
templates and sends them over SMTP. When notifications are disabled the
rendered messages are logged instead of sent.
"""

import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import Callable

from jinja2 import Environment, FileSystemLoader, select_autoescape

from src.notifications.models import ContactMessage, OutgoingEmail, QuoteRequest
from src.utils.config_loader import NotificationsConfig, get_env_var
from src.utils.logging_config import log_event

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

COMPANY_NAME = "Mechinweb"


class Mailer:
    """
    Sends notification emails.

    Attributes:
        config: Notifications configuration.
        env: Jinja2 environment for email templates.
    """

    def __init__(
        self,
        config: NotificationsConfig | None = None,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
    ) -> None:
        self.config = config or NotificationsConfig()
        self._smtp_factory = smtp_factory
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
        )

    def render(self, template_name: str, **context) -> str:
        template = self.env.get_template(template_name)
        return template.render(
            company=COMPANY_NAME,
            business_email=self.config.business_inbox,
            **context,
        )

    # ------------------------------------------------------------------
    # Message builders
    # ------------------------------------------------------------------

    def build_contact_emails(self, contact: ContactMessage) -> list[OutgoingEmail]:
        """Customer confirmation and business notification for a contact message."""
        return [
            OutgoingEmail(
                to=contact.email,
                subject=f"Message Received - {COMPANY_NAME} IT Services",
                html=self.render("contact_confirmation.html", contact=contact),
            ),
            OutgoingEmail(
                to=self.config.business_inbox,
                subject=f"New Contact Message - {contact.subject}",
                html=self.render("contact_notification.html", contact=contact),
            ),
        ]

    def build_quote_emails(
        self,
        quote: QuoteRequest,
        estimate_number: str,
        service_name: str | None = None,
    ) -> list[OutgoingEmail]:
        """Customer confirmation and business notification for a quote request."""
        context = {
            "quote": quote,
            "estimate_number": estimate_number,
            "service_name": service_name or quote.service_type,
        }
        return [
            OutgoingEmail(
                to=quote.customer_email,
                subject=f"Quote Request Received - {COMPANY_NAME} IT Services",
                html=self.render("quote_confirmation.html", **context),
            ),
            OutgoingEmail(
                to=self.config.business_inbox,
                subject=f"New Quote Request - {quote.customer_name}",
                html=self.render("quote_notification.html", **context),
            ),
        ]

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _to_message(self, email: OutgoingEmail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = email.sender or self.config.sender
        message["To"] = email.to
        message["Subject"] = email.subject
        message.set_content("This message requires an HTML-capable email client.")
        message.add_alternative(email.html, subtype="html")
        return message

    def send(self, email: OutgoingEmail) -> bool:
        """
        Send one email.

        Returns:
            bool: True if sent (or logged while disabled), False on failure.
        """
        if not self.config.enabled:
            logger.info(
                f"Email delivery disabled, not sending. To: {email.to} Subject: {email.subject}"
            )
            return True

        user = get_env_var(self.config.user_env)
        password = get_env_var(self.config.password_env)

        try:
            with self._smtp_factory(
                self.config.smtp_host, self.config.smtp_port, timeout=self.config.timeout
            ) as smtp:
                if self.config.use_tls:
                    smtp.starttls()
                if user and password:
                    smtp.login(user, password)
                smtp.send_message(self._to_message(email))
        except (smtplib.SMTPException, OSError) as e:
            log_event(
                logger,
                "email_failed",
                f"Failed to send email to {email.to}: {e}",
                level=logging.ERROR,
                recipient=email.to,
                subject=email.subject,
                error=str(e),
            )
            return False

        logger.info(f"Sent email to {email.to}: {email.subject}")
        return True

    def send_all(self, emails: list[OutgoingEmail]) -> int:
        """Send several emails; returns how many succeeded."""
        return sum(1 for email in emails if self.send(email))

    def send_contact_emails(self, contact: ContactMessage) -> int:
        return self.send_all(self.build_contact_emails(contact))

    def send_quote_emails(
        self,
        quote: QuoteRequest,
        estimate_number: str,
        service_name: str | None = None,
    ) -> int:
        return self.send_all(self.build_quote_emails(quote, estimate_number, service_name))
