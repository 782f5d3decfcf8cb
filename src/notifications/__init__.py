"""
Notifications module.

Email confirmations and business notifications for contact-form and
quote-request submissions.
"""

from src.notifications.mailer import Mailer
from src.notifications.models import ContactMessage, OutgoingEmail, QuoteRequest

__all__ = [
    "Mailer",
    "ContactMessage",
    "OutgoingEmail",
    "QuoteRequest",
]
