"""
Submission and message models for customer notifications.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ContactMessage:
    """Contact form submission."""

    name: str
    email: str
    subject: str
    message: str
    timestamp: str = field(default_factory=_now_iso)


@dataclass
class QuoteRequest:
    """
    Quote request submission.

    Attributes:
        customer_name: Requesting customer.
        customer_email: Reply address.
        service_type: Catalog service id or free-text service name.
        project_details: Description of the work.
        budget_range: Customer's stated budget.
        timeline: Customer's stated timeline.
    """

    customer_name: str
    customer_email: str
    service_type: str
    project_details: str
    budget_range: str = ""
    timeline: str = ""
    company_name: str = ""
    phone: str = ""
    quote_date: str = field(default_factory=_now_iso)

    def estimate_notes(self) -> str:
        """Notes attached to the Zoho estimate."""
        return (
            f"Budget Range: {self.budget_range}\n"
            f"Timeline: {self.timeline}\n"
            f"Submitted: {self.quote_date}"
        )


@dataclass
class OutgoingEmail:
    """Rendered email ready to send."""

    to: str
    subject: str
    html: str
    sender: str = ""
