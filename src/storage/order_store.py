"""
Order storage.

One record per service purchase, linking the portal client to the Zoho
invoice that bills it. Payment webhooks move orders from pending to paid.
"""

import json
import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_ORDERS_PATH = "data/store/orders.json"

PENDING = "pending"
PAID = "paid"
FAILED = "failed"
CANCELLED = "cancelled"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_order_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Order:
    """
    Purchase of one service tier.

    Attributes:
        id: Order id.
        client_id: Portal user id of the buyer.
        service_id: Catalog service id.
        tier: Pricing tier.
        currency: Currency the client is billed in.
        amount: Price in ``currency``.
        amount_usd: Catalog price in USD.
        status: pending, paid, failed or cancelled.
        zoho_invoice_id: Invoice billing this order, once created.
    """
    client_id: str
    service_id: str
    tier: str
    currency: str
    amount: float
    amount_usd: float
    id: str = field(default_factory=new_order_id)
    status: str = PENDING
    zoho_invoice_id: Optional[str] = None
    invoice_number: Optional[str] = None
    payment_url: Optional[str] = None
    created_at: str = field(default_factory=_utcnow_iso)
    updated_at: str = field(default_factory=_utcnow_iso)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Order":
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            client_id=str(data.get("client_id", "")),
            service_id=data.get("service_id", ""),
            tier=data.get("tier", ""),
            currency=data.get("currency", "USD"),
            amount=float(data.get("amount", 0) or 0),
            amount_usd=float(data.get("amount_usd", 0) or 0),
            status=data.get("status", PENDING),
            zoho_invoice_id=data.get("zoho_invoice_id"),
            invoice_number=data.get("invoice_number"),
            payment_url=data.get("payment_url"),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


class OrderStore:
    """File-backed store of Order records keyed by order id."""

    def __init__(self, path: Optional[str | Path] = None) -> None:
        self.path = Path(path or DEFAULT_ORDERS_PATH)
        self._lock = threading.Lock()

    def _load_all(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load orders: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save_all(self, records: Dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2)
        tmp_path.replace(self.path)

    def get(self, order_id: str) -> Optional[Order]:
        """Get an order by id."""
        with self._lock:
            record = self._load_all().get(order_id)
        return Order.from_dict(record) if record else None

    def save(self, order: Order) -> Order:
        """Insert or replace an order, stamping ``updated_at``."""
        order.updated_at = _utcnow_iso()
        with self._lock:
            records = self._load_all()
            records[order.id] = order.to_dict()
            self._save_all(records)
        logger.debug(f"Saved order {order.id} ({order.status})")
        return order

    def find_by_invoice(self, invoice_id: str) -> Optional[Order]:
        """The order billed by a Zoho invoice, if any."""
        with self._lock:
            records = self._load_all()
        for record in records.values():
            if record.get("zoho_invoice_id") == invoice_id:
                return Order.from_dict(record)
        return None

    def list_for_client(self, client_id: str) -> List[Order]:
        """A client's orders, oldest first."""
        with self._lock:
            records = self._load_all()
        orders = [Order.from_dict(r) for r in records.values() if r.get("client_id") == client_id]
        return sorted(orders, key=lambda o: o.created_at)

    def update_status(self, invoice_id: str, status: str) -> Optional[Order]:
        """
        Set the status of the order billed by ``invoice_id``.

        Returns:
            The updated order, or None when no order uses that invoice.
        """
        with self._lock:
            records = self._load_all()
            for order_id, record in records.items():
                if record.get("zoho_invoice_id") != invoice_id:
                    continue
                record["status"] = status
                record["updated_at"] = _utcnow_iso()
                self._save_all(records)
                logger.info(f"Order {order_id} is now {status} (invoice {invoice_id})")
                return Order.from_dict(record)

        logger.warning(f"No order found for invoice {invoice_id}")
        return None
