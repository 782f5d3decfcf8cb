"""
Client profile storage.

Holds the contact details of portal clients. A profile is created on a
client's first purchase, together with their Zoho contact.
"""

import json
import logging
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CLIENTS_PATH = "data/store/clients.json"


@dataclass
class ClientProfile:
    """Registered portal client."""
    id: str
    name: str
    email: str
    phone: str = ""
    company: str = ""
    zoho_contact_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ClientProfile":
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            email=data.get("email", ""),
            phone=data.get("phone", "") or "",
            company=data.get("company", "") or "",
            zoho_contact_id=data.get("zoho_contact_id"),
        )


class ClientStore:
    """File-backed store of ClientProfile records keyed by client id."""

    def __init__(self, path: Optional[str | Path] = None) -> None:
        self.path = Path(path or DEFAULT_CLIENTS_PATH)
        self._lock = threading.Lock()

    def _load_all(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load client profiles: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save_all(self, records: Dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2)
        tmp_path.replace(self.path)

    def exists(self, client_id: str) -> bool:
        """Check whether a profile exists for the id."""
        with self._lock:
            return str(client_id) in self._load_all()

    def get(self, client_id: str) -> Optional[ClientProfile]:
        """Get a profile by id."""
        with self._lock:
            record = self._load_all().get(str(client_id))
        return ClientProfile.from_dict(record) if record else None

    def save(self, profile: ClientProfile) -> ClientProfile:
        """Insert or replace a profile."""
        with self._lock:
            records = self._load_all()
            records[profile.id] = profile.to_dict()
            self._save_all(records)
        logger.info(f"Saved client profile: {profile.id}")
        return profile

    def list_all(self) -> List[ClientProfile]:
        """All stored profiles."""
        with self._lock:
            records = self._load_all()
        return [ClientProfile.from_dict(r) for r in records.values()]
