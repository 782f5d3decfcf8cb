"""
User currency preference storage.

Persists one preference record per user id in a JSON file:
- preferred display currency
- country the preference was detected in
- whether the currency should keep following the detected location
"""

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES_PATH = "data/store/user_preferences.json"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class UserPreference:
    """Stored display-currency preference for one user."""
    user_id: str
    preferred_currency: str = "USD"
    country_code: Optional[str] = None
    auto_detect_currency: bool = True
    updated_at: str = field(default_factory=_utcnow_iso)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "UserPreference":
        """Create from dictionary."""
        return cls(
            user_id=str(data["user_id"]),
            preferred_currency=data.get("preferred_currency") or "USD",
            country_code=data.get("country_code"),
            auto_detect_currency=bool(data.get("auto_detect_currency", True)),
            updated_at=data.get("updated_at") or _utcnow_iso(),
        )


class PreferenceStore:
    """File-backed store of UserPreference records keyed by user id."""

    def __init__(self, path: Optional[str | Path] = None) -> None:
        """Initialize the preference store."""
        self.path = Path(path or DEFAULT_PREFERENCES_PATH)
        self._lock = threading.Lock()

    def _load_all(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load preferences, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save_all(self, records: Dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2)
        tmp_path.replace(self.path)

    def get(self, user_id: str) -> Optional[UserPreference]:
        """Get a user's preference, or None if never saved."""
        with self._lock:
            record = self._load_all().get(str(user_id))
        if record is None:
            return None
        return UserPreference.from_dict(record)

    def save(self, preference: UserPreference) -> UserPreference:
        """Insert or replace a user's preference."""
        preference.updated_at = _utcnow_iso()
        with self._lock:
            records = self._load_all()
            records[preference.user_id] = preference.to_dict()
            self._save_all(records)
        logger.info(
            f"Saved currency preference for user {preference.user_id}: "
            f"{preference.preferred_currency} (auto_detect={preference.auto_detect_currency})"
        )
        return preference

    def delete(self, user_id: str) -> bool:
        """Remove a user's preference. Returns True if one existed."""
        with self._lock:
            records = self._load_all()
            existed = records.pop(str(user_id), None) is not None
            if existed:
                self._save_all(records)
        return existed
