"""
Display-currency preference resolution.

Policy:
1. A signed-in user who switched auto-detection off gets their saved currency.
2. Everyone else gets the currency of their detected country. For signed-in
   users with a client profile the detected value is saved for next time.
"""

import logging
from typing import Optional

from src.currency.location import LocationDetector
from src.currency.tables import DEFAULT_CURRENCY
from src.storage.client_store import ClientStore
from src.storage.preference_store import PreferenceStore, UserPreference
from src.utils.logging_config import log_event

logger = logging.getLogger(__name__)


class PreferenceResolver:
    """
    Resolves and records users' display currency.

    Attributes:
        detector: Location detector used for auto-detection.
        preferences: Persisted preference records.
        clients: Client profiles, consulted only for existence.
    """

    def __init__(
        self,
        detector: LocationDetector,
        preferences: PreferenceStore,
        clients: ClientStore,
    ) -> None:
        self.detector = detector
        self.preferences = preferences
        self.clients = clients

    def _saved_currency(self, user_id: str) -> Optional[str]:
        preference = self.preferences.get(user_id)
        if preference is not None and not preference.auto_detect_currency:
            logger.debug(f"Using saved preference for user {user_id}: {preference.preferred_currency}")
            return preference.preferred_currency or DEFAULT_CURRENCY
        return None

    def _remember_detected(self, user_id: str, currency: str, country_code: str) -> None:
        # Best effort: never creates a profile, never raises
        try:
            if not self.clients.exists(user_id):
                return
            self.preferences.save(
                UserPreference(
                    user_id=user_id,
                    preferred_currency=currency,
                    country_code=country_code,
                    auto_detect_currency=True,
                )
            )
        except Exception as e:
            log_event(
                logger,
                "preference_save_failed",
                f"Failed to save detected currency for user {user_id}: {e}",
                level=logging.WARNING,
                user_id=user_id,
                error=str(e),
            )

    def get_preferred_currency(
        self,
        user_id: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> str:
        """
        Resolve the display currency for a visitor.

        Args:
            user_id: Authenticated user id, or None for anonymous visitors.
            client_ip: Visitor address used for location detection.

        Returns:
            str: ISO currency code. Any internal error yields "USD".
        """
        try:
            if user_id:
                saved = self._saved_currency(user_id)
                if saved:
                    return saved

            location = self.detector.detect_location(client_ip)
            currency = (
                self.detector.tables.currency_for_country(location.country_code)
                or location.currency
                or DEFAULT_CURRENCY
            )
            logger.info(f"Auto-detected currency {currency} for country {location.country_code}")

            if user_id:
                self._remember_detected(user_id, currency, location.country_code)

            return currency
        except Exception as e:
            log_event(
                logger,
                "preference_fallback",
                f"Error resolving preferred currency, using {DEFAULT_CURRENCY}: {e}",
                level=logging.ERROR,
                user_id=user_id,
                error=str(e),
            )
            return DEFAULT_CURRENCY

    def update_preference(
        self,
        user_id: Optional[str],
        currency: str,
        auto_detect: bool = False,
    ) -> Optional[UserPreference]:
        """
        Save a user's explicit currency choice.

        Args:
            user_id: Authenticated user id. Anonymous callers are ignored.
            currency: Chosen ISO currency code.
            auto_detect: Keep following the detected location instead.

        Returns:
            The saved preference, or None if nothing was saved.
        """
        if not user_id:
            return None

        try:
            existing = self.preferences.get(user_id)
            preference = UserPreference(
                user_id=user_id,
                preferred_currency=currency,
                country_code=existing.country_code if existing else None,
                auto_detect_currency=auto_detect,
            )
            return self.preferences.save(preference)
        except Exception as e:
            logger.error(f"Error updating currency preference for user {user_id}: {e}")
            return None
