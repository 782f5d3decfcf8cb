"""
Health check service for monitoring application status.

Reports on exchange rates, location lookup, the service catalog, Zoho
credentials, email delivery and the preference stores.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.invoicing.zoho_client import ZohoClient
from src.pricing.service_catalog import CatalogError, get_catalog
from src.services.currency_service import CurrencyService
from src.utils.config_loader import AppConfig, load_config

logger = logging.getLogger(__name__)

OK = "ok"
DEGRADED = "degraded"
ERROR = "error"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class ComponentHealth:
    """Health of one component; ``details`` are flattened into the output."""

    name: str
    status: str
    message: Optional[str] = None
    latency_ms: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        result: Dict[str, Any] = {"status": self.status}
        if self.message:
            result["message"] = self.message
        if self.latency_ms is not None:
            result["latency_ms"] = round(self.latency_ms, 2)
        return {**result, **self.details}


@dataclass
class HealthReport:
    """Aggregated report: healthy, degraded or unhealthy."""

    status: str
    timestamp: str
    version: str
    components: Dict[str, ComponentHealth] = field(default_factory=dict)

    @classmethod
    def from_components(cls, components: Dict[str, ComponentHealth], version: str) -> "HealthReport":
        statuses = {c.status for c in components.values()}
        if statuses <= {OK}:
            overall = "healthy"
        elif ERROR in statuses:
            overall = "unhealthy"
        else:
            overall = "degraded"
        return cls(status=overall, timestamp=_utc_now(), version=version, components=components)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "version": self.version,
            "components": {name: c.to_dict() for name, c in self.components.items()},
        }


class HealthService:
    """Service for checking application health."""

    VERSION = "1.0.0"

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        currency: Optional[CurrencyService] = None,
        zoho: Optional[ZohoClient] = None,
    ):
        self.config = config or load_config()
        self.currency = currency or CurrencyService(self.config)
        self.zoho = zoho or ZohoClient(self.config.zoho)

    def get_full_health(self) -> HealthReport:
        """Run every component check."""
        checks = (
            self._check_exchange_rates,
            self._check_location,
            self._check_catalog,
            self._check_invoicing,
            self._check_notifications,
            self._check_storage,
        )
        components = {}
        for check in checks:
            component = check()
            components[component.name] = component
            if component.status != OK:
                logger.debug(f"Health: {component.name} is {component.status}: {component.message}")

        return HealthReport.from_components(components, self.VERSION)

    def get_simple_health(self) -> dict:
        """Liveness only (for load balancers)."""
        return {"status": OK, "timestamp": _utc_now()}

    def _check_exchange_rates(self) -> ComponentHealth:
        """Rates are always served; fallback rates mean degraded."""
        provider = self.currency.rates
        try:
            start = time.perf_counter()
            rates = provider.fetch_all_rates()
            latency = (time.perf_counter() - start) * 1000
        except Exception as e:
            return ComponentHealth("exchange_rates", ERROR, message=str(e))

        info = provider.get_rate_info()
        details = {"currencies": len(rates), "source": info["source"]}
        if info["is_fallback"]:
            return ComponentHealth("exchange_rates", DEGRADED, "Using fallback rates", latency, details)
        return ComponentHealth("exchange_rates", OK, f"{len(rates)} live rates", latency, details)

    def _check_location(self) -> ComponentHealth:
        # Reports the last lookup; never calls the geo-IP service itself
        source = self.currency.detector.source
        if source == "default":
            return ComponentHealth("location", DEGRADED, "Last lookup fell back to default location")
        return ComponentHealth("location", OK, details={"last_source": source or "none"})

    def _check_catalog(self) -> ComponentHealth:
        try:
            return ComponentHealth("catalog", OK, f"{len(get_catalog())} services")
        except CatalogError as e:
            return ComponentHealth("catalog", ERROR, str(e))

    def _check_invoicing(self) -> ComponentHealth:
        missing = self.zoho.missing_credentials()
        if missing:
            return ComponentHealth(
                "invoicing",
                DEGRADED,
                "Zoho Invoice not configured, quote requests are disabled",
                details={"missing": missing},
            )
        return ComponentHealth("invoicing", OK, "Zoho Invoice configured")

    def _check_notifications(self) -> ComponentHealth:
        notifications = self.config.notifications
        if not notifications.enabled:
            return ComponentHealth("notifications", OK, "Email delivery disabled, messages are logged")
        return ComponentHealth(
            "notifications",
            OK,
            details={"smtp_host": notifications.smtp_host, "smtp_port": notifications.smtp_port},
        )

    def _check_storage(self) -> ComponentHealth:
        """Ensure the store directories exist."""
        paths = self.config.paths
        dirs = sorted({
            paths.preferences_path.parent,
            paths.clients_path.parent,
            paths.orders_path.parent,
        })
        missing = [str(d) for d in dirs if not d.exists()]

        try:
            for d in dirs:
                d.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return ComponentHealth("storage", ERROR, str(e))

        if missing:
            return ComponentHealth("storage", DEGRADED, f"Created missing directories: {', '.join(missing)}")
        return ComponentHealth("storage", OK, "All directories exist")
