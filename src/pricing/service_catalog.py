"""
Service catalog.

Loads the IT-service catalog (services, tiers, USD prices, features)
from ``src/pricing/data/services.yaml``.
"""

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CATALOG_FILE = Path(__file__).parent / "data" / "services.yaml"

TIER_ORDER = ("basic", "standard", "enterprise")


class CatalogError(Exception):
    """Raised for unknown services/tiers or an invalid catalog file."""
    pass


@dataclass(frozen=True)
class PricingTier:
    """One purchasable tier of a service."""
    key: str
    name: str
    price: float
    features: List[str] = field(default_factory=list)
    popular: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "price": self.price,
            "features": list(self.features),
            "popular": self.popular,
        }


@dataclass(frozen=True)
class ServicePricing:
    """A catalog service with its tiers."""
    id: str
    name: str
    description: str
    tiers: Dict[str, PricingTier]

    def get_tier(self, tier: str) -> PricingTier:
        """Get a tier by key."""
        try:
            return self.tiers[tier]
        except KeyError:
            raise CatalogError(f"Invalid tier '{tier}' for service '{self.id}'") from None


def _parse_service(service_id: str, raw: Dict[str, Any]) -> ServicePricing:
    tiers_raw = raw.get("tiers") or {}
    if "basic" not in tiers_raw:
        raise CatalogError(f"Service '{service_id}' must define a basic tier")

    tiers = {}
    for key in TIER_ORDER:
        if key not in tiers_raw:
            continue
        tier_raw = tiers_raw[key]
        price = float(tier_raw["price"])
        if price < 0:
            raise CatalogError(f"Negative price for {service_id}/{key}")
        tiers[key] = PricingTier(
            key=key,
            name=tier_raw["name"],
            price=price,
            features=list(tier_raw.get("features", [])),
            popular=bool(tier_raw.get("popular", False)),
        )

    unknown = set(tiers_raw) - set(TIER_ORDER)
    if unknown:
        raise CatalogError(f"Unknown tiers for service '{service_id}': {sorted(unknown)}")

    return ServicePricing(
        id=service_id,
        name=raw["name"],
        description=raw.get("description", ""),
        tiers=tiers,
    )


class ServiceCatalog:
    """Read-only view of the service catalog."""

    def __init__(self, services: Dict[str, ServicePricing]) -> None:
        self._services = dict(services)

    @classmethod
    def from_file(cls, path: Path = CATALOG_FILE) -> "ServiceCatalog":
        """
        Load the catalog from a YAML file.

        Raises:
            CatalogError: If the file is missing or malformed.
        """
        if not path.exists():
            raise CatalogError(f"Service catalog not found: {path}")

        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        try:
            services = {sid: _parse_service(sid, entry) for sid, entry in raw.items()}
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogError(f"Invalid service catalog {path}: {e}") from e

        logger.info(f"Loaded {len(services)} services from catalog")
        return cls(services)

    def get_service(self, service_id: str) -> Optional[ServicePricing]:
        return self._services.get(service_id)

    def require_service(self, service_id: str) -> ServicePricing:
        service = self.get_service(service_id)
        if service is None:
            raise CatalogError(f"Service not found: {service_id}")
        return service

    def all_services(self) -> List[ServicePricing]:
        return list(self._services.values())

    def service_name(self, service_id: str, default: str = "IT Service") -> str:
        service = self.get_service(service_id)
        return service.name if service else default

    def __len__(self) -> int:
        return len(self._services)


@lru_cache(maxsize=1)
def get_catalog() -> ServiceCatalog:
    """Get the packaged catalog (cached)."""
    return ServiceCatalog.from_file()
