"""
Storage modules for data persistence.
"""

from src.storage.client_store import ClientProfile, ClientStore
from src.storage.order_store import Order, OrderStore
from src.storage.preference_store import PreferenceStore, UserPreference

__all__ = [
    "ClientProfile",
    "ClientStore",
    "Order",
    "OrderStore",
    "PreferenceStore",
    "UserPreference",
]
