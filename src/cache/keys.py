"""Cache key builders and the TTL table for each kind of cached data.

List keys embed their query parameters, so every page/filter/search
combination gets its own entry and the entity name prefix lets
``invalidate("invoices")`` evict all of them at once.
"""

from typing import Any, Final

from src.cache.store import make_cache_key
from src.core.config import CacheConfig
from src.core.types import CacheKey

USER_SETTINGS: Final[CacheKey] = "user-settings"
INVOICE_STATS: Final[CacheKey] = "invoice-stats"
DASHBOARD_STATS: Final[CacheKey] = "dashboard-stats"

INVOICES_PATTERN: Final[str] = "invoices"
CUSTOMERS_PATTERN: Final[str] = "customers"
NOTIFICATIONS_PATTERN: Final[str] = "notifications"


def invoices(params: dict[str, Any] | None = None) -> CacheKey:
    """Key of an invoices list query."""
    return make_cache_key(INVOICES_PATTERN, params)


def invoice(invoice_id: str) -> CacheKey:
    """Key of a single invoice."""
    return f"invoice-{invoice_id}"


def customers(params: dict[str, Any] | None = None) -> CacheKey:
    """Key of a customers list query."""
    return make_cache_key(CUSTOMERS_PATTERN, params)


def customer(customer_id: str) -> CacheKey:
    """Key of a single customer."""
    return f"customer-{customer_id}"


def notifications(params: dict[str, Any] | None = None) -> CacheKey:
    """Key of a notifications list query."""
    return make_cache_key(NOTIFICATIONS_PATTERN, params)


class CacheTTL:
    """TTL in minutes per data category, read from ``CacheConfig``.

    Args:
        config: Cache configuration section.
    """

    def __init__(self, config: CacheConfig) -> None:
        self.business_data = config.business_data_ttl_minutes
        self.settings = config.settings_ttl_minutes
        self.stats = config.stats_ttl_minutes
        self.notifications = config.notifications_ttl_minutes
