"""Named bulk invalidations mapped to entity domains.

List caches are keyed by serialized filter/page parameters, so a single-key
delete cannot reach every cached variant of a list. Mutations therefore
evict by substring pattern, trading some unrelated evictions for the
guarantee that no stale list survives.
"""

from typing import Any

from loguru import logger

from src.cache import keys
from src.cache.store import TTLCacheStore, get_app_cache
from src.notifications.models import NotificationType

INVOICE_DOMAIN_TYPES = frozenset(
    {
        NotificationType.INVOICE_CREATED,
        NotificationType.INVOICE_UPDATED,
        NotificationType.INVOICE_DELETED,
        NotificationType.INVOICE_PAID,
        NotificationType.INVOICE_OVERDUE,
        NotificationType.REMINDER,
        NotificationType.PAYMENT_RECEIVED,
    }
)
CUSTOMER_DOMAIN_TYPES = frozenset(
    {
        NotificationType.CUSTOMER_CREATED,
        NotificationType.CUSTOMER_UPDATED,
        NotificationType.CUSTOMER_DELETED,
    }
)


class CacheInvalidationPolicy:
    """Domain-level invalidation operations over a cache store.

    Args:
        store: Store to evict from. Defaults to the process-wide cache.
    """

    def __init__(self, store: TTLCacheStore | None = None) -> None:
        self.store = store if store is not None else get_app_cache()

    def invalidate_invoices(self) -> int:
        """Evict invoice lists and the stats derived from invoices."""
        return (
            self.store.invalidate(keys.INVOICES_PATTERN)
            + self.store.invalidate(keys.INVOICE_STATS)
            + self.store.invalidate(keys.DASHBOARD_STATS)
        )

    def invalidate_customers(self) -> int:
        """Evict every cached customers query."""
        return self.store.invalidate(keys.CUSTOMERS_PATTERN)

    def invalidate_notifications(self) -> int:
        """Evict every cached notifications query."""
        return self.store.invalidate(keys.NOTIFICATIONS_PATTERN)

    def invalidate_settings(self) -> bool:
        """Drop the single user-settings entry."""
        return self.store.delete(keys.USER_SETTINGS)

    def invalidate_for_notification(self, notification_type: NotificationType) -> None:
        """Evict what a pushed notification of ``notification_type`` makes stale.

        The notification lists are always evicted; the entity domain named
        by the type is evicted as well.
        """
        self.invalidate_notifications()
        if notification_type in INVOICE_DOMAIN_TYPES:
            self.invalidate_invoices()
        elif notification_type in CUSTOMER_DOMAIN_TYPES:
            self.invalidate_customers()
        elif notification_type is NotificationType.SETTINGS_UPDATED:
            self.invalidate_settings()

        logger.debug(
            "Invalidated caches for pushed notification",
            notification_type=notification_type.value,
        )

    def clear_all(self) -> None:
        """Empty the store."""
        self.store.clear()

    def get_stats(self) -> dict[str, Any]:
        """Return ``TTLCacheStore.stats()`` of the underlying store."""
        return self.store.stats()
