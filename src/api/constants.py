"""API-related constants."""

# HTTP Headers
CORRELATION_ID_HEADER = "X-Correlation-ID"
USER_ID_HEADER = "X-User-ID"
BEARER_PREFIX = "Bearer "

# Route prefixes
NOTIFICATIONS_PREFIX = "/api/notifications"
CRON_PREFIX = "/api/cron"

# Pagination
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
