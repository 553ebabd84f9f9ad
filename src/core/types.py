"""Type aliases for dynamic data structures throughout the application.

All types defined here should be JSON-serializable so they can travel through
the cache, the HTTP API and the delivery channel unchanged.
"""

from typing import Any

# Cache keys are "{name}-{canonical params}" strings
type CacheKey = str

# Stored notification payload, the JSON form of a typed payload model
type PayloadData = dict[str, Any]

# Epoch timestamp in milliseconds
type EpochMillis = float
