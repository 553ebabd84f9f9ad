"""Smart in-process cache with TTL expiry and pattern invalidation.

Components:
- **store**: ``TTLCacheStore`` with per-entry TTL, the process-wide instance
  and the periodic cleanup task
- **keys**: Deterministic key builders and the TTL table per data category
- **invalidation**: Domain-level bulk invalidations (invoices, customers,
  notifications, settings)
- **binding**: ``CachedFetch`` read-through binding of a fetch to a key

The store is memory-only and safe to recreate; a multi-process deployment
would swap it for a shared external cache behind the same interface.
"""
