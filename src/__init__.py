"""Invoice Notify - notification service and client library for invoicing.

The service turns invoice events and scheduled sweeps into per-user
notifications and pushes them to connected clients in real time. The client
library keeps a cached, self-refreshing view of those notifications.

Architecture Overview:
- **API Layer**: FastAPI routers, middleware and the websocket channel
- **Core Layer**: Configuration, logging and the exception hierarchy
- **Domain Layer**: Notifications, billing reads and scheduled sweeps
- **Infrastructure Layer**: Async PostgreSQL sessions and repositories
- **Client Layer**: TTL cache, API client, channel and notification aggregate
"""
