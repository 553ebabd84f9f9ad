"""Infrastructure layer for data persistence.

Key responsibilities:
- **Database access**: Async PostgreSQL with SQLAlchemy 2.0+
- **Repository pattern**: Generic CRUD and bulk operations for all entities
- **Connection management**: Pooling, health checks, and lifecycle
"""
