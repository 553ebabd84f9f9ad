"""FastAPI middleware and exception handling.

- **RequestContextMiddleware**: Manages correlation IDs and request context
- **error_handler**: Centralized exception handling with consistent error responses
"""
