"""HTTP and websocket API layer built on FastAPI.

Key components:
- **main**: Application factory and lifecycle management
- **routers**: Notification endpoints, cron trigger and websocket channel
- **dependencies**: Caller identity, repositories, hub and sweep runner
- **middleware**: Correlation IDs and centralized error handling
- **schemas**: Error response envelope
- **utils**: orjson response class
"""
