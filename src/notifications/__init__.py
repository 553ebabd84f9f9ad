"""Notification fan-out: generation, persistence, sweeps and live delivery.

Components:
- **models**: ``Notification`` table and the ``NotificationType`` enum
- **schemas**: Wire records, typed payloads per type and the sweep report
- **repository**: Per-user queries and bulk read/retention statements
- **service**: ``NotificationService`` and the best-effort call-site wrapper
- **scheduler**: Overdue, reminder and retention sweeps
- **delivery**: Websocket ``ConnectionHub`` pushing records to live sessions
"""
