"""Pydantic schema models shared by the API layer.

Notification request and response models live in
``src.notifications.schemas``; this package holds the error envelope.
"""
