"""Client library for the notification API.

- ``api``: httpx access to the notification endpoints
- ``channel``: auto-reconnecting websocket channel
- ``delivery``: push versus polling per consumer
- ``aggregate``: list and unread-count state
- ``session``: wiring of the above for one user
"""
