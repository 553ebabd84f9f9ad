"""HTTP and websocket routers.

- **notifications**: List, stats, read/mark-all-read and delete endpoints
- **cron**: Entry point of the periodic sweeps
- **channel**: Websocket endpoint of the real-time delivery channel
"""
