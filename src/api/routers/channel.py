"""Websocket endpoint of the real-time delivery channel."""

from fastapi import APIRouter, WebSocket

from src.api.dependencies import Hub
from src.core.config import get_settings

router = APIRouter(tags=["channel"])


@router.websocket(get_settings().channel_config.websocket_path)
async def notifications_channel(websocket: WebSocket, hub: Hub) -> None:
    """Accept the socket and hand it to the connection hub until it closes."""
    await websocket.accept()
    await hub.serve(websocket)
