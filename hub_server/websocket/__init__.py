"""WebSocket module for real-time communication.

This module provides:
- Centralized WebSocket Hub (handshake authentication, connection tracking)
- Room registry for per-user and per-conversation fan-out
- Event Emitter and the chat event handlers
"""

from hub_server.websocket.event_emitter import EventEmitter
from hub_server.websocket.hub import WebSocketHub, init_websocket_hub
from hub_server.websocket.rooms import RoomRegistry

__all__ = ['EventEmitter', 'WebSocketHub', 'init_websocket_hub', 'RoomRegistry']
