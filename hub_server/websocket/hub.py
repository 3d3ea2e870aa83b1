"""Centralized WebSocket Hub.

Authenticates live connections and owns the room registry and event emitter
used by the chat handler and by REST-triggered fan-out.
"""
import logging
from typing import Optional

from flask import Flask, request
from flask_socketio import ConnectionRefusedError, SocketIO

from hub_server.exception.UnauthorizedError import UnauthorizedError
from hub_server.security.authentication import AuthSecurity, extract_bearer
from hub_server.websocket.event_emitter import EventEmitter
from hub_server.websocket.rooms import RoomRegistry

logger = logging.getLogger(__name__)

AUTHENTICATION_ERROR = 'authentication error'


class WebSocketHub:
    """Centralized WebSocket Hub for real-time communication."""

    def __init__(self, socketio: SocketIO):
        self.socketio = socketio
        self.rooms = RoomRegistry(socketio)
        self.emitter = EventEmitter(socketio, self.rooms)
        self._chat_handler = None

    def init_app(self, app: Flask):
        """Register connection and chat handlers on the Socket.IO server."""
        logger.debug(f"WS_HUB: init app={app.name}, mode={getattr(self.socketio, 'async_mode', '?')}")
        self._register_handlers()

        from hub_server.websocket.handlers.chat_handler import init_chat_handler
        self._chat_handler = init_chat_handler(self.socketio, self.rooms, self.emitter)

        app.extensions['websocket_hub'] = self
        logger.debug("WS_HUB: initialized")

    def _register_handlers(self):

        @self.socketio.on_error_default
        def default_error_handler(e):
            logger.exception(f"WS error: {e}")

        @self.socketio.on('connect')
        def handle_connect(auth=None):
            """Verify the handshake credential before accepting the connection."""
            socket_id = request.sid
            token = self._token_from_handshake(auth)

            user_id = self._authenticate(token)
            if not user_id:
                logger.warning(f"WS auth failed: sid={socket_id}, ip={request.remote_addr}")
                raise ConnectionRefusedError(AUTHENTICATION_ERROR)

            self.rooms.bind(socket_id, user_id)
            logger.info(f"WS connected: user={user_id}, sid={socket_id}")

        @self.socketio.on('disconnect')
        def handle_disconnect(reason=None):
            socket_id = request.sid
            user_id = self.rooms.user_of(socket_id)
            rooms = self.rooms.release(socket_id)
            logger.info(f"WS disconnected: user={user_id}, sid={socket_id}, rooms={len(rooms)}")

    @staticmethod
    def _token_from_handshake(auth) -> Optional[str]:
        # auth payload first, then Authorization header, then ?token=
        token = None
        if auth and isinstance(auth, dict):
            token = auth.get('token')
        if not token:
            token = extract_bearer(request.headers.get('Authorization'))
        if not token:
            token = request.args.get('token')
        return token

    @staticmethod
    def _authenticate(token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        try:
            return AuthSecurity.resolve_user_id(token)
        except UnauthorizedError as e:
            logger.debug(f"WS auth error: {e}")
            return None


def init_websocket_hub(app: Flask, socketio: SocketIO) -> WebSocketHub:
    """Create a hub for ``app`` with its own room registry."""
    hub = WebSocketHub(socketio)
    hub.init_app(app)
    return hub
