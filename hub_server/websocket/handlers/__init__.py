"""WebSocket event handlers package."""

from hub_server.websocket.handlers.chat_handler import ChatHandler, init_chat_handler

__all__ = ['ChatHandler', 'init_chat_handler']
