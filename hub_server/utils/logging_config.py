import logging

from config import config


def configure_logging(level: str = None, fmt: str = None):
    """Configure root logging once from application config."""
    logging.basicConfig(
        level=getattr(logging, (level or config.LOG_LEVEL), logging.INFO),
        format=fmt or config.LOG_FORMAT,
    )
    # Socket.IO/engine.IO log every packet at INFO
    logging.getLogger('socketio').setLevel(logging.WARNING)
    logging.getLogger('engineio').setLevel(logging.WARNING)
