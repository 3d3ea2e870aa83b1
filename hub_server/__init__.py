from .routes.conversations import conversations_bp
from .routes.public import public_bp

# Application factory is defined in server.py; the blueprints are re-exported
# here so that tests and alternative runners can build an app without
# importing server.py.

__all__ = [
    "conversations_bp",
    "public_bp",
]
