import argparse
import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from config import config
from hub_server.routes.conversations import conversations_bp
from hub_server.routes.public import public_bp
from hub_server.messaging.service import init_messaging
from hub_server.security.authentication import AuthSecurity
from hub_server.utils.logging_config import configure_logging
from hub_server.websocket.hub import init_websocket_hub

logger = logging.getLogger(__name__)


def configure_auth_from_env():
    """Configure AuthSecurity from config / environment variables.

    JWT_SECRET (required): secret key used to verify tokens.
    JWT_ALGORITHM (optional): default HS256.
    ACCESS_TOKEN_MINUTES (optional): default 7 days.
    """
    config.validate_required()
    AuthSecurity.configure(
        secret_key=config.JWT_SECRET,
        algorithm=config.JWT_ALGORITHM,
        access_token_expire_minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES,
    )


def create_app(db=None, use_transaction=None):
    """Application factory used by server.py and tests.

    Registers blueprints, configures CORS and attaches a Socket.IO server
    with its own WebSocket hub. Pass ``db`` to run against an already
    connected database. Returns (app, socketio).
    """
    app = Flask(__name__)
    origins = '*' if config.CORS_ORIGINS == '*' else config.CORS_ORIGINS_LIST
    CORS(app, origins=origins)

    app.register_blueprint(public_bp)
    app.register_blueprint(conversations_bp)

    socketio = SocketIO(app, async_mode='threading', cors_allowed_origins=origins)
    hub = init_websocket_hub(app, socketio)
    init_messaging(app, emitter=hub.emitter, db=db, use_transaction=use_transaction)

    return app, socketio


def parse_args():
    """Parse simple CLI arguments for running the server."""
    parser = argparse.ArgumentParser(description='Run the AutomateHub messaging server')
    parser.add_argument('--port', type=int, default=config.PORT, help='TCP port to bind (default: 5000 or PORT env)')
    parser.add_argument('--host', default=config.HOST, help='Interface to bind (default: 0.0.0.0 or HOST env)')
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    configure_logging()
    configure_auth_from_env()
    app, socketio = create_app()
    logger.debug('Configuration: %s', config.to_dict())
    logger.info('Starting server with Socket.IO on %s:%s (env=%s)', args.host, args.port, config.ENV)
    socketio.run(app, host=args.host, port=args.port, debug=config.DEBUG, allow_unsafe_werkzeug=True)
