from flask import Blueprint

from config import config
from hub_server.utils.helpers import respond_success, utc_now

public_bp = Blueprint('public', __name__)


@public_bp.route('/health', methods=['GET'])
def health_check():
    """Liveness endpoint for load balancers and uptime checks.

    Does not touch the database.
    """
    return respond_success({
        'message': f'{config.APP_NAME} is running',
        'timestamp': utc_now().isoformat() + 'Z',
        'environment': config.ENV,
        'version': config.APP_VERSION
    })
