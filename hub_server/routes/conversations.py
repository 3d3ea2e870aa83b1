"""Conversation/Messaging REST API routes.

REST API Endpoints:
- GET    /api/conversations                      - List the caller's conversations
- GET    /api/conversations/unread-count         - Caller's total unread count
- POST   /api/conversations/start                - Get or create a conversation with an expert
- GET    /api/conversations/{id}                 - Conversation details
- GET    /api/conversations/{id}/messages        - Message history (paginated)
- POST   /api/conversations/{id}/messages        - Send a message
- PUT    /api/conversations/{id}/messages/read   - Mark the caller's messages read
- DELETE /api/conversations/{id}                 - Delete a conversation and its messages

Writes are fanned out to live connections after they are stored, exactly as
when the same action arrives over the WebSocket.
"""
import logging

from flask import Blueprint, request

from config import config
from hub_server.messaging.service import get_messaging_service
from hub_server.utils.decorators import handle_errors, require_auth, validate_json
from hub_server.utils.helpers import respond_success, respond_error, parse_pagination

logger = logging.getLogger(__name__)

conversations_bp = Blueprint('conversations', __name__, url_prefix='/api/conversations')


def _caller(auth_payload) -> str:
    return auth_payload['user_id']


# =============================================================================
# Conversation Endpoints
# =============================================================================

@conversations_bp.route('', methods=['GET'])
@handle_errors
@require_auth
def list_conversations(auth_payload):
    """List conversations for the current user, most recently active first.

    Query Params:
        limit: int - Page size (optional; all conversations when omitted)
        cursor: str - ``nextCursor`` from the previous page

    Response:
        {
            "success": true,
            "conversations": [...],
            "count": 10,
            "nextCursor": "..." | null
        }
    """
    limit = None
    if request.args.get('limit'):
        try:
            limit = int(request.args['limit'])
        except ValueError:
            return respond_error({'limit': 'limit must be an integer'}, status=400)
        if limit < 1 or limit > config.MESSAGES_MAX_PAGE_SIZE:
            return respond_error({'limit': f'limit must be between 1 and {config.MESSAGES_MAX_PAGE_SIZE}'}, status=400)

    conversations, next_cursor = get_messaging_service().conversations.list_for_user(
        _caller(auth_payload), limit=limit, cursor=request.args.get('cursor')
    )
    return respond_success({
        'conversations': [c.to_dict() for c in conversations],
        'count': len(conversations),
        'nextCursor': next_cursor
    })


@conversations_bp.route('/unread-count', methods=['GET'])
@handle_errors
@require_auth
def unread_count(auth_payload):
    count = get_messaging_service().messages.unread_count(_caller(auth_payload))
    return respond_success({'unreadCount': count})


@conversations_bp.route('/start', methods=['POST'])
@handle_errors
@require_auth
@validate_json('expertId')
def start_conversation(auth_payload):
    """Get or create the caller's conversation with an expert.

    Body: {"expertId": "<expert profile id>"}

    Returns 201 when the conversation was created, 200 when it already existed.
    """
    data = request.get_json()
    conversation, created = get_messaging_service().conversations.start_or_get(
        _caller(auth_payload), data.get('expertId')
    )
    return respond_success({'conversation': conversation.to_dict()}, status=201 if created else 200)


@conversations_bp.route('/<conversation_id>', methods=['GET'])
@handle_errors
@require_auth
def get_conversation(conversation_id, auth_payload):
    conversation = get_messaging_service().conversations.get_by_id(_caller(auth_payload), conversation_id)
    return respond_success({'conversation': conversation.to_dict()})


@conversations_bp.route('/<conversation_id>', methods=['DELETE'])
@handle_errors
@require_auth
def delete_conversation(conversation_id, auth_payload):
    """Delete a conversation with all of its messages.

    The other participant and anyone viewing the conversation receive
    ``conversation_deleted``.
    """
    conversation = get_messaging_service().conversations.delete(_caller(auth_payload), conversation_id)
    return respond_success({'message': 'Conversation deleted', 'conversationId': conversation.id})


# =============================================================================
# Message Endpoints
# =============================================================================

@conversations_bp.route('/<conversation_id>/messages', methods=['GET'])
@handle_errors
@require_auth
def list_messages(conversation_id, auth_payload):
    """Message history, oldest to newest within the page.

    Query Params:
        page: int - 1 is the most recent page (default: 1)
        limit: int - Page size (default: 50, max: 100)
    """
    page, limit, errors = parse_pagination(
        request.args,
        default_limit=config.MESSAGES_PAGE_SIZE,
        max_limit=config.MESSAGES_MAX_PAGE_SIZE
    )
    if errors:
        return respond_error(errors, status=400)

    history = get_messaging_service().messages.list_for_conversation(
        _caller(auth_payload), conversation_id, page=page, limit=limit
    )
    return respond_success(history)


@conversations_bp.route('/<conversation_id>/messages', methods=['POST'])
@handle_errors
@require_auth
@validate_json('content', 'receiverId')
def send_message(conversation_id, auth_payload):
    """Send a message.

    Body: {"content": "...", "receiverId": "...", "messageType": "text"}
    """
    data = request.get_json()
    message = get_messaging_service().messages.deliver(
        _caller(auth_payload),
        conversation_id,
        data.get('receiverId'),
        data.get('content'),
        data.get('messageType')
    )
    return respond_success({'message': message.to_dict()}, status=201)


@conversations_bp.route('/<conversation_id>/messages/read', methods=['PUT'])
@handle_errors
@require_auth
def mark_messages_read(conversation_id, auth_payload):
    updated = get_messaging_service().messages.mark_read(_caller(auth_payload), conversation_id)
    return respond_success({'conversationId': conversation_id, 'updated': updated})
