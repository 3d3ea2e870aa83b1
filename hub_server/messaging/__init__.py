"""Client/expert messaging core.

This module provides:
- Conversations between one client and one expert
- Paginated message history and read receipts
- Live fan-out of new messages, read receipts and deletions
"""

from hub_server.messaging.models import (
    Conversation, ConversationWithProfiles, Message, MessageWithProfiles,
    MessageType, ProfileSummary
)
from hub_server.messaging.service import (
    MessagingService, init_messaging, get_messaging_service
)

__all__ = [
    # Models
    'Conversation', 'ConversationWithProfiles', 'Message', 'MessageWithProfiles',
    'MessageType', 'ProfileSummary',
    # Service
    'MessagingService', 'init_messaging', 'get_messaging_service'
]
