"""Participant checks for conversations and their messages.

Every operation that takes a conversation id goes through ``require``,
which fetches the conversation with a participant-scoped query. A caller who
is not a participant gets the same NotFoundError as for an id that does not
exist.
"""
from hub_server.exception.NotFoundError import NotFoundError
from hub_server.messaging.models import Conversation

CONVERSATION_NOT_FOUND = 'Conversation not found'


def is_participant(conversation: Conversation, caller_id: str) -> bool:
    return conversation is not None and conversation.is_participant(caller_id)


class ConversationGuard:

    def __init__(self, conversation_repo):
        self.conversations = conversation_repo

    def find(self, caller_id: str, conversation_id, session=None):
        return self.conversations.find_scoped(conversation_id, caller_id, session=session)

    def require(self, caller_id: str, conversation_id, session=None) -> Conversation:
        """Return the conversation or raise NotFoundError."""
        conversation = self.find(caller_id, conversation_id, session=session)
        if not is_participant(conversation, caller_id):
            raise NotFoundError(CONVERSATION_NOT_FOUND)
        return conversation
