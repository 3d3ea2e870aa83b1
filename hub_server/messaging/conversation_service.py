"""Conversation lifecycle: start, look up, list and delete."""
import base64
import binascii
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from pymongo.errors import DuplicateKeyError

from hub_server.exception.NotFoundError import NotFoundError
from hub_server.messaging.models import Conversation, ConversationWithProfiles, ProfileSummary
from hub_server.repository.mongo_helper import run_atomic

logger = logging.getLogger(__name__)


def encode_cursor(conversation: Conversation) -> str:
    raw = f"{conversation.last_message_at.isoformat()}|{conversation.id}"
    return base64.urlsafe_b64encode(raw.encode('utf-8')).decode('ascii')


def decode_cursor(cursor: str) -> Tuple[datetime, str]:
    try:
        raw = base64.urlsafe_b64decode(cursor.encode('ascii')).decode('utf-8')
        at, conversation_id = raw.split('|', 1)
        return datetime.fromisoformat(at), conversation_id
    except (binascii.Error, UnicodeError, ValueError):
        raise ValueError('Invalid cursor')


class ConversationService:

    def __init__(self, conversation_repo, message_repo, profile_repo, guard, fanout, db=None, use_transaction=None):
        self.conversations = conversation_repo
        self.messages = message_repo
        self.profiles = profile_repo
        self.guard = guard
        self.fanout = fanout
        self.db = db if db is not None else conversation_repo.db
        self.use_transaction = use_transaction

    # =========================================================================
    # Queries
    # =========================================================================

    def list_for_user(self, caller_id: str, limit: Optional[int] = None,
                      cursor: Optional[str] = None) -> Tuple[List[ConversationWithProfiles], Optional[str]]:
        """List the caller's conversations, most recently active first.

        Without ``limit`` every conversation is returned. With it, the second
        element of the result is the cursor for the next page (None on the
        last page).
        """
        before = before_id = None
        if cursor:
            before, before_id = decode_cursor(cursor)
        if limit is not None and limit < 1:
            raise ValueError('limit must be >= 1')

        fetch = limit + 1 if limit else None
        conversations = self.conversations.list_for_user(caller_id, limit=fetch, before=before, before_id=before_id)

        next_cursor = None
        if limit and len(conversations) > limit:
            conversations = conversations[:limit]
            next_cursor = encode_cursor(conversations[-1])

        return self.enrich(conversations, caller_id), next_cursor

    def get_by_id(self, caller_id: str, conversation_id) -> ConversationWithProfiles:
        conversation = self.guard.require(caller_id, conversation_id)
        return self.enrich([conversation], caller_id)[0]

    # =========================================================================
    # Commands
    # =========================================================================

    def start_or_get(self, caller_id: str, expert_profile_id) -> Tuple[ConversationWithProfiles, bool]:
        """Return the caller's conversation with an expert, creating it if needed.

        Returns (conversation, created).
        """
        if not expert_profile_id or not str(expert_profile_id).strip():
            raise ValueError('expertId is required')

        expert_user_id = self.profiles.resolve_expert_user_id(str(expert_profile_id).strip())
        if not expert_user_id:
            raise NotFoundError('Expert not found')
        if expert_user_id == caller_id:
            raise ValueError('You cannot start a conversation with yourself')

        conversation = self.conversations.find_by_pair(caller_id, expert_user_id)
        created = False
        if conversation is None:
            try:
                conversation = self.conversations.create(Conversation(client_id=caller_id, expert_id=expert_user_id))
                created = True
            except DuplicateKeyError:
                # A concurrent request created the pair first
                conversation = self.conversations.find_by_pair(caller_id, expert_user_id)
                if conversation is None:
                    raise

        return self.enrich([conversation], caller_id)[0], created

    def delete(self, caller_id: str, conversation_id) -> Conversation:
        """Delete a conversation and all of its messages, then notify peers.

        Without transactions the conversation goes first: once it is gone no
        scoped query can reach its messages, and any left behind by a failure
        are removed by ``MessageRepository.purge_orphans``.
        """
        conversation = self.guard.require(caller_id, conversation_id)

        def _cascade(session):
            self.conversations.delete(conversation.conversation_id, session=session)
            return self.messages.delete_for_conversation(conversation.conversation_id, session=session)

        removed = run_atomic(self.db, _cascade, self.use_transaction)
        logger.info(f"Conversation {conversation.id} deleted by {caller_id} ({removed} messages)")

        self.fanout.conversation_deleted(conversation, caller_id)
        return conversation

    # =========================================================================
    # Enrichment
    # =========================================================================

    def enrich(self, conversations: List[Conversation], viewer_id: str) -> List[ConversationWithProfiles]:
        """Attach client/expert profile summaries for display."""
        user_ids = set()
        for conversation in conversations:
            user_ids.update(conversation.participants)
        summaries = self.profiles.user_summaries(user_ids)

        expert_cards = {}
        result = []
        for conversation in conversations:
            expert_id = conversation.expert_id
            if expert_id not in expert_cards:
                expert_cards[expert_id] = self.profiles.expert_profile_for_user(expert_id)
            card = expert_cards[expert_id]

            client = summaries.get(conversation.client_id) or ProfileSummary.unknown(conversation.client_id)
            expert = summaries.get(expert_id) or ProfileSummary.unknown(expert_id)
            if card:
                expert = ProfileSummary(
                    user_id=expert_id,
                    name=card.get('name') or expert.name,
                    title=card.get('title'),
                    avatar=card.get('avatar') or expert.avatar,
                    email=expert.email
                )

            result.append(ConversationWithProfiles(
                conversation=conversation,
                viewer_id=viewer_id,
                client=client,
                expert=expert,
                expert_profile=card
            ))
        return result
