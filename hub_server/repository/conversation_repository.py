import logging
from datetime import datetime
from typing import List, Optional

from pymongo import DESCENDING, ReturnDocument

from hub_server.messaging.models import Conversation
from hub_server.repository.base_repository import BaseRepository
from hub_server.utils.helpers import to_object_id, utc_now

logger = logging.getLogger(__name__)


class ConversationRepository(BaseRepository):
    collection_name = 'conversations'

    def find_scoped(self, conversation_id, user_id: str, session=None) -> Optional[Conversation]:
        """Fetch a conversation only if ``user_id`` is one of its participants.

        Malformed ids, missing conversations and conversations the user is not
        part of all return None.
        """
        oid = to_object_id(conversation_id)
        if oid is None or not user_id:
            return None
        doc = self.find_one({'_id': oid, 'participants': str(user_id)}, session=session)
        return Conversation.from_doc(doc) if doc else None

    def find_by_pair(self, client_id: str, expert_id: str, session=None) -> Optional[Conversation]:
        doc = self.find_one({'clientId': client_id, 'expertId': expert_id}, session=session)
        return Conversation.from_doc(doc) if doc else None

    def create(self, conversation: Conversation, session=None) -> Conversation:
        """Insert a new conversation; raises DuplicateKeyError if the pair exists."""
        self.collection.insert_one(conversation.to_db_doc(), session=session)
        logger.info(f"Conversation {conversation.id} created between client={conversation.client_id} expert={conversation.expert_id}")
        return conversation

    def list_for_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
        before: Optional[datetime] = None,
        before_id=None
    ) -> List[Conversation]:
        """Conversations the user participates in, most recently active first.

        ``before``/``before_id`` form a keyset cursor: only conversations that
        sort strictly after that position are returned.
        """
        query = {'participants': str(user_id)}
        if before is not None:
            oid = to_object_id(before_id)
            if oid is not None:
                query['$or'] = [
                    {'lastMessageAt': {'$lt': before}},
                    {'lastMessageAt': before, '_id': {'$lt': oid}},
                ]
            else:
                query['lastMessageAt'] = {'$lt': before}

        cursor = self.collection.find(query).sort([('lastMessageAt', DESCENDING), ('_id', DESCENDING)])
        if limit:
            cursor = cursor.limit(limit)
        return [Conversation.from_doc(doc) for doc in cursor]

    def record_last_message(self, conversation_id, content: str, at: datetime, session=None) -> Optional[Conversation]:
        """Update the denormalized last-message summary (last writer wins)."""
        doc = self.collection.find_one_and_update(
            {'_id': to_object_id(conversation_id)},
            {'$set': {'lastMessage': content, 'lastMessageAt': at, 'updatedAt': utc_now()}},
            return_document=ReturnDocument.AFTER,
            session=session
        )
        return Conversation.from_doc(doc) if doc else None

    def delete(self, conversation_id, session=None) -> bool:
        result = self.collection.delete_one({'_id': to_object_id(conversation_id)}, session=session)
        return result.deleted_count > 0

    def existing_ids(self, conversation_ids) -> set:
        """Return the subset of ``conversation_ids`` that still exist."""
        ids = [to_object_id(c) for c in conversation_ids]
        ids = [c for c in ids if c is not None]
        if not ids:
            return set()
        return {doc['_id'] for doc in self.collection.find({'_id': {'$in': ids}}, {'_id': 1})}
