import logging
from datetime import datetime
from typing import List

from pymongo import DESCENDING

from hub_server.messaging.models import Message
from hub_server.repository.base_repository import BaseRepository
from hub_server.utils.helpers import to_object_id

logger = logging.getLogger(__name__)


class MessageRepository(BaseRepository):
    collection_name = 'messages'

    def insert(self, message: Message, session=None) -> Message:
        self.collection.insert_one(message.to_db_doc(), session=session)
        return message

    def newest_first(self, conversation_id, skip: int = 0, limit: int = 50) -> List[Message]:
        """One page of a conversation's history, newest message first.

        ``_id`` breaks ties between messages created in the same millisecond.
        """
        cursor = (
            self.collection.find({'conversationId': to_object_id(conversation_id)})
            .sort([('createdAt', DESCENDING), ('_id', DESCENDING)])
            .skip(skip)
            .limit(limit)
        )
        return [Message.from_doc(doc) for doc in cursor]

    def count_for_conversation(self, conversation_id) -> int:
        return self.count({'conversationId': to_object_id(conversation_id)})

    def mark_read_for_receiver(self, conversation_id, receiver_id: str, at: datetime, session=None) -> int:
        """Flag every unread message addressed to ``receiver_id`` as read."""
        result = self.collection.update_many(
            {
                'conversationId': to_object_id(conversation_id),
                'receiverId': str(receiver_id),
                'isRead': False
            },
            {'$set': {'isRead': True, 'readAt': at, 'updatedAt': at}},
            session=session
        )
        return result.modified_count

    def count_unread(self, receiver_id: str) -> int:
        return self.count({'receiverId': str(receiver_id), 'isRead': False})

    def delete_for_conversation(self, conversation_id, session=None) -> int:
        result = self.collection.delete_many({'conversationId': to_object_id(conversation_id)}, session=session)
        return result.deleted_count

    def purge_orphans(self, conversation_repo) -> int:
        """Delete messages whose conversation no longer exists."""
        referenced = self.collection.distinct('conversationId')
        alive = conversation_repo.existing_ids(referenced)
        orphaned = [c for c in referenced if c not in alive]
        if not orphaned:
            return 0
        result = self.collection.delete_many({'conversationId': {'$in': orphaned}})
        logger.info(f"Purged {result.deleted_count} orphaned messages from {len(orphaned)} deleted conversations")
        return result.deleted_count
