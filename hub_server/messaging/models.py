"""Messaging data models for client/expert conversations.

Collections:
- conversations: one document per client/expert pair
- messages: individual messages, each carrying its sender and receiver
- users / experts: read-only profile sources owned by other services

Stored documents use camelCase keys. User ids are stored as strings;
conversation and message ids are ObjectIds.
"""
from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum

from bson import ObjectId

from hub_server.utils.helpers import utc_now


class MessageType(str, Enum):
    TEXT = "text"
    FILE = "file"
    IMAGE = "image"

    @classmethod
    def parse(cls, value) -> 'MessageType':
        """Return the MessageType for ``value``; raises ValueError if unknown."""
        if value is None or value == '':
            return cls.TEXT
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"messageType must be one of: {', '.join(t.value for t in cls)}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ProfileSummary:
    """Public profile fields shown next to a conversation or message."""

    def __init__(self, user_id: str, name: str = '', title: Optional[str] = None,
                 avatar: Optional[str] = None, email: Optional[str] = None):
        self.user_id = user_id
        self.name = name
        self.title = title
        self.avatar = avatar
        self.email = email

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.user_id,
            'name': self.name,
            'title': self.title,
            'avatar': self.avatar,
            'email': self.email,
        }

    @classmethod
    def unknown(cls, user_id: str) -> 'ProfileSummary':
        return cls(user_id=user_id, name='Unknown user')


class Conversation:
    """Conversation document structure."""

    def __init__(
        self,
        client_id: str,
        expert_id: str,
        conversation_id: Optional[ObjectId] = None,
        participants: Optional[List[str]] = None,
        last_message: str = '',
        last_message_at: Optional[datetime] = None,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        now = utc_now()
        self.conversation_id = conversation_id or ObjectId()
        self.client_id = client_id
        self.expert_id = expert_id
        self.participants = participants or [client_id, expert_id]
        self.last_message = last_message
        self.last_message_at = last_message_at or now
        self.is_active = is_active
        self.created_at = created_at or now
        self.updated_at = updated_at or self.created_at

    @property
    def id(self) -> str:
        return str(self.conversation_id)

    def is_participant(self, user_id: str) -> bool:
        return user_id is not None and str(user_id) in self.participants

    def counterpart_of(self, user_id: str) -> Optional[str]:
        """Return the other participant's id, or None if ``user_id`` is not a participant."""
        if not self.is_participant(user_id):
            return None
        return self.expert_id if str(user_id) == self.client_id else self.client_id

    def role_of(self, user_id: str) -> Optional[str]:
        if str(user_id) == self.client_id:
            return 'client'
        if str(user_id) == self.expert_id:
            return 'expert'
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            '_id': self.id,
            'id': self.id,
            'participants': list(self.participants),
            'clientId': self.client_id,
            'expertId': self.expert_id,
            'lastMessage': self.last_message,
            'lastMessageAt': _iso(self.last_message_at),
            'isActive': self.is_active,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def to_db_doc(self) -> Dict[str, Any]:
        return {
            '_id': self.conversation_id,
            'participants': list(self.participants),
            'clientId': self.client_id,
            'expertId': self.expert_id,
            'lastMessage': self.last_message,
            'lastMessageAt': self.last_message_at,
            'isActive': self.is_active,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> 'Conversation':
        return cls(
            conversation_id=doc.get('_id'),
            client_id=str(doc.get('clientId')),
            expert_id=str(doc.get('expertId')),
            participants=[str(p) for p in doc.get('participants', [])],
            last_message=doc.get('lastMessage') or '',
            last_message_at=doc.get('lastMessageAt'),
            is_active=doc.get('isActive', True),
            created_at=doc.get('createdAt'),
            updated_at=doc.get('updatedAt')
        )


class ConversationWithProfiles:
    """A conversation enriched with participant profiles for one viewer."""

    def __init__(
        self,
        conversation: Conversation,
        viewer_id: str,
        client: ProfileSummary,
        expert: ProfileSummary,
        expert_profile: Optional[Dict[str, Any]] = None
    ):
        self.conversation = conversation
        self.viewer_id = viewer_id
        self.client = client
        self.expert = expert
        self.expert_profile = expert_profile

    @property
    def id(self) -> str:
        return self.conversation.id

    @property
    def counterpart(self) -> ProfileSummary:
        if self.viewer_id == self.conversation.client_id:
            return self.expert
        return self.client

    def to_dict(self) -> Dict[str, Any]:
        data = self.conversation.to_dict()
        data['client'] = self.client.to_dict()
        data['expert'] = self.expert.to_dict()
        data['counterpart'] = self.counterpart.to_dict()
        data['role'] = self.conversation.role_of(self.viewer_id)
        data['expertProfile'] = self.expert_profile
        return data


class Message:
    """Message document structure."""

    def __init__(
        self,
        conversation_id: ObjectId,
        sender_id: str,
        receiver_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        message_id: Optional[ObjectId] = None,
        is_read: bool = False,
        read_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.message_id = message_id or ObjectId()
        self.conversation_id = conversation_id
        self.sender_id = sender_id
        self.receiver_id = receiver_id
        self.content = content
        self.message_type = MessageType.parse(message_type)
        self.is_read = is_read
        self.read_at = read_at
        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or self.created_at

    @property
    def id(self) -> str:
        return str(self.message_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            '_id': self.id,
            'id': self.id,
            'conversationId': str(self.conversation_id),
            'senderId': self.sender_id,
            'receiverId': self.receiver_id,
            'content': self.content,
            'messageType': self.message_type.value,
            'isRead': self.is_read,
            'readAt': _iso(self.read_at),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def to_db_doc(self) -> Dict[str, Any]:
        return {
            '_id': self.message_id,
            'conversationId': self.conversation_id,
            'senderId': self.sender_id,
            'receiverId': self.receiver_id,
            'content': self.content,
            'messageType': self.message_type.value,
            'isRead': self.is_read,
            'readAt': self.read_at,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> 'Message':
        return cls(
            message_id=doc.get('_id'),
            conversation_id=doc.get('conversationId'),
            sender_id=str(doc.get('senderId')),
            receiver_id=str(doc.get('receiverId')),
            content=doc.get('content') or '',
            message_type=doc.get('messageType', MessageType.TEXT),
            is_read=doc.get('isRead', False),
            read_at=doc.get('readAt'),
            created_at=doc.get('createdAt'),
            updated_at=doc.get('updatedAt')
        )


class MessageWithProfiles:
    """A message with sender and receiver profile summaries attached."""

    def __init__(self, message: Message, sender: ProfileSummary, receiver: ProfileSummary):
        self.message = message
        self.sender = sender
        self.receiver = receiver

    @property
    def id(self) -> str:
        return self.message.id

    def to_dict(self) -> Dict[str, Any]:
        data = self.message.to_dict()
        data['sender'] = self.sender.to_dict()
        data['receiver'] = self.receiver.to_dict()
        return data
