"""Messaging service layer.

Wires the repositories, the participant guard and the live fan-out into the
conversation and message services. One instance is built per application and
stored on ``app.extensions['messaging']``.
"""
import logging

from flask import current_app

from config import config
from hub_server.messaging.conversation_service import ConversationService
from hub_server.messaging.fanout import MessageFanout
from hub_server.messaging.guard import ConversationGuard
from hub_server.messaging.message_service import MessageService
from hub_server.repository.conversation_repository import ConversationRepository
from hub_server.repository.message_repository import MessageRepository
from hub_server.repository.mongo_helper import MongoRepositorySingleton
from hub_server.repository.profile_repository import ProfileRepository

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'messaging'


class MessagingService:
    """High-level messaging service."""

    def __init__(self, db, emitter=None, use_transaction=None):
        self.db = db
        self.conversation_repo = ConversationRepository(db)
        self.message_repo = MessageRepository(db)
        self.profile_repo = ProfileRepository(db)

        self.guard = ConversationGuard(self.conversation_repo)
        self.fanout = MessageFanout(self.message_repo, emitter)

        self.conversations = ConversationService(
            self.conversation_repo, self.message_repo, self.profile_repo,
            self.guard, self.fanout, db=db, use_transaction=use_transaction
        )
        self.messages = MessageService(
            self.conversation_repo, self.message_repo, self.profile_repo,
            self.guard, self.fanout, db=db, use_transaction=use_transaction,
            default_page_size=config.MESSAGES_PAGE_SIZE,
            max_page_size=config.MESSAGES_MAX_PAGE_SIZE
        )

    def purge_orphans(self) -> int:
        return self.message_repo.purge_orphans(self.conversation_repo)


def init_messaging(app, emitter=None, db=None, use_transaction=None) -> MessagingService:
    """Build the messaging service for ``app``."""
    if db is None:
        db = MongoRepositorySingleton.get_instance().db
    service = MessagingService(db, emitter=emitter, use_transaction=use_transaction)
    app.extensions[EXTENSION_KEY] = service
    logger.debug(f"Messaging initialized for app={app.name}")
    return service


def get_messaging_service() -> MessagingService:
    """Messaging service of the current application."""
    return current_app.extensions[EXTENSION_KEY]
