from pymongo import MongoClient, ASCENDING, DESCENDING
import logging

from config import config

logger = logging.getLogger(__name__)


class MongoRepositorySingleton:
    """Process-wide access to the MongoDB database and repositories.

    Tests (and alternative runners) can install their own database object
    with ``use_db``; every repository created afterwards binds to it.
    """
    _instance = None
    _db_instance = None

    @classmethod
    def get_db(cls):
        """Return the configured MongoDB database object.

        Uses MONGO_URI and MONGO_DB from config, defaulting to
        mongodb://localhost:27017 and 'automatehub' for local development.
        """
        if cls._db_instance is not None:
            return cls._db_instance
        mongo_uri = config.MONGO_URI
        db_name = config.MONGO_DB
        logger.info(f"[MongoRepositorySingleton] Connecting to MongoDB DB: {db_name}")
        client = MongoClient(mongo_uri)
        cls._db_instance = client[db_name]
        return cls._db_instance

    @classmethod
    def use_db(cls, db):
        """Install an already-connected database and drop cached repositories."""
        cls._db_instance = db
        cls._instance = None

    @classmethod
    def reset(cls):
        cls._db_instance = None
        cls._instance = None

    @classmethod
    def get_instance(cls):
        return cls.__new__(cls)

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._init_repositories()
        return cls._instance

    def _init_repositories(self):
        from hub_server.repository.conversation_repository import ConversationRepository
        from hub_server.repository.message_repository import MessageRepository
        from hub_server.repository.profile_repository import ProfileRepository

        db = self.get_db()
        self.db = db
        self.conversation = ConversationRepository(db)
        self.message = MessageRepository(db)
        self.profile = ProfileRepository(db)
        try:
            ensure_indexes(db)
        except Exception as e:
            logger.exception(f'Failed to ensure DB indexes: {e}')


def ensure_indexes(db):
    """Create the indexes used by messaging query paths (idempotent)."""
    db['conversations'].create_index([('participants', ASCENDING)], name='conversations_participants')
    db['conversations'].create_index(
        [('expertId', ASCENDING), ('clientId', ASCENDING)],
        unique=True, name='conversations_expert_client'
    )
    db['conversations'].create_index(
        [('participants', ASCENDING), ('lastMessageAt', DESCENDING)],
        name='conversations_participants_last_message_at'
    )
    db['messages'].create_index(
        [('conversationId', ASCENDING), ('createdAt', DESCENDING)],
        name='messages_conversation_created_at'
    )
    db['messages'].create_index([('senderId', ASCENDING)], name='messages_sender')
    db['messages'].create_index([('receiverId', ASCENDING), ('isRead', ASCENDING)], name='messages_receiver_is_read')
    logger.info('Ensured messaging DB indexes')


def run_atomic(db, callback, use_transaction=None):
    """Run ``callback(session)`` as one unit of work.

    With transactions enabled the callback runs inside a multi-document
    transaction and ``session`` is a pymongo ClientSession. Otherwise the
    callback runs directly with ``session=None`` and callers must order their
    writes so a partial failure stays invisible.
    """
    if use_transaction is None:
        use_transaction = config.MONGO_TRANSACTIONS
    if not use_transaction:
        return callback(None)
    with db.client.start_session() as session:
        return session.with_transaction(callback)
