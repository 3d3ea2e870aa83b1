"""Migration script: create the indexes used by the messaging query paths.

This script creates:
1. conversations(participants) and conversations(participants, lastMessageAt desc)
2. Unique conversations(expertId, clientId), one conversation per pair
3. messages(conversationId, createdAt desc), messages(senderId), messages(receiverId, isRead)

Usage:
    python scripts/add_indexes.py

Ensure MONGO_URI and MONGO_DB environment variables are set.
"""
import logging
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hub_server.repository.mongo_helper import MongoRepositorySingleton, ensure_indexes

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def main():
    logger.info('Starting index migration...')
    logger.info('=' * 50)

    db = MongoRepositorySingleton.get_db()
    ensure_indexes(db)

    for name in ('conversations', 'messages'):
        indexes = sorted(db[name].index_information())
        logger.info(f'  {name}: {", ".join(indexes)}')

    logger.info('=' * 50)
    logger.info('Index migration complete.')


if __name__ == '__main__':
    main()
