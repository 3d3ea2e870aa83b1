"""Maintenance script: delete messages whose conversation no longer exists.

Without MONGO_TRANSACTIONS a conversation delete removes the conversation
first and its messages second. If the second step fails the messages are
unreachable but still stored; this script removes them.

Usage:
    python scripts/purge_orphaned_messages.py [--dry-run]

Ensure MONGO_URI and MONGO_DB environment variables are set.
"""
import argparse
import logging
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hub_server.repository.mongo_helper import MongoRepositorySingleton

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description='Delete messages of deleted conversations')
    parser.add_argument('--dry-run', action='store_true', help='Only report how many messages would be deleted')
    args = parser.parse_args()

    repos = MongoRepositorySingleton.get_instance()

    if args.dry_run:
        referenced = repos.message.collection.distinct('conversationId')
        alive = repos.conversation.existing_ids(referenced)
        orphaned = [c for c in referenced if c not in alive]
        count = repos.message.count({'conversationId': {'$in': orphaned}}) if orphaned else 0
        logger.info(f'{count} orphaned messages in {len(orphaned)} deleted conversations (dry run)')
        return

    deleted = repos.message.purge_orphans(repos.conversation)
    logger.info(f'Done. {deleted} orphaned messages deleted.')


if __name__ == '__main__':
    main()
