from typing import Any, Dict, Optional


class BaseRepository:
    """Thin wrapper that binds a repository to one MongoDB collection."""

    collection_name: str = None

    def __init__(self, db, collection_name: Optional[str] = None):
        self.db = db
        self.collection = db[collection_name or self.collection_name]

    def find_one(self, query: Dict[str, Any], session=None) -> Optional[Dict[str, Any]]:
        """Find a single document matching the query."""
        return self.collection.find_one(query, session=session)

    def count(self, query: Dict[str, Any]) -> int:
        """Count documents matching the query."""
        return self.collection.count_documents(query)
