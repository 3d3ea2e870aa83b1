"""Read-only access to user and expert profiles.

Both collections are owned by the account and expert services; messaging
only reads the public fields it needs to label conversations and messages.
"""
import logging
from typing import Dict, Iterable, Optional

from hub_server.messaging.models import ProfileSummary
from hub_server.repository.base_repository import BaseRepository
from hub_server.utils.helpers import to_object_id

logger = logging.getLogger(__name__)

USER_FIELDS = {'firstName': 1, 'lastName': 1, 'name': 1, 'email': 1, 'avatar': 1}


def _id_variants(value) -> list:
    """A user id may be stored as an ObjectId or as its string form."""
    variants = [str(value)]
    oid = to_object_id(value)
    if oid is not None:
        variants.append(oid)
    return variants


class ProfileRepository(BaseRepository):
    collection_name = 'users'

    def __init__(self, db):
        super().__init__(db)
        self.experts = db['experts']

    def user_summaries(self, user_ids: Iterable[str]) -> Dict[str, ProfileSummary]:
        """Batch-load profile summaries keyed by string user id."""
        wanted = []
        for user_id in set(str(u) for u in user_ids if u):
            wanted.extend(_id_variants(user_id))
        if not wanted:
            return {}

        summaries = {}
        for doc in self.collection.find({'_id': {'$in': wanted}}, USER_FIELDS):
            user_id = str(doc['_id'])
            name = doc.get('name') or ' '.join(
                p for p in (doc.get('firstName'), doc.get('lastName')) if p
            )
            summaries[user_id] = ProfileSummary(
                user_id=user_id,
                name=name or 'Unknown user',
                avatar=doc.get('avatar'),
                email=doc.get('email')
            )
        return summaries

    def resolve_expert_user_id(self, expert_profile_id) -> Optional[str]:
        """Map an expert profile id to the id of the user who owns it."""
        oid = to_object_id(expert_profile_id)
        if oid is None:
            return None
        doc = self.experts.find_one({'_id': oid}, {'userId': 1})
        if not doc or not doc.get('userId'):
            return None
        return str(doc['userId'])

    def expert_profile_for_user(self, user_id: str) -> Optional[dict]:
        """Public expert card (name, title, avatar) for the user, if they have one."""
        doc = self.experts.find_one({'userId': {'$in': _id_variants(user_id)}})
        if not doc:
            return None
        portfolio = doc.get('portfolio') or []
        avatar = portfolio[0].get('imageUrl') if portfolio and isinstance(portfolio[0], dict) else None
        return {
            'id': str(doc['_id']),
            'name': doc.get('name'),
            'title': doc.get('title'),
            'avatar': avatar or doc.get('avatar'),
        }
