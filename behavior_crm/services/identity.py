"""
Identity resolution.

Maps the auth provider's subject (users.clerk_id) to the internal user id that
every analytics table is keyed by. Lookups are cached per subject; a miss is
not cached, so a user created after a failed lookup resolves on the next call.
"""

import logging
from typing import Optional

from behavior_crm.core.cache import TTLCache
from behavior_crm.core.errors import NotFoundError, UnauthenticatedError
from behavior_crm.core.log import log_event
from behavior_crm.core.store import RecordStore

# Logger for this module
logger = logging.getLogger(__name__)


class IdentityResolver:
    """
    Resolve auth subjects to user ids through the store, with a TTL cache.

    Args:
        store: Store holding the users table.
        cache: Cache shared across requests for subject -> user id.
    """

    def __init__(self, store: RecordStore, cache: TTLCache) -> None:
        self.store = store
        self.cache = cache

    async def resolve_user_id(self, external_id: Optional[str]) -> str:
        """
        Raises:
            UnauthenticatedError: No subject was supplied.
            NotFoundError: No user row carries the subject.
        """
        if not external_id:
            raise UnauthenticatedError()

        cached = self.cache.get(external_id)
        if cached is not None:
            return cached

        rows = await self.store.select('users', filters={'clerk_id': external_id}, limit=1)
        if not rows:
            log_event(logger, logging.WARNING, 'identity.unknown_subject', subject=external_id)
            raise NotFoundError("User not found")

        user_id = str(rows[0]['id'])
        self.cache.set(external_id, user_id)
        log_event(logger, logging.DEBUG, 'identity.resolved', subject=external_id, user_id=user_id)
        return user_id

    def forget(self, external_id: str) -> None:
        self.cache.expire(external_id)
