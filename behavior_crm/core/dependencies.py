"""
FastAPI dependency injection module for the Behavior CRM backend.

Endpoint handlers receive their collaborators through these dependencies, so
tests can swap any of them with ``app.dependency_overrides``.

Key Dependencies Provided:
- get_settings_dependency / SettingsDep: the cached Settings singleton
- get_record_store / StoreDep: a PostgresRecordStore over the asyncpg pool
- get_identity_resolver / IdentityDep: subject -> user id resolver sharing one
  process-wide TTL cache
- get_current_user_id / CurrentUserDep: internal id of the caller, taken from
  the X-User-Subject header set by the auth proxy
- get_period / PeriodDep: start/end query parameters, defaulting to the
  trailing analysis window

Usage Examples:
    @router.get("/metrics")
    async def get_metrics(
        store: StoreDep,
        user_id: CurrentUserDep,
        period: PeriodDep,
    ) -> BehaviorMetrics:
        return await get_behavior_metrics(store, user_id, period.start, period.end)

    # In tests
    app.dependency_overrides[get_record_store] = lambda: fake_store
    app.dependency_overrides[get_current_user_id] = lambda: "user-1"
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Optional

from fastapi import Depends, Header, Query

from behavior_crm.core.cache import TTLCache
from behavior_crm.core.config import Settings, get_settings
from behavior_crm.core.database import get_db_pool
from behavior_crm.core.errors import ValidationError
from behavior_crm.core.store import PostgresRecordStore, RecordStore
from behavior_crm.services.common import ensure_utc, trailing_window, utcnow
from behavior_crm.services.identity import IdentityResolver


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    A thin wrapper around get_settings() so tests can override it:

        app.dependency_overrides[get_settings_dependency] = lambda: mock_settings
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# =============================================================================
# Store Dependency
# =============================================================================

async def get_record_store() -> RecordStore:
    """
    Return a RecordStore backed by the application's asyncpg pool.

    The store is stateless; connections are acquired per query and released
    back to the pool when the query completes.
    """
    pool = await get_db_pool()
    return PostgresRecordStore(pool)


StoreDep = Annotated[RecordStore, Depends(get_record_store)]


# =============================================================================
# Identity Dependencies
# =============================================================================

_identity_cache: Optional[TTLCache] = None


def get_identity_cache(settings: SettingsDep) -> TTLCache:
    global _identity_cache
    if _identity_cache is None:
        _identity_cache = TTLCache(settings.user_cache_ttl_seconds)
    return _identity_cache


def get_identity_resolver(
    store: StoreDep,
    cache: Annotated[TTLCache, Depends(get_identity_cache)],
) -> IdentityResolver:
    return IdentityResolver(store, cache)


IdentityDep = Annotated[IdentityResolver, Depends(get_identity_resolver)]


async def get_current_user_id(
    resolver: IdentityDep,
    x_user_subject: Annotated[Optional[str], Header()] = None,
) -> str:
    """
    Internal user id of the caller.

    Raises:
        UnauthenticatedError: The X-User-Subject header is missing.
        NotFoundError: No user matches the subject.
    """
    return await resolver.resolve_user_id(x_user_subject)


CurrentUserDep = Annotated[str, Depends(get_current_user_id)]


# =============================================================================
# Period Dependency
# =============================================================================

@dataclass(frozen=True)
class Period:
    start: datetime
    end: datetime


def get_period(
    settings: SettingsDep,
    start: Annotated[Optional[datetime], Query(description="Period start (ISO 8601)")] = None,
    end: Annotated[Optional[datetime], Query(description="Period end (ISO 8601)")] = None,
) -> Period:
    """
    Analysis period from query parameters, in UTC.

    A missing end is now; a missing start is ``analysis_window_days`` before
    the end.

    Raises:
        ValidationError: start is after end.
    """
    end = ensure_utc(end) if end else utcnow()
    if start is None:
        start = trailing_window(end, settings.analysis_window_days)[0]
    start = ensure_utc(start)
    if start > end:
        raise ValidationError("start must not be after end")
    return Period(start=start, end=end)


PeriodDep = Annotated[Period, Depends(get_period)]
