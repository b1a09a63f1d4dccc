"""
Activity Service.

CRUD around the activities table plus the period fetch every calculator uses.

Creating an activity also runs competitor-signal detection on its description.
That step is best-effort: a storage failure while saving the signal is logged
and the created activity is still returned.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from behavior_crm.core.log import log_event
from behavior_crm.core.store import Range, RecordStore
from behavior_crm.models.schemas import (
    Activity,
    ActivityCreate,
    ActivityFilter,
    ActivityUpdate,
)
from behavior_crm.services.common import ensure_utc, get_owned_row, to_row, utcnow
from behavior_crm.services.competitor_signals import detect_and_save_competitor_signal

# Logger for this module
logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT: int = 100


# =============================================================================
# Reads
# =============================================================================


async def fetch_activities(
    store: RecordStore,
    user_id: str,
    start: datetime,
    end: datetime,
    account_id: Optional[str] = None,
) -> List[Activity]:
    """Activities of a user performed within [start, end], oldest first."""
    filters = {'user_id': user_id}
    if account_id:
        filters['account_id'] = account_id
    rows = await store.select(
        'activities',
        filters=filters,
        ranges={'performed_at': Range(gte=start, lte=end)},
        order_by='performed_at',
    )
    return [Activity.model_validate(row) for row in rows]


async def get_activities(
    store: RecordStore,
    user_id: str,
    query: Optional[ActivityFilter] = None,
) -> List[Activity]:
    """List a user's activities, newest first."""
    query = query or ActivityFilter()
    filters = {'user_id': user_id}
    for column in ('account_id', 'behavior', 'type', 'outcome'):
        value = getattr(query, column)
        if value is not None:
            filters[column] = getattr(value, 'value', value)
    ranges = None
    if query.start or query.end:
        ranges = {'performed_at': Range(gte=query.start, lte=query.end)}
    rows = await store.select(
        'activities',
        filters=filters,
        ranges=ranges,
        order_by='performed_at',
        descending=True,
        limit=query.limit,
        offset=query.offset,
    )
    return [Activity.model_validate(row) for row in rows]


async def get_recent_activities(
    store: RecordStore,
    user_id: str,
    limit: int = DEFAULT_RECENT_LIMIT,
) -> List[Activity]:
    rows = await store.select(
        'activities',
        filters={'user_id': user_id},
        order_by='performed_at',
        descending=True,
        limit=limit,
    )
    return [Activity.model_validate(row) for row in rows]


# =============================================================================
# Writes
# =============================================================================


async def create_activity(
    store: RecordStore,
    user_id: str,
    payload: ActivityCreate,
    competitor_names: Optional[Sequence[str]] = None,
) -> Activity:
    """
    Record an activity, then look for a competitor signal in its description.

    Raises:
        PersistenceError: The activity itself could not be stored.
    """
    row = to_row(payload)
    row['user_id'] = user_id
    row['performed_at'] = ensure_utc(payload.performed_at)
    rows = await store.insert('activities', [row])
    activity = Activity.model_validate(rows[0])
    log_event(
        logger, logging.INFO, 'activity.created',
        activity_id=activity.id, behavior=activity.behavior, user_id=user_id,
    )

    try:
        await detect_and_save_competitor_signal(store, user_id, activity, competitor_names)
    except Exception:
        log_event(
            logger, logging.WARNING, 'competitor_signal.save_failed',
            exc_info=True, activity_id=activity.id,
        )

    return activity


async def update_activity(
    store: RecordStore,
    user_id: str,
    activity_id: str,
    payload: ActivityUpdate,
) -> Activity:
    """
    Apply the fields set on ``payload`` to an activity the user owns.

    Raises:
        NotFoundError: No such activity.
        ForbiddenError: The activity belongs to another user.
    """
    existing = await get_owned_row(store, 'activities', activity_id, user_id, 'Activity')
    values = to_row(payload, exclude_unset=True)
    if not values:
        return Activity.model_validate(existing)
    if values.get('performed_at') is not None:
        values['performed_at'] = ensure_utc(values['performed_at'])
    values['updated_at'] = utcnow()
    rows = await store.update('activities', values, {'id': activity_id, 'user_id': user_id})
    log_event(logger, logging.INFO, 'activity.updated', activity_id=activity_id, columns=sorted(values))
    return Activity.model_validate(rows[0] if rows else {**existing, **values})


async def delete_activity(store: RecordStore, user_id: str, activity_id: str) -> None:
    """
    Raises:
        NotFoundError: No such activity.
        ForbiddenError: The activity belongs to another user.
    """
    await get_owned_row(store, 'activities', activity_id, user_id, 'Activity')
    await store.delete('activities', filters={'id': activity_id, 'user_id': user_id})
    log_event(logger, logging.INFO, 'activity.deleted', activity_id=activity_id)
