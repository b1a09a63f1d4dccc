"""
FastAPI router for activity records.

Key Endpoints:
- GET    /activities                 - filtered list, newest first
- GET    /activities/recent          - latest activities, capped by settings
- POST   /activities                 - record an activity (runs competitor detection)
- PATCH  /activities/{activity_id}   - partial update of an owned activity
- DELETE /activities/{activity_id}   - delete an owned activity
"""

import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Query, status

from behavior_crm.core.dependencies import CurrentUserDep, SettingsDep, StoreDep
from behavior_crm.models.schemas import Activity, ActivityCreate, ActivityFilter, ActivityUpdate
from behavior_crm.services.activities import (
    create_activity,
    delete_activity,
    get_activities,
    get_recent_activities,
    update_activity,
)


# Logger for this module
logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[Activity])
async def list_activities(
    store: StoreDep,
    user_id: CurrentUserDep,
    query: Annotated[ActivityFilter, Query()],
) -> List[Activity]:
    return await get_activities(store, user_id, query)


@router.get("/recent", response_model=List[Activity])
async def list_recent_activities(
    store: StoreDep,
    user_id: CurrentUserDep,
    settings: SettingsDep,
    limit: Optional[int] = Query(default=None, ge=1),
) -> List[Activity]:
    cap = settings.recent_activity_limit
    return await get_recent_activities(store, user_id, min(limit or cap, cap))


@router.post("", response_model=Activity, status_code=status.HTTP_201_CREATED)
async def record_activity(
    payload: ActivityCreate,
    store: StoreDep,
    user_id: CurrentUserDep,
    settings: SettingsDep,
) -> Activity:
    return await create_activity(store, user_id, payload, settings.competitor_names)


@router.patch("/{activity_id}", response_model=Activity)
async def edit_activity(
    activity_id: str,
    payload: ActivityUpdate,
    store: StoreDep,
    user_id: CurrentUserDep,
) -> Activity:
    return await update_activity(store, user_id, activity_id, payload)


@router.delete("/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_activity(
    activity_id: str,
    store: StoreDep,
    user_id: CurrentUserDep,
) -> None:
    await delete_activity(store, user_id, activity_id)
