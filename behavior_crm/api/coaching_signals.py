"""
FastAPI router for coaching signals.

Key Endpoints:
- GET  /coaching-signals                     - the caller's signals, unresolved by default
- POST /coaching-signals/generate            - run the rules for a period and upsert
- POST /coaching-signals/{signal_id}/resolve - mark one of the caller's signals resolved
"""

import logging
from typing import List

from fastapi import APIRouter, Query

from behavior_crm.core.dependencies import CurrentUserDep, PeriodDep, SettingsDep, StoreDep
from behavior_crm.models.schemas import CoachingSignal, SignalSaveResult
from behavior_crm.services.coaching import (
    DEFAULT_SIGNAL_LIMIT,
    generate_and_save_coaching_signals,
    get_coaching_signals,
    resolve_coaching_signal,
)


# Logger for this module
logger = logging.getLogger(__name__)

# Maximum allowed limit for listing signals
MAX_LIST_LIMIT: int = 200

router = APIRouter()


@router.get("", response_model=List[CoachingSignal])
async def list_coaching_signals(
    store: StoreDep,
    user_id: CurrentUserDep,
    include_resolved: bool = Query(default=False),
    limit: int = Query(default=DEFAULT_SIGNAL_LIMIT, ge=1, le=MAX_LIST_LIMIT),
) -> List[CoachingSignal]:
    return await get_coaching_signals(store, user_id, include_resolved, limit)


@router.post("/generate", response_model=SignalSaveResult)
async def generate_signals(
    store: StoreDep,
    user_id: CurrentUserDep,
    period: PeriodDep,
    settings: SettingsDep,
) -> SignalSaveResult:
    return await generate_and_save_coaching_signals(
        store, user_id, period.start, period.end, top_n=settings.correlation_top_n
    )


@router.post("/{signal_id}/resolve", response_model=CoachingSignal)
async def resolve_signal(
    signal_id: str,
    store: StoreDep,
    user_id: CurrentUserDep,
) -> CoachingSignal:
    return await resolve_coaching_signal(store, user_id, signal_id)
