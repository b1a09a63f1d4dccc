"""
FastAPI router for competitor signals.

Key Endpoints:
- GET  /competitor-signals         - signals in a period, optionally for one account
- POST /competitor-signals         - manual entry
- POST /competitor-signals/detect  - run the text detector without saving
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Query, status

from behavior_crm.core.dependencies import CurrentUserDep, PeriodDep, SettingsDep, StoreDep
from behavior_crm.models.schemas import (
    CompetitorSignal,
    CompetitorSignalCreate,
    DetectedCompetitorSignal,
    DetectRequest,
)
from behavior_crm.services.competitor_signals import (
    create_competitor_signal,
    detect_competitor_signal,
    get_competitor_signals,
)


# Logger for this module
logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[CompetitorSignal])
async def list_competitor_signals(
    store: StoreDep,
    user_id: CurrentUserDep,
    period: PeriodDep,
    account_id: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
) -> List[CompetitorSignal]:
    account_ids = [account_id] if account_id else None
    return await get_competitor_signals(
        store, user_id=user_id, account_ids=account_ids,
        start=period.start, end=period.end, limit=limit,
    )


@router.post("", response_model=CompetitorSignal, status_code=status.HTTP_201_CREATED)
async def record_competitor_signal(
    payload: CompetitorSignalCreate,
    store: StoreDep,
    user_id: CurrentUserDep,
) -> CompetitorSignal:
    return await create_competitor_signal(store, user_id, payload)


@router.post("/detect", response_model=Optional[DetectedCompetitorSignal])
async def detect_signal(
    payload: DetectRequest,
    settings: SettingsDep,
) -> Optional[DetectedCompetitorSignal]:
    """Classify a description. Returns null when nothing is detected."""
    return detect_competitor_signal(payload.description, settings.competitor_names)
