"""
FastAPI router for next best action recommendations.

Key Endpoints:
- GET /recommendations - per-account next best actions, highest priority first
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Query

from behavior_crm.core.dependencies import CurrentUserDep, SettingsDep, StoreDep
from behavior_crm.models.schemas import NextBestAction
from behavior_crm.services.recommendations import recommend_next_actions


# Logger for this module
logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[NextBestAction])
async def list_recommendations(
    store: StoreDep,
    user_id: CurrentUserDep,
    settings: SettingsDep,
    limit: Optional[int] = Query(default=None, ge=1, le=50),
) -> List[NextBestAction]:
    return await recommend_next_actions(
        store, user_id, limit or settings.recommendation_limit, top_n=settings.correlation_top_n
    )
