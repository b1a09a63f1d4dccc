"""
FastAPI router for behavior metrics, stored scores and correlation analysis.

Key Endpoints:
- GET  /metrics                  - HIR, RTR, BCR, PHR and their total
- GET  /metrics/correlation      - behavior x outcome correlation
- POST /metrics/behavior-scores  - recompute and replace behavior scores
- GET  /metrics/behavior-scores  - stored behavior scores in the period
- GET  /metrics/behavior-scores/trend - per-day or per-week behavior-score series
- POST /metrics/outcomes         - recompute and replace an outcome snapshot
- GET  /metrics/outcomes         - stored outcomes in the period

Every endpoint takes the period from ``start``/``end`` query parameters and
defaults to the trailing analysis window.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Query

from behavior_crm.core.dependencies import CurrentUserDep, PeriodDep, SettingsDep, StoreDep
from behavior_crm.models.enums import ComparisonPeriod, PeriodType, TrendGranularity
from behavior_crm.models.schemas import (
    BehaviorMetrics,
    BehaviorScore,
    BehaviorTrendPoint,
    CorrelationAnalysis,
    Outcome,
)
from behavior_crm.services.behavior_scores import (
    get_behavior_score_trend,
    get_behavior_scores,
    refresh_behavior_scores,
)
from behavior_crm.services.correlation import analyze_behavior_outcome_correlation
from behavior_crm.services.metrics import get_behavior_metrics
from behavior_crm.services.outcomes import get_outcomes, refresh_outcomes


# Logger for this module
logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=BehaviorMetrics)
async def read_metrics(
    store: StoreDep,
    user_id: CurrentUserDep,
    period: PeriodDep,
    account_id: Optional[str] = Query(default=None, description="Scope RTR/PHR/BCR to one account"),
) -> BehaviorMetrics:
    return await get_behavior_metrics(store, user_id, period.start, period.end, account_id)


@router.get("/correlation", response_model=CorrelationAnalysis)
async def read_correlation(
    store: StoreDep,
    user_id: CurrentUserDep,
    period: PeriodDep,
    settings: SettingsDep,
) -> CorrelationAnalysis:
    return await analyze_behavior_outcome_correlation(
        store, user_id, period.start, period.end, top_n=settings.correlation_top_n
    )


@router.post("/behavior-scores", response_model=List[BehaviorScore])
async def recompute_behavior_scores(
    store: StoreDep,
    user_id: CurrentUserDep,
    period: PeriodDep,
) -> List[BehaviorScore]:
    return await refresh_behavior_scores(store, user_id, period.start, period.end)


@router.get("/behavior-scores", response_model=List[BehaviorScore])
async def list_behavior_scores(
    store: StoreDep,
    user_id: CurrentUserDep,
    period: PeriodDep,
) -> List[BehaviorScore]:
    return await get_behavior_scores(store, user_id, period.start, period.end)


@router.get("/behavior-scores/trend", response_model=List[BehaviorTrendPoint])
async def read_behavior_score_trend(
    store: StoreDep,
    user_id: CurrentUserDep,
    period: PeriodDep,
    group_by: TrendGranularity = Query(default=TrendGranularity.DAY),
) -> List[BehaviorTrendPoint]:
    return await get_behavior_score_trend(store, user_id, period.start, period.end, group_by)


@router.post("/outcomes", response_model=Outcome)
async def recompute_outcome(
    store: StoreDep,
    user_id: CurrentUserDep,
    period: PeriodDep,
    period_type: PeriodType = Query(default=PeriodType.MONTHLY),
    account_id: Optional[str] = Query(default=None),
    comparison: ComparisonPeriod = Query(
        default=ComparisonPeriod.PREVIOUS_MONTH,
        description="Baseline for the field growth rate",
    ),
) -> Outcome:
    return await refresh_outcomes(
        store, user_id, period.start, period.end, period_type, account_id, comparison
    )


@router.get("/outcomes", response_model=List[Outcome])
async def list_outcomes(
    store: StoreDep,
    user_id: CurrentUserDep,
    period: PeriodDep,
    period_type: Optional[PeriodType] = Query(default=None),
    account_id: Optional[str] = Query(default=None),
) -> List[Outcome]:
    return await get_outcomes(store, user_id, period.start, period.end, period_type, account_id)
