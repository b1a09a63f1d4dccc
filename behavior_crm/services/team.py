"""
Team KPI Service.

Manager-facing aggregates over the reps a manager oversees:
- Team behavior score: per rep, the mean over the 8 behaviors of that
  behavior's mean quality score (0 when it has none), rounded; averaged
  across reps.
- Average HIR: per-rep HIR, averaged across reps.
- Goal forecast: average HIR as a percentage of HIR_TARGET, capped at 100.

Each KPI is reported for the trailing window and for the equal-length window
before it, with the percent change between them (0 when the previous value is
0). Managers see the salespeople of their team; head managers see every
salesperson. A rep whose data cannot be read is skipped and logged.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from behavior_crm.core.errors import CRMError, ForbiddenError, NotFoundError
from behavior_crm.core.log import log_event
from behavior_crm.core.store import RecordStore
from behavior_crm.models.enums import BehaviorType, UserRole
from behavior_crm.models.schemas import BehaviorScore, KPIChange, TeamKPIs, User
from behavior_crm.services.behavior_scores import get_behavior_scores
from behavior_crm.services.common import previous_period, round_half_up, trailing_window, utcnow
from behavior_crm.services.metrics import score_hir


# =============================================================================
# Module Constants
# =============================================================================

TEAM_WINDOW_DAYS: int = 30
HIR_TARGET: int = 70

MANAGER_ROLES = frozenset({UserRole.MANAGER, UserRole.HEAD_MANAGER})

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Pure Functions
# =============================================================================


def team_behavior_score(scores: Sequence[BehaviorScore]) -> int:
    """Mean over all behaviors of each behavior's mean quality score."""
    by_behavior: Dict[BehaviorType, List[int]] = {b: [] for b in BehaviorType}
    for score in scores:
        by_behavior[score.behavior].append(score.quality_score)
    means = [float(np.mean(values)) if values else 0.0 for values in by_behavior.values()]
    return round_half_up(float(np.mean(means)))


def percent_change(current: float, previous: float) -> int:
    if previous <= 0:
        return 0
    return round_half_up((current - previous) / previous * 100)


def goal_forecast(avg_hir: float) -> int:
    return min(100, round_half_up(avg_hir / HIR_TARGET * 100))


def kpi_change(current: float, previous: float) -> KPIChange:
    return KPIChange(
        current=round_half_up(current),
        previous=round_half_up(previous),
        change=percent_change(current, previous),
    )


# =============================================================================
# Team Membership
# =============================================================================


async def get_team_members(store: RecordStore, manager_id: str) -> List[User]:
    """
    Salespeople visible to a manager, ordered by name.

    Raises:
        NotFoundError: No user row for manager_id.
        ForbiddenError: The user is not a manager or head manager.
    """
    rows = await store.select('users', filters={'id': manager_id}, limit=1)
    if not rows:
        raise NotFoundError("User not found")
    manager = User.model_validate(rows[0])
    if manager.role not in MANAGER_ROLES:
        raise ForbiddenError("Manager role required")

    filters = {'role': UserRole.SALESPERSON.value}
    if manager.role == UserRole.MANAGER and manager.team_id:
        filters['team_id'] = manager.team_id
    members = await store.select('users', filters=filters, order_by='name')
    return [User.model_validate(row) for row in members]


# =============================================================================
# KPIs
# =============================================================================


async def _member_kpis(
    store: RecordStore,
    member_id: str,
    start: datetime,
    end: datetime,
) -> Tuple[int, int]:
    scores = await get_behavior_scores(store, member_id, start, end)
    return team_behavior_score(scores), score_hir(scores)


async def get_team_kpis(
    store: RecordStore,
    manager_id: str,
    now: Optional[datetime] = None,
    window_days: int = TEAM_WINDOW_DAYS,
) -> TeamKPIs:
    """
    Team KPIs for the trailing ``window_days`` against the window before it.

    Raises:
        NotFoundError / ForbiddenError: see get_team_members.
    """
    members = await get_team_members(store, manager_id)
    current_start, current_end = trailing_window(now or utcnow(), window_days)
    previous_start, previous_end = previous_period(current_start, current_end)
    previous_end -= timedelta(microseconds=1)

    current_behavior: List[int] = []
    current_hir: List[int] = []
    previous_behavior: List[int] = []
    previous_hir: List[int] = []
    for member in members:
        try:
            behavior_now, hir_now = await _member_kpis(store, member.id, current_start, current_end)
            behavior_before, hir_before = await _member_kpis(
                store, member.id, previous_start, previous_end
            )
        except CRMError:
            log_event(
                logger, logging.WARNING, 'team.member_skipped',
                exc_info=True, manager_id=manager_id, member_id=member.id,
            )
            continue
        current_behavior.append(behavior_now)
        current_hir.append(hir_now)
        previous_behavior.append(behavior_before)
        previous_hir.append(hir_before)

    def average(values: List[int]) -> float:
        return float(np.mean(values)) if values else 0.0

    avg_hir_now = average(current_hir)
    avg_hir_before = average(previous_hir)
    forecast_now = goal_forecast(avg_hir_now)
    forecast_before = goal_forecast(avg_hir_before)

    kpis = TeamKPIs(
        member_count=len(current_hir),
        behavior_score=kpi_change(average(current_behavior), average(previous_behavior)),
        avg_hir=kpi_change(avg_hir_now, avg_hir_before),
        goal_forecast=KPIChange(
            current=forecast_now,
            previous=forecast_before,
            change=percent_change(forecast_now, forecast_before),
        ),
    )
    log_event(
        logger, logging.INFO, 'team.kpis',
        manager_id=manager_id, members=len(members), computed=kpis.member_count,
    )
    return kpis
