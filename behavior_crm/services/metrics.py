"""
Behavior Metric Calculators.

Four period-scoped indices, each an integer in [0, 100]:

- HIR (Honesty/High-Impact Rate): mean quality sub-score across behaviors,
  taking for each behavior the behavior score with the latest period_start
  among those contained in the period.
- RTR (Relationship Temperature Rate): mean sentiment score of the period's
  activities. Activities without a sentiment score are left out entirely.
- PHR (Proactive Health Rate): mean follow-up readiness. Each activity scores
  by days until its next action date:
      no date or overdue -> 0, 0-7 -> 100, 8-14 -> 80, 15-30 -> 60, >30 -> 40
  Every activity counts, including the ones scoring 0.
- BCR (Behavior Consistency Rate): regularity of the daily activity count.
      counts = activities per calendar day, every day of the period,
               days without activity included as 0
      cv     = population std(counts) / mean(counts)
      BCR    = round(100 / (1 + cv))
  A perfectly even cadence scores 100; bursts followed by idle days drive the
  score toward 0.

Each calculator returns 0 when there is no data. Absence of data is a valid,
scoreable state, not an error.

The async calculate_* functions fetch from the RecordStore and delegate to the
pure score_* functions, which the coaching generator and tests use directly.
get_behavior_metrics runs the four concurrently and fails if any one fails.
"""

import asyncio
import logging
import math
from datetime import datetime, time, timezone
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd

from behavior_crm.core.log import log_event
from behavior_crm.core.store import RecordStore
from behavior_crm.models.enums import BehaviorType
from behavior_crm.models.schemas import Activity, BehaviorMetrics, BehaviorScore
from behavior_crm.services.activities import fetch_activities
from behavior_crm.services.behavior_scores import get_behavior_scores
from behavior_crm.services.common import clamp_score, ensure_utc, to_date, utcnow


# =============================================================================
# Module Constants
# =============================================================================

# (max days until next action, score), checked in order
PHR_TIERS = (
    (7, 100),
    (14, 80),
    (30, 60),
)
PHR_DISTANT_SCORE: int = 40

SECONDS_PER_DAY: int = 86400

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Pure Scoring Functions
# =============================================================================


def score_hir(behavior_scores: Sequence[BehaviorScore]) -> int:
    """
    HIR from a set of behavior scores.

    For each canonical behavior the record with the latest period_start wins;
    among equal starts the first one seen is kept.
    """
    latest: Dict[BehaviorType, BehaviorScore] = {}
    for score in behavior_scores:
        current = latest.get(score.behavior)
        if current is None or score.period_start > current.period_start:
            latest[score.behavior] = score

    qualities = [latest[behavior].quality_score for behavior in BehaviorType if behavior in latest]
    if not qualities:
        return 0
    return clamp_score(float(np.mean(qualities)))


def score_rtr(activities: Sequence[Activity]) -> int:
    """RTR: rounded mean of the non-null sentiment scores."""
    sentiments = [a.sentiment_score for a in activities if a.sentiment_score is not None]
    if not sentiments:
        return 0
    return clamp_score(float(np.mean(sentiments)))


def days_until(next_action_date, now: datetime) -> int:
    """Whole days from ``now`` until midnight UTC of ``next_action_date``, rounded up."""
    due = datetime.combine(next_action_date, time.min, tzinfo=timezone.utc)
    return math.ceil((due - ensure_utc(now)).total_seconds() / SECONDS_PER_DAY)


def follow_up_score(activity: Activity, now: datetime) -> int:
    if activity.next_action_date is None:
        return 0
    days = days_until(activity.next_action_date, now)
    if days < 0:
        return 0
    for max_days, score in PHR_TIERS:
        if days <= max_days:
            return score
    return PHR_DISTANT_SCORE


def score_phr(activities: Sequence[Activity], now: Optional[datetime] = None) -> int:
    """PHR: rounded mean follow-up score over all activities."""
    if not activities:
        return 0
    now = now or utcnow()
    return clamp_score(float(np.mean([follow_up_score(a, now) for a in activities])))


def daily_activity_counts(
    activities: Sequence[Activity],
    period_start: datetime,
    period_end: datetime,
) -> pd.Series:
    """
    Activities per UTC calendar day over every day of the period.

    Days without activity are included with a count of 0. Activities outside
    the period are dropped.
    """
    calendar = pd.date_range(start=to_date(period_start), end=to_date(period_end), freq='D')
    if not activities:
        return pd.Series(0, index=calendar, dtype='int64')
    performed = pd.to_datetime([to_date(a.performed_at) for a in activities])
    counts = pd.Series(1, index=performed).groupby(level=0).sum()
    return counts.reindex(calendar, fill_value=0).astype('int64')


def score_bcr(
    activities: Sequence[Activity],
    period_start: datetime,
    period_end: datetime,
) -> int:
    """BCR: round(100 / (1 + cv)) of the daily activity counts."""
    counts = daily_activity_counts(activities, period_start, period_end)
    if counts.empty or counts.sum() == 0:
        return 0
    values = counts.to_numpy(dtype=float)
    cv = float(np.std(values)) / float(np.mean(values))
    return clamp_score(100 / (1 + cv))


# =============================================================================
# Calculators
# =============================================================================


async def calculate_hir(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    account_id: Optional[str] = None,
) -> int:
    """
    Honesty/High-Impact Rate for a user over a period.

    Behavior scores are not account-scoped, so account_id does not narrow the
    result; it is accepted for a uniform calculator signature.
    """
    scores = await get_behavior_scores(store, user_id, period_start, period_end)
    hir = score_hir(scores)
    log_event(logger, logging.DEBUG, 'metrics.hir', user_id=user_id, records=len(scores), score=hir)
    return hir


async def calculate_rtr(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    account_id: Optional[str] = None,
) -> int:
    """Relationship Temperature Rate, optionally for a single account."""
    activities = await fetch_activities(store, user_id, period_start, period_end, account_id)
    rtr = score_rtr(activities)
    log_event(
        logger, logging.DEBUG, 'metrics.rtr',
        user_id=user_id, account_id=account_id, records=len(activities), score=rtr,
    )
    return rtr


async def calculate_phr(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    account_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """Proactive Health Rate. Days until next action are measured from ``now``."""
    activities = await fetch_activities(store, user_id, period_start, period_end, account_id)
    phr = score_phr(activities, now)
    log_event(logger, logging.DEBUG, 'metrics.phr', user_id=user_id, records=len(activities), score=phr)
    return phr


async def calculate_bcr(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    account_id: Optional[str] = None,
) -> int:
    """Behavior Consistency Rate over the calendar days of the period."""
    activities = await fetch_activities(store, user_id, period_start, period_end, account_id)
    bcr = score_bcr(activities, period_start, period_end)
    log_event(logger, logging.DEBUG, 'metrics.bcr', user_id=user_id, records=len(activities), score=bcr)
    return bcr


async def get_behavior_metrics(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    account_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> BehaviorMetrics:
    """
    Compute HIR, RTR, BCR and PHR concurrently and combine them.

    total = round(mean(hir, rtr, bcr, phr)). Any calculator failure fails the
    whole call; there is no partial result.
    """
    hir, rtr, bcr, phr = await asyncio.gather(
        calculate_hir(store, user_id, period_start, period_end, account_id),
        calculate_rtr(store, user_id, period_start, period_end, account_id),
        calculate_bcr(store, user_id, period_start, period_end, account_id),
        calculate_phr(store, user_id, period_start, period_end, account_id, now=now),
    )
    metrics = BehaviorMetrics(
        hir=hir,
        rtr=rtr,
        bcr=bcr,
        phr=phr,
        total=clamp_score((hir + rtr + bcr + phr) / 4),
    )
    log_event(
        logger, logging.INFO, 'metrics.calculated',
        user_id=user_id, hir=hir, rtr=rtr, bcr=bcr, phr=phr, total=metrics.total,
    )
    return metrics
