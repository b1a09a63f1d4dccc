"""
Behavior Score Service.

Turns a period's activities into one BehaviorScore per canonical behavior and
replaces the stored scores for that period.

Sub-scores, computed over the activities of each behavior:
- Intensity: sum of activity-type weights, capped at 100
      visit 3, call 2, message 1, presentation 2, follow_up 1
- Diversity: distinct behaviors among those activities / 8, as a percentage
- Quality:   0.4 * mean quality_score
           + 0.3 * mean quantity_score
           + 0.3 * follow-up ratio * 100
  clamped to [0, 100]; 0 when the behavior has no activities

Refresh is delete-then-insert for (user, period): running it twice leaves one
set of scores, never a merge of both runs.

Trends bucket stored scores by period_start (per day, or per Monday-based week)
and average the quality sub-score of each behavior within a bucket.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from behavior_crm.core.log import log_event
from behavior_crm.core.store import Range, RecordStore
from behavior_crm.models.enums import ActivityType, BehaviorType, TrendGranularity
from behavior_crm.models.schemas import Activity, BehaviorScore, BehaviorScoreResult, BehaviorTrendPoint
from behavior_crm.services.activities import fetch_activities
from behavior_crm.services.common import clamp_score, round_half_up, to_date


# =============================================================================
# Module Constants
# =============================================================================

ACTIVITY_TYPE_WEIGHTS: Dict[ActivityType, int] = {
    ActivityType.VISIT: 3,
    ActivityType.CALL: 2,
    ActivityType.MESSAGE: 1,
    ActivityType.PRESENTATION: 2,
    ActivityType.FOLLOW_UP: 1,
}

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Sub-score Functions
# =============================================================================


def intensity_score(activities: Sequence[Activity]) -> int:
    weighted = sum(ACTIVITY_TYPE_WEIGHTS.get(a.type, 1) for a in activities)
    return min(100, round_half_up(weighted))


def diversity_score(activities: Sequence[Activity]) -> int:
    distinct = {a.behavior for a in activities}
    return round_half_up(len(distinct) / len(BehaviorType) * 100)


def quality_score(activities: Sequence[Activity]) -> int:
    if not activities:
        return 0
    avg_quality = float(np.mean([a.quality_score for a in activities]))
    avg_quantity = float(np.mean([a.quantity_score for a in activities]))
    follow_up_ratio = sum(1 for a in activities if a.behavior == BehaviorType.FOLLOW_UP) / len(activities)
    return clamp_score(avg_quality * 0.4 + avg_quantity * 0.3 + follow_up_ratio * 100 * 0.3)


def calculate_behavior_scores(activities: Sequence[Activity]) -> List[BehaviorScoreResult]:
    """One result per canonical behavior, in canonical order."""
    results = []
    for behavior in BehaviorType:
        matching = [a for a in activities if a.behavior == behavior]
        results.append(BehaviorScoreResult(
            behavior=behavior,
            intensity_score=intensity_score(matching),
            diversity_score=diversity_score(matching),
            quality_score=quality_score(matching),
        ))
    return results


# =============================================================================
# Persistence
# =============================================================================


async def refresh_behavior_scores(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
) -> List[BehaviorScore]:
    """
    Recompute and replace a user's behavior scores for a period.

    The user's scores whose period lies inside [period_start, period_end] are
    deleted first, then the eight new ones are inserted.
    """
    activities = await fetch_activities(store, user_id, period_start, period_end)
    results = calculate_behavior_scores(activities)

    start_date, end_date = to_date(period_start), to_date(period_end)
    deleted = await store.delete(
        'behavior_scores',
        filters={'user_id': user_id},
        ranges={
            'period_start': Range(gte=start_date),
            'period_end': Range(lte=end_date),
        },
    )
    rows = await store.insert('behavior_scores', [
        {
            'user_id': user_id,
            'behavior': result.behavior.value,
            'intensity_score': result.intensity_score,
            'diversity_score': result.diversity_score,
            'quality_score': result.quality_score,
            'period_start': start_date,
            'period_end': end_date,
        }
        for result in results
    ])

    log_event(
        logger, logging.INFO, 'behavior_scores.refreshed',
        user_id=user_id, activities=len(activities), deleted=deleted, inserted=len(rows),
    )
    return [BehaviorScore.model_validate(row) for row in rows]


async def get_behavior_scores(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
) -> List[BehaviorScore]:
    """Stored scores whose period lies within the given one, latest period first."""
    rows = await store.select(
        'behavior_scores',
        filters={'user_id': user_id},
        ranges={
            'period_start': Range(gte=to_date(period_start)),
            'period_end': Range(lte=to_date(period_end)),
        },
        order_by='period_start',
        descending=True,
    )
    return [BehaviorScore.model_validate(row) for row in rows]


# =============================================================================
# Trends
# =============================================================================


def bucket_start(day: date, granularity: TrendGranularity = TrendGranularity.DAY) -> date:
    if granularity == TrendGranularity.WEEK:
        return day - timedelta(days=day.weekday())
    return day


def behavior_score_trend(
    scores: Sequence[BehaviorScore],
    granularity: TrendGranularity = TrendGranularity.DAY,
) -> List[BehaviorTrendPoint]:
    """
    One point per bucket, oldest first.

    Each behavior's value is the rounded mean quality score of its records in
    the bucket; behaviors without a record are 0.
    """
    if not scores:
        return []
    frame = pd.DataFrame([
        {
            'bucket': bucket_start(s.period_start, granularity),
            'behavior': s.behavior.value,
            'quality': float(s.quality_score),
        }
        for s in scores
    ])
    table = (
        frame.pivot_table(index='bucket', columns='behavior', values='quality', aggfunc='mean')
        .reindex(columns=[b.value for b in BehaviorType])
        .fillna(0)
        .sort_index()
    )
    return [
        BehaviorTrendPoint(
            date=bucket,
            **{behavior: round_half_up(float(value)) for behavior, value in row.items()},
        )
        for bucket, row in table.iterrows()
    ]


async def get_behavior_score_trend(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    granularity: TrendGranularity = TrendGranularity.DAY,
) -> List[BehaviorTrendPoint]:
    scores = await get_behavior_scores(store, user_id, period_start, period_end)
    return behavior_score_trend(scores, granularity)
