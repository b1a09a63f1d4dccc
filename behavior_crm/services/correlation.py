"""
Behavior-Outcome Correlation Analysis.

Estimates how strongly each of the 8 behaviors is associated with each of the
4 outcome measures (32 pairs) for one user over a period.

Algorithm:
1. Fetch the user's behavior scores and account-wide outcomes whose periods
   lie within the analysis period.
2. Align them with pandas on identical (period_start, period_end). Each
   aligned period gives one point: the behavior's quality sub-score against
   the outcome value. Several rows for the same period are averaged.
3. For each pair, call the correlation method on the paired series.
   method(x, y) -> (correlation, weight)
   The default, pearson_weight, returns Pearson's r and weight = |r|, so each
   weight lies in [0, 1] independently of the others (weights are not
   normalized to sum to 1). Fewer than 2 points or a constant series gives
   (0, 0).
4. Summary: per outcome, the top-N behaviors with weight > 0, strongest
   first. Equal weights keep behavior enumeration order.

The method is a parameter so the statistic can be swapped without touching
callers (coaching generator, recommendation engine). Output is deterministic
for the same input records.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from behavior_crm.core.log import log_event
from behavior_crm.core.store import RecordStore
from behavior_crm.models.enums import BehaviorType, OutcomeType
from behavior_crm.models.schemas import (
    BehaviorOutcomeCorrelation,
    BehaviorScore,
    CorrelationAnalysis,
    CorrelationSummary,
    Outcome,
)
from behavior_crm.services.behavior_scores import get_behavior_scores
from behavior_crm.services.outcomes import get_outcomes


# =============================================================================
# Types & Constants
# =============================================================================

CorrelationMethod = Callable[[Sequence[float], Sequence[float]], Tuple[float, float]]

# (store, user_id, period_start, period_end, top_n) -> analysis
CorrelationAnalyzer = Callable[[RecordStore, str, datetime, datetime, int], Awaitable[CorrelationAnalysis]]

DEFAULT_TOP_N: int = 3

PERIOD_KEY = ['period_start', 'period_end']

SUMMARY_FIELDS: Dict[OutcomeType, str] = {
    OutcomeType.HIR: 'top_behaviors_for_hir',
    OutcomeType.CONVERSION_RATE: 'top_behaviors_for_conversion',
    OutcomeType.FIELD_GROWTH_RATE: 'top_behaviors_for_growth',
    OutcomeType.PRESCRIPTION_INDEX: 'top_behaviors_for_prescription',
}

BEHAVIOR_ORDER: Dict[BehaviorType, int] = {behavior: i for i, behavior in enumerate(BehaviorType)}

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Correlation Methods
# =============================================================================


def pearson_weight(x: Sequence[float], y: Sequence[float]) -> Tuple[float, float]:
    """
    Pearson correlation and its absolute value as the weight.

    Returns (0.0, 0.0) for fewer than 2 points, mismatched lengths or a
    constant series.
    """
    if len(x) < 2 or len(x) != len(y):
        return 0.0, 0.0
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    if np.std(xs) == 0 or np.std(ys) == 0:
        return 0.0, 0.0
    r = float(np.corrcoef(xs, ys)[0, 1])
    if not np.isfinite(r):
        return 0.0, 0.0
    r = max(-1.0, min(1.0, r))
    return round(r, 4), round(abs(r), 4)


# =============================================================================
# Alignment
# =============================================================================


def align_periods(
    behavior_scores: Sequence[BehaviorScore],
    outcomes: Sequence[Outcome],
) -> pd.DataFrame:
    """
    One row per period present in both inputs.

    Columns are the behavior values (quality sub-score) and the outcome type
    values. Behaviors without a score in a period are NaN.
    """
    if not behavior_scores or not outcomes:
        return pd.DataFrame()

    scores = pd.DataFrame([
        {
            'period_start': s.period_start,
            'period_end': s.period_end,
            'behavior': s.behavior.value,
            'quality': float(s.quality_score),
        }
        for s in behavior_scores
    ])
    behavior_frame = scores.pivot_table(
        index=PERIOD_KEY, columns='behavior', values='quality', aggfunc='mean'
    )

    outcome_frame = pd.DataFrame([
        {
            'period_start': o.period_start,
            'period_end': o.period_end,
            **{outcome.value: o.value(outcome) for outcome in OutcomeType},
        }
        for o in outcomes
    ]).groupby(PERIOD_KEY).mean()

    return behavior_frame.join(outcome_frame, how='inner').sort_index()


# =============================================================================
# Analysis
# =============================================================================


def summarize(
    correlations: Sequence[BehaviorOutcomeCorrelation],
    top_n: int = DEFAULT_TOP_N,
) -> CorrelationSummary:
    summary: Dict[str, List[BehaviorType]] = {}
    for outcome, field in SUMMARY_FIELDS.items():
        ranked = sorted(
            (c for c in correlations if c.outcome == outcome and c.weight > 0),
            key=lambda c: (-c.weight, BEHAVIOR_ORDER[c.behavior]),
        )
        summary[field] = [c.behavior for c in ranked[:top_n]]
    return CorrelationSummary(**summary)


def correlate(
    behavior_scores: Sequence[BehaviorScore],
    outcomes: Sequence[Outcome],
    top_n: int = DEFAULT_TOP_N,
    method: CorrelationMethod = pearson_weight,
) -> CorrelationAnalysis:
    """All 32 behavior x outcome pairs in enumeration order, plus the summary."""
    aligned = align_periods(behavior_scores, outcomes)

    correlations = []
    for behavior in BehaviorType:
        for outcome in OutcomeType:
            x: List[float] = []
            y: List[float] = []
            if not aligned.empty and behavior.value in aligned.columns:
                pair = aligned[[behavior.value, outcome.value]].dropna()
                x = pair[behavior.value].tolist()
                y = pair[outcome.value].tolist()
            correlation, weight = method(x, y)
            correlations.append(BehaviorOutcomeCorrelation(
                behavior=behavior,
                outcome=outcome,
                correlation=correlation,
                weight=weight,
                sample_size=len(x),
            ))

    return CorrelationAnalysis(correlations=correlations, summary=summarize(correlations, top_n))


async def analyze_behavior_outcome_correlation(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    top_n: int = DEFAULT_TOP_N,
    method: CorrelationMethod = pearson_weight,
) -> CorrelationAnalysis:
    """
    Correlate a user's behavior scores with their account-wide outcomes.

    No overlapping periods is a valid result: every weight is 0 and every
    summary list is empty.
    """
    behavior_scores = await get_behavior_scores(store, user_id, period_start, period_end)
    outcomes = await get_outcomes(store, user_id, period_start, period_end)
    analysis = correlate(behavior_scores, outcomes, top_n, method)
    log_event(
        logger, logging.INFO, 'correlation.analyzed',
        user_id=user_id,
        behavior_scores=len(behavior_scores),
        outcomes=len(outcomes),
        top_for_conversion=[b.value for b in analysis.summary.top_behaviors_for_conversion],
    )
    return analysis
