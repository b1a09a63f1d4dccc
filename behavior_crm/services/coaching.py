"""
Coaching Signal Generation Service.

Rule-based detection of conditions a rep or manager should act on. All rules
read one CoachingContext, gathered once from the store for the period and the
equal-length period before it:

1. behavior_lack (medium)
   - follow-up readiness PHR < 40 with activity present (follow_up, high)
   - cadence BCR < 30 with activity present (no behavior, medium)
   - per behavior, count below the period threshold:
     1 for periods up to 7 days, 3 up to 30 days, 5 beyond
2. relationship_decline (high), per account
   - activity count below 50% of the previous period's
   - account RTR below 40 when the account has sentiment data
3. competitor_activity (high), per account with competitor signals in period
4. conversion_lack (high), per top behavior for conversion done fewer than 2 times
5. interest_drop (medium), per account: mean quality <= 30, or below 70% of
   the previous period's mean (100 when the account had no activity before)
6. weak_behavior (low), per behavior: mean quality below 50% of the overall
   mean across stored behavior scores

Signals are collapsed on (type, behavior, account); the first one wins.

Saving is sequential. Each signal updates the user's unresolved signal of the
same type when there is one, otherwise it is inserted. Concurrent writers for
the same user can still race between the check and the insert; the table
has no unique constraint on (user, type, unresolved).
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from behavior_crm.core.log import log_event
from behavior_crm.core.store import RecordStore
from behavior_crm.models.enums import BehaviorType, CoachingSignalType, SignalPriority
from behavior_crm.models.schemas import (
    Activity,
    BehaviorScore,
    CoachingSignal,
    CoachingSignalDraft,
    CompetitorSignal,
    SignalSaveResult,
)
from behavior_crm.services.activities import fetch_activities
from behavior_crm.services.behavior_scores import get_behavior_scores
from behavior_crm.services.common import get_owned_row, period_days, previous_period, utcnow
from behavior_crm.services.competitor_signals import get_competitor_signals
from behavior_crm.services.correlation import (
    DEFAULT_TOP_N,
    CorrelationAnalyzer,
    analyze_behavior_outcome_correlation,
)
from behavior_crm.services.metrics import score_bcr, score_phr, score_rtr


# =============================================================================
# Module Constants
# =============================================================================

BEHAVIOR_LABELS: Dict[BehaviorType, str] = {
    BehaviorType.APPROACH: "approach",
    BehaviorType.CONTACT: "contact",
    BehaviorType.VISIT: "visit",
    BehaviorType.PRESENTATION: "presentation",
    BehaviorType.QUESTION: "question",
    BehaviorType.NEED_CREATION: "need creation",
    BehaviorType.DEMONSTRATION: "demonstration",
    BehaviorType.FOLLOW_UP: "follow-up",
}

# (max period days, minimum activity count per behavior)
BEHAVIOR_LACK_THRESHOLDS = ((7, 1), (30, 3))
BEHAVIOR_LACK_LONG_THRESHOLD: int = 5

PHR_ALERT_BELOW: int = 40
BCR_ALERT_BELOW: int = 30
RTR_ALERT_BELOW: int = 40
RELATIONSHIP_DECLINE_RATIO: float = 0.5
CONVERSION_MIN_COUNT: int = 2
INTEREST_QUALITY_FLOOR: float = 30.0
INTEREST_DROP_RATIO: float = 0.7
INTEREST_DEFAULT_PREVIOUS: float = 100.0
WEAK_BEHAVIOR_RATIO: float = 0.5

DEFAULT_SIGNAL_LIMIT: int = 50

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Action Text
# =============================================================================


def generate_coaching_action(
    signal_type: CoachingSignalType,
    behavior: Optional[BehaviorType] = None,
    account_name: Optional[str] = None,
) -> str:
    """
    Templated coaching sentence for a signal.

    Pure lookup: the behavior and account name personalize the text when given.
    """
    label = BEHAVIOR_LABELS.get(behavior, '') if behavior else ''

    if signal_type == CoachingSignalType.BEHAVIOR_LACK:
        if behavior:
            return f"There has not been enough {label} activity this period. Schedule more {label} activities with your key accounts."
        return "Activity has been too low or too irregular this period. Plan a steady weekly cadence."
    if signal_type == CoachingSignalType.RELATIONSHIP_DECLINE:
        if account_name:
            return f"The relationship with {account_name} is cooling. Contact them more often and review the relationship."
        return "The relationship with an account is cooling. Review the relationship and contact them more often."
    if signal_type == CoachingSignalType.COMPETITOR_ACTIVITY:
        if account_name:
            return f"Competitor activity was detected at {account_name}. Prepare a competitive response and strengthen the relationship."
        return "Competitor activity was detected. Prepare a competitive response and strengthen the relationship."
    if signal_type == CoachingSignalType.CONVERSION_LACK:
        if behavior:
            return f"{label.capitalize()} drives conversion for you. Prioritize {label} activities that dig deeper into customer needs."
        return "Behaviors that drive conversion are missing. Check the behavior-outcome correlation and prioritize those behaviors."
    if signal_type == CoachingSignalType.INTEREST_DROP:
        if account_name:
            return f"Interest at {account_name} has dropped sharply. Rework your approach and revisit their needs."
        return "Interest at an account has dropped sharply. Review the relationship and rework your approach."
    if signal_type == CoachingSignalType.WEAK_BEHAVIOR:
        if behavior:
            return f"Your {label} quality is well below your personal average. Get training or coaching to improve your {label} activities."
        return "One behavior's quality is well below your personal average. Get training or coaching on that behavior."
    return "Review your behavior patterns to find what to improve."


# =============================================================================
# Rule Context
# =============================================================================


@dataclass
class CoachingContext:
    """Everything the rules read, fetched once per generation run."""

    period_start: datetime
    period_end: datetime
    now: datetime
    activities: List[Activity] = field(default_factory=list)
    previous_activities: List[Activity] = field(default_factory=list)
    behavior_scores: List[BehaviorScore] = field(default_factory=list)
    competitor_signals: List[CompetitorSignal] = field(default_factory=list)
    top_behaviors_for_conversion: List[BehaviorType] = field(default_factory=list)

    @property
    def days(self) -> int:
        return math.ceil(period_days(self.period_start, self.period_end))

    def by_account(self, activities: Sequence[Activity]) -> Dict[str, List[Activity]]:
        grouped: Dict[str, List[Activity]] = {}
        for activity in activities:
            grouped.setdefault(activity.account_id, []).append(activity)
        return grouped


def behavior_lack_threshold(days: int) -> int:
    for max_days, threshold in BEHAVIOR_LACK_THRESHOLDS:
        if days <= max_days:
            return threshold
    return BEHAVIOR_LACK_LONG_THRESHOLD


# =============================================================================
# Rules
# =============================================================================


def detect_behavior_lack(ctx: CoachingContext) -> List[CoachingSignalDraft]:
    signals = []
    if ctx.activities:
        phr = score_phr(ctx.activities, ctx.now)
        if phr < PHR_ALERT_BELOW:
            signals.append(CoachingSignalDraft(
                type=CoachingSignalType.BEHAVIOR_LACK,
                priority=SignalPriority.HIGH,
                behavior=BehaviorType.FOLLOW_UP,
                message=f"Follow-up readiness (PHR) is {phr}. Most activities have no upcoming next action.",
            ))
        bcr = score_bcr(ctx.activities, ctx.period_start, ctx.period_end)
        if bcr < BCR_ALERT_BELOW:
            signals.append(CoachingSignalDraft(
                type=CoachingSignalType.BEHAVIOR_LACK,
                priority=SignalPriority.MEDIUM,
                message=f"Activity cadence is irregular (BCR {bcr}). Activities are bunched into a few days.",
            ))

    days = ctx.days
    threshold = behavior_lack_threshold(days)
    for behavior in BehaviorType:
        count = sum(1 for a in ctx.activities if a.behavior == behavior)
        if count < threshold:
            signals.append(CoachingSignalDraft(
                type=CoachingSignalType.BEHAVIOR_LACK,
                priority=SignalPriority.MEDIUM,
                behavior=behavior,
                message=(
                    f"Not enough {BEHAVIOR_LABELS[behavior]} activity in the last {days} days "
                    f"({count}, target {threshold})."
                ),
            ))
    return signals


def detect_relationship_decline(ctx: CoachingContext) -> List[CoachingSignalDraft]:
    signals = []
    current = ctx.by_account(ctx.activities)
    previous = ctx.by_account(ctx.previous_activities)

    for account_id in list(current) + [a for a in previous if a not in current]:
        current_count = len(current.get(account_id, []))
        previous_count = len(previous.get(account_id, []))
        if previous_count > 0 and current_count < previous_count * RELATIONSHIP_DECLINE_RATIO:
            drop = round((1 - current_count / previous_count) * 100)
            signals.append(CoachingSignalDraft(
                type=CoachingSignalType.RELATIONSHIP_DECLINE,
                priority=SignalPriority.HIGH,
                account_id=account_id,
                message=(
                    f"Activity at this account fell {drop}% versus the previous period "
                    f"({current_count} vs {previous_count})."
                ),
            ))

    for account_id, activities in current.items():
        if not any(a.sentiment_score is not None for a in activities):
            continue
        rtr = score_rtr(activities)
        if rtr < RTR_ALERT_BELOW:
            signals.append(CoachingSignalDraft(
                type=CoachingSignalType.RELATIONSHIP_DECLINE,
                priority=SignalPriority.HIGH,
                account_id=account_id,
                message=f"Relationship temperature (RTR) at this account is {rtr}.",
            ))
    return signals


def detect_competitor_activity(ctx: CoachingContext) -> List[CoachingSignalDraft]:
    competitors: Dict[str, List[str]] = {}
    for signal in ctx.competitor_signals:
        names = competitors.setdefault(signal.account_id, [])
        if signal.competitor_name not in names:
            names.append(signal.competitor_name)
    return [
        CoachingSignalDraft(
            type=CoachingSignalType.COMPETITOR_ACTIVITY,
            priority=SignalPriority.HIGH,
            account_id=account_id,
            message=f"Competitor activity detected: {', '.join(names)}",
        )
        for account_id, names in competitors.items()
    ]


def detect_conversion_lack(ctx: CoachingContext) -> List[CoachingSignalDraft]:
    signals = []
    for behavior in ctx.top_behaviors_for_conversion:
        count = sum(1 for a in ctx.activities if a.behavior == behavior)
        if count < CONVERSION_MIN_COUNT:
            signals.append(CoachingSignalDraft(
                type=CoachingSignalType.CONVERSION_LACK,
                priority=SignalPriority.HIGH,
                behavior=behavior,
                message=(
                    f"{BEHAVIOR_LABELS[behavior].capitalize()} matters most for your conversion "
                    f"but was done only {count} times this period."
                ),
            ))
    return signals


def detect_interest_drop(ctx: CoachingContext) -> List[CoachingSignalDraft]:
    signals = []
    previous = ctx.by_account(ctx.previous_activities)
    for account_id, activities in ctx.by_account(ctx.activities).items():
        current_avg = float(np.mean([a.quality_score for a in activities]))
        before = previous.get(account_id)
        previous_avg = (
            float(np.mean([a.quality_score for a in before])) if before else INTEREST_DEFAULT_PREVIOUS
        )
        if current_avg <= INTEREST_QUALITY_FLOOR or (
            previous_avg > 0 and current_avg < previous_avg * INTEREST_DROP_RATIO
        ):
            signals.append(CoachingSignalDraft(
                type=CoachingSignalType.INTEREST_DROP,
                priority=SignalPriority.MEDIUM,
                account_id=account_id,
                message=f"Interest at this account has dropped (average quality {round(current_avg)}).",
            ))
    return signals


def detect_weak_behavior(ctx: CoachingContext) -> List[CoachingSignalDraft]:
    if not ctx.behavior_scores:
        return []
    overall = float(np.mean([s.quality_score for s in ctx.behavior_scores]))
    if overall <= 0:
        return []
    signals = []
    for behavior in BehaviorType:
        scores = [s.quality_score for s in ctx.behavior_scores if s.behavior == behavior]
        if not scores:
            continue
        average = float(np.mean(scores))
        if average < overall * WEAK_BEHAVIOR_RATIO:
            signals.append(CoachingSignalDraft(
                type=CoachingSignalType.WEAK_BEHAVIOR,
                priority=SignalPriority.LOW,
                behavior=behavior,
                message=(
                    f"{BEHAVIOR_LABELS[behavior].capitalize()} quality is far below your average "
                    f"({round(average)} vs {round(overall)})."
                ),
            ))
    return signals


RULES: Sequence[Callable[[CoachingContext], List[CoachingSignalDraft]]] = (
    detect_behavior_lack,
    detect_relationship_decline,
    detect_competitor_activity,
    detect_conversion_lack,
    detect_interest_drop,
    detect_weak_behavior,
)


def evaluate_rules(ctx: CoachingContext) -> List[CoachingSignalDraft]:
    """Run every rule in order and collapse duplicates on (type, behavior, account)."""
    seen = set()
    signals = []
    for rule in RULES:
        for signal in rule(ctx):
            key = (signal.type, signal.behavior, signal.account_id)
            if key in seen:
                continue
            seen.add(key)
            signals.append(signal)
    return signals


# =============================================================================
# Generation & Persistence
# =============================================================================


async def generate_coaching_signals(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    now: Optional[datetime] = None,
    analyzer: CorrelationAnalyzer = analyze_behavior_outcome_correlation,
    top_n: int = DEFAULT_TOP_N,
) -> List[CoachingSignalDraft]:
    """Gather the period's data and evaluate every coaching rule."""
    previous_start, previous_end = previous_period(period_start, period_end)
    activities = await fetch_activities(store, user_id, period_start, period_end)
    previous_activities = await fetch_activities(
        store, user_id, previous_start, previous_end - timedelta(microseconds=1)
    )
    behavior_scores = await get_behavior_scores(store, user_id, period_start, period_end)
    account_ids = sorted({a.account_id for a in activities})
    competitor_signals = await get_competitor_signals(
        store, account_ids=account_ids, start=period_start, end=period_end
    )
    correlation = await analyzer(store, user_id, period_start, period_end, top_n)

    ctx = CoachingContext(
        period_start=period_start,
        period_end=period_end,
        now=now or utcnow(),
        activities=activities,
        previous_activities=previous_activities,
        behavior_scores=behavior_scores,
        competitor_signals=competitor_signals,
        top_behaviors_for_conversion=list(correlation.summary.top_behaviors_for_conversion),
    )
    signals = evaluate_rules(ctx)
    log_event(
        logger, logging.INFO, 'coaching.generated',
        user_id=user_id, activities=len(activities), signals=len(signals),
    )
    return signals


async def _account_names(store: RecordStore, account_ids: Sequence[str]) -> Dict[str, str]:
    if not account_ids:
        return {}
    rows = await store.select('accounts', in_={'id': list(account_ids)})
    return {row['id']: row['name'] for row in rows}


async def generate_and_save_coaching_signals(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    now: Optional[datetime] = None,
    analyzer: CorrelationAnalyzer = analyze_behavior_outcome_correlation,
    top_n: int = DEFAULT_TOP_N,
) -> SignalSaveResult:
    """
    Generate coaching signals and upsert them one by one.

    A signal updates the user's existing unresolved signal of the same type,
    otherwise it is inserted. Storage failures propagate.
    """
    now = now or utcnow()
    drafts = await generate_coaching_signals(
        store, user_id, period_start, period_end, now, analyzer, top_n
    )
    names = await _account_names(store, sorted({d.account_id for d in drafts if d.account_id}))

    created = 0
    updated = 0
    saved: Dict[str, CoachingSignal] = {}
    for draft in drafts:
        values = {
            'message': draft.message,
            'recommended_action': generate_coaching_action(
                draft.type, draft.behavior, names.get(draft.account_id) if draft.account_id else None
            ),
            'priority': draft.priority.value,
            'account_id': draft.account_id,
            'contact_id': draft.contact_id,
        }
        existing = await store.select(
            'coaching_signals',
            filters={'user_id': user_id, 'type': draft.type.value, 'is_resolved': False},
            limit=1,
        )
        if existing:
            rows = await store.update(
                'coaching_signals', {**values, 'updated_at': now}, {'id': existing[0]['id']}
            )
            updated += 1
        else:
            rows = await store.insert('coaching_signals', [{
                **values,
                'user_id': user_id,
                'type': draft.type.value,
                'is_resolved': False,
                'resolved_at': None,
            }])
            created += 1
        if rows:
            signal = CoachingSignal.model_validate(rows[0])
            saved[signal.id] = signal

    log_event(
        logger, logging.INFO, 'coaching.saved',
        user_id=user_id, created=created, updated=updated,
    )
    return SignalSaveResult(created=created, updated=updated, signals=list(saved.values()))


async def get_coaching_signals(
    store: RecordStore,
    user_id: str,
    include_resolved: bool = False,
    limit: int = DEFAULT_SIGNAL_LIMIT,
) -> List[CoachingSignal]:
    """A user's coaching signals, newest first."""
    filters = {'user_id': user_id}
    if not include_resolved:
        filters['is_resolved'] = False
    rows = await store.select(
        'coaching_signals',
        filters=filters,
        order_by='created_at',
        descending=True,
        limit=limit,
    )
    return [CoachingSignal.model_validate(row) for row in rows]


async def resolve_coaching_signal(
    store: RecordStore,
    user_id: str,
    signal_id: str,
    now: Optional[datetime] = None,
) -> CoachingSignal:
    """
    Mark a signal resolved.

    Raises:
        NotFoundError: No such signal.
        ForbiddenError: The signal belongs to another user.
    """
    existing = await get_owned_row(store, 'coaching_signals', signal_id, user_id, 'Coaching signal')
    values = {'is_resolved': True, 'resolved_at': now or utcnow()}
    rows = await store.update('coaching_signals', values, {'id': signal_id})
    log_event(logger, logging.INFO, 'coaching.resolved', signal_id=signal_id, user_id=user_id)
    return CoachingSignal.model_validate(rows[0] if rows else {**existing, **values})
