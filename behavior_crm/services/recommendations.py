"""
Next Best Action recommendations.

For each account, suggest the conversion-driving behavior the rep has done
least there recently.

1. Correlate behaviors with outcomes over the trailing window and take the
   top-N behaviors for conversion (ordered). None -> no recommendations.
2. Fetch all accounts (by name) and the user's activities in the window.
3. Per account, count each top behavior; pick the least-performed one. Ties
   go to the behavior ranked higher in the top list.
4. priority = (N - rank) * 20, plus 20 when the behavior was never performed
   there, capped at 100 (N = length of the top list).
5. Attach the account's first contact by creation time, sort by priority
   (stable, so equal priorities keep account-name order) and truncate.

Recommendations are derived on every call and never stored.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from behavior_crm.core.log import log_event
from behavior_crm.core.store import RecordStore
from behavior_crm.models.enums import BehaviorType
from behavior_crm.models.schemas import Account, Activity, Contact, NextBestAction
from behavior_crm.services.activities import fetch_activities
from behavior_crm.services.coaching import BEHAVIOR_LABELS
from behavior_crm.services.common import trailing_window, utcnow
from behavior_crm.services.correlation import (
    DEFAULT_TOP_N,
    CorrelationAnalyzer,
    analyze_behavior_outcome_correlation,
)

WINDOW_DAYS: int = 30
DEFAULT_LIMIT: int = 5
RANK_STEP: int = 20
NEVER_PERFORMED_BONUS: int = 20
MAX_PRIORITY: int = 100

# Logger for this module
logger = logging.getLogger(__name__)


def recommendation_priority(rank: int, top_count: int, performed: int) -> int:
    """Priority for the behavior at ``rank`` (0-based) of a top list of ``top_count``."""
    score = (top_count - rank) * RANK_STEP
    if performed == 0:
        score += NEVER_PERFORMED_BONUS
    return min(MAX_PRIORITY, score)


def least_performed(
    top_behaviors: Sequence[BehaviorType],
    activities: Sequence[Activity],
) -> Tuple[int, BehaviorType, int]:
    """(rank, behavior, count) of the top behavior with the fewest activities."""
    counts = [sum(1 for a in activities if a.behavior == b) for b in top_behaviors]
    rank = min(range(len(top_behaviors)), key=lambda i: (counts[i], i))
    return rank, top_behaviors[rank], counts[rank]


def build_reason(behavior: BehaviorType, count: int, account_name: str, days: int) -> str:
    label = BEHAVIOR_LABELS[behavior]
    if count == 0:
        return (
            f"{label.capitalize()} is a top behavior for conversion but has not been "
            f"performed at {account_name} in the last {days} days"
        )
    return (
        f"{label.capitalize()} is a top behavior for conversion but was performed only "
        f"{count} times at {account_name} in the last {days} days"
    )


def rank_accounts(
    top_behaviors: Sequence[BehaviorType],
    accounts: Sequence[Account],
    activities: Sequence[Activity],
    first_contacts: Dict[str, Contact],
    limit: int = DEFAULT_LIMIT,
    days: int = WINDOW_DAYS,
) -> List[NextBestAction]:
    if not top_behaviors:
        return []
    by_account: Dict[str, List[Activity]] = {}
    for activity in activities:
        by_account.setdefault(activity.account_id, []).append(activity)

    actions = []
    for account in accounts:
        rank, behavior, count = least_performed(top_behaviors, by_account.get(account.id, []))
        contact = first_contacts.get(account.id)
        actions.append(NextBestAction(
            account_id=account.id,
            account_name=account.name,
            contact_id=contact.id if contact else None,
            contact_name=contact.name if contact else None,
            behavior=behavior,
            reason=build_reason(behavior, count, account.name, days),
            priority=recommendation_priority(rank, len(top_behaviors), count),
        ))
    actions.sort(key=lambda action: action.priority, reverse=True)
    return actions[:limit]


async def _first_contacts(store: RecordStore, account_ids: Sequence[str]) -> Dict[str, Contact]:
    if not account_ids:
        return {}
    rows = await store.select(
        'contacts',
        in_={'account_id': list(account_ids)},
        order_by='created_at',
    )
    first: Dict[str, Contact] = {}
    for row in rows:
        first.setdefault(row['account_id'], Contact.model_validate(row))
    return first


async def recommend_next_actions(
    store: RecordStore,
    user_id: str,
    limit: int = DEFAULT_LIMIT,
    now: Optional[datetime] = None,
    analyzer: CorrelationAnalyzer = analyze_behavior_outcome_correlation,
    top_n: int = DEFAULT_TOP_N,
) -> List[NextBestAction]:
    """
    Next best actions for a user, highest priority first.

    An empty list is returned when no behavior correlates with conversion.
    Storage failures propagate.
    """
    start, end = trailing_window(now or utcnow(), WINDOW_DAYS)
    analysis = await analyzer(store, user_id, start, end, top_n)
    top_behaviors = list(analysis.summary.top_behaviors_for_conversion)
    if not top_behaviors:
        log_event(logger, logging.INFO, 'recommendations.no_conversion_drivers', user_id=user_id)
        return []

    account_rows = await store.select('accounts', order_by='name')
    accounts = [Account.model_validate(row) for row in account_rows]
    activities = await fetch_activities(store, user_id, start, end)
    contacts = await _first_contacts(store, [a.id for a in accounts])

    actions = rank_accounts(top_behaviors, accounts, activities, contacts, limit)
    log_event(
        logger, logging.INFO, 'recommendations.generated',
        user_id=user_id, accounts=len(accounts), returned=len(actions),
    )
    return actions
