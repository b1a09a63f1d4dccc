"""
Outcome Calculation Service.

Computes the per-period business-result snapshot stored in the outcomes table:

- hir_score: HIR for the period (see services.metrics)
- conversion_rate: prescription growth against the previous equal-length
  period (weight 0.7) plus the share of the period's activities that led to
  a prescription (weight 0.3). Rounded, clamped to [-100, 100].
- field_growth_rate: quantity growth (weight 0.6) plus revenue growth
  (weight 0.4) against a comparison period. Rounded to 2 decimals, not
  bounded above.
- prescription_index: weighted quantity score (weight 0.7) plus growth score
  (weight 0.3), 0-100. 0 when the period has no prescriptions.

Growth against an empty baseline counts as 100% when the current period has
anything (see services.common.growth_rate).

Prescriptions carry no owner, so a user's prescriptions are those written at
the accounts the user worked in the current or comparison window, or at the
single account asked for.

refresh_outcomes replaces the stored outcome for (user, period type, period,
account scope): delete, then insert.
"""

import asyncio
import logging
import math
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from behavior_crm.core.log import log_event
from behavior_crm.core.store import Range, RecordStore
from behavior_crm.models.enums import AccountType, ComparisonPeriod, PeriodType
from behavior_crm.models.schemas import Activity, Outcome, Prescription
from behavior_crm.services.activities import fetch_activities
from behavior_crm.services.common import (
    clamp_score,
    comparison_period,
    growth_rate,
    previous_period,
    to_date,
)
from behavior_crm.services.metrics import calculate_hir


# =============================================================================
# Module Constants
# =============================================================================

CONVERSION_GROWTH_WEIGHT: float = 0.7
CONVERSION_LINK_WEIGHT: float = 0.3

FIELD_QUANTITY_WEIGHT: float = 0.6
FIELD_REVENUE_WEIGHT: float = 0.4

INDEX_QUANTITY_WEIGHT: float = 0.7
INDEX_GROWTH_WEIGHT: float = 0.3
# Growth of -50% maps to 0 and +50% to 100
INDEX_GROWTH_OFFSET: float = 50.0

ACCOUNT_TYPE_WEIGHTS: Dict[AccountType, float] = {
    AccountType.GENERAL_HOSPITAL: 1.5,
    AccountType.HOSPITAL: 1.2,
    AccountType.CLINIC: 1.0,
    AccountType.PHARMACY: 0.8,
}

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Pure Calculations
# =============================================================================


def total_quantity(prescriptions: Sequence[Prescription]) -> float:
    return float(sum(p.quantity for p in prescriptions))


def total_revenue(prescriptions: Sequence[Prescription]) -> float:
    return float(sum(p.quantity * p.price for p in prescriptions))


def score_conversion_rate(
    current: Sequence[Prescription],
    previous: Sequence[Prescription],
    activities: Sequence[Activity],
) -> int:
    growth = growth_rate(total_quantity(current), total_quantity(previous))
    linked_ids = {p.related_activity_id for p in current if p.related_activity_id}
    if activities:
        linked = sum(1 for a in activities if a.id in linked_ids)
        link_ratio = linked / len(activities) * 100
    else:
        link_ratio = 0.0
    return clamp_score(
        growth * CONVERSION_GROWTH_WEIGHT + link_ratio * CONVERSION_LINK_WEIGHT,
        low=-100,
        high=100,
    )


def score_field_growth(
    current: Sequence[Prescription],
    comparison: Sequence[Prescription],
) -> float:
    quantity_growth = growth_rate(total_quantity(current), total_quantity(comparison))
    revenue_growth = growth_rate(total_revenue(current), total_revenue(comparison))
    return round(quantity_growth * FIELD_QUANTITY_WEIGHT + revenue_growth * FIELD_REVENUE_WEIGHT, 2)


def price_weight(price: float) -> float:
    if price > 0:
        return math.log10(price + 1) / 10
    return 1.0


def score_prescription_index(
    current: Sequence[Prescription],
    previous: Sequence[Prescription],
    account_types: Optional[Dict[str, AccountType]] = None,
) -> int:
    """
    Prescription-based performance index.

    Each prescription's quantity is weighted by its account type and by
    log10(price + 1) / 10. The weighted total is normalized against twice the
    plain total quantity.
    """
    if not current:
        return 0
    account_types = account_types or {}

    weighted = 0.0
    for prescription in current:
        account_type = account_types.get(prescription.account_id)
        account_weight = ACCOUNT_TYPE_WEIGHTS.get(account_type, 1.0)
        weighted += prescription.quantity * account_weight * price_weight(prescription.price)

    quantity = total_quantity(current)
    max_expected = quantity * 2
    normalized = min(100.0, weighted / max_expected * 100) if max_expected > 0 else 0.0

    growth = growth_rate(quantity, total_quantity(previous))
    growth_score = min(100.0, max(0.0, growth + INDEX_GROWTH_OFFSET))

    return clamp_score(normalized * INDEX_QUANTITY_WEIGHT + growth_score * INDEX_GROWTH_WEIGHT)


# =============================================================================
# Data Retrieval
# =============================================================================


async def _account_scope(
    store: RecordStore,
    user_id: str,
    start: datetime,
    end: datetime,
    account_id: Optional[str],
) -> List[str]:
    if account_id:
        return [account_id]
    activities = await fetch_activities(store, user_id, start, end)
    return sorted({a.account_id for a in activities})


async def fetch_prescriptions(
    store: RecordStore,
    account_ids: Sequence[str],
    start: datetime,
    end: datetime,
) -> List[Prescription]:
    if not account_ids:
        return []
    rows = await store.select(
        'prescriptions',
        ranges={'prescription_date': Range(gte=to_date(start), lte=to_date(end))},
        in_={'account_id': list(account_ids)},
    )
    return [Prescription.model_validate(row) for row in rows]


async def _account_types(store: RecordStore, account_ids: Sequence[str]) -> Dict[str, AccountType]:
    if not account_ids:
        return {}
    rows = await store.select('accounts', in_={'id': list(account_ids)})
    return {row['id']: AccountType(row['type']) for row in rows if row.get('type')}


# =============================================================================
# Calculators
# =============================================================================


async def calculate_conversion_rate(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    account_id: Optional[str] = None,
) -> int:
    previous_start, previous_end = previous_period(period_start, period_end)
    accounts = await _account_scope(store, user_id, previous_start, period_end, account_id)
    current = await fetch_prescriptions(store, accounts, period_start, period_end)
    previous = await fetch_prescriptions(store, accounts, previous_start, previous_end)
    activities = await fetch_activities(store, user_id, period_start, period_end, account_id)
    rate = score_conversion_rate(current, previous, activities)
    log_event(logger, logging.DEBUG, 'outcomes.conversion_rate', user_id=user_id, rate=rate)
    return rate


async def calculate_field_growth(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    account_id: Optional[str] = None,
    comparison: ComparisonPeriod = ComparisonPeriod.PREVIOUS_PERIOD,
    custom_start: Optional[datetime] = None,
    custom_end: Optional[datetime] = None,
) -> float:
    compare_start, compare_end = comparison_period(
        period_start, period_end, comparison, custom_start, custom_end
    )
    accounts = await _account_scope(
        store, user_id, min(compare_start, period_start), max(compare_end, period_end), account_id
    )
    current = await fetch_prescriptions(store, accounts, period_start, period_end)
    baseline = await fetch_prescriptions(store, accounts, compare_start, compare_end)
    rate = score_field_growth(current, baseline)
    log_event(
        logger, logging.DEBUG, 'outcomes.field_growth',
        user_id=user_id, comparison=comparison, rate=rate,
    )
    return rate


async def calculate_prescription_index(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    account_id: Optional[str] = None,
) -> int:
    previous_start, previous_end = previous_period(period_start, period_end)
    accounts = await _account_scope(store, user_id, previous_start, period_end, account_id)
    current = await fetch_prescriptions(store, accounts, period_start, period_end)
    if not current:
        return 0
    previous = await fetch_prescriptions(store, accounts, previous_start, previous_end)
    account_types = await _account_types(store, sorted({p.account_id for p in current}))
    index = score_prescription_index(current, previous, account_types)
    log_event(logger, logging.DEBUG, 'outcomes.prescription_index', user_id=user_id, index=index)
    return index


# =============================================================================
# Persistence
# =============================================================================


async def refresh_outcomes(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    period_type: PeriodType,
    account_id: Optional[str] = None,
    comparison: ComparisonPeriod = ComparisonPeriod.PREVIOUS_MONTH,
) -> Outcome:
    """
    Recompute and replace the outcome for (user, period type, period, account scope).

    Without account_id the account-wide outcome (account_id IS NULL) is replaced.
    """
    hir, conversion, growth, index = await asyncio.gather(
        calculate_hir(store, user_id, period_start, period_end, account_id),
        calculate_conversion_rate(store, user_id, period_start, period_end, account_id),
        calculate_field_growth(
            store, user_id, period_start, period_end, account_id, comparison=comparison
        ),
        calculate_prescription_index(store, user_id, period_start, period_end, account_id),
    )

    start_date, end_date = to_date(period_start), to_date(period_end)
    filters = {'user_id': user_id, 'period_type': period_type.value}
    if account_id:
        filters['account_id'] = account_id
    deleted = await store.delete(
        'outcomes',
        filters=filters,
        ranges={
            'period_start': Range(gte=start_date),
            'period_end': Range(lte=end_date),
        },
        is_null=None if account_id else {'account_id': True},
    )
    rows = await store.insert('outcomes', [{
        'user_id': user_id,
        'account_id': account_id,
        'hir_score': hir,
        'conversion_rate': conversion,
        'field_growth_rate': growth,
        'prescription_index': index,
        'period_type': period_type.value,
        'period_start': start_date,
        'period_end': end_date,
    }])

    outcome = Outcome.model_validate(rows[0])
    log_event(
        logger, logging.INFO, 'outcomes.refreshed',
        user_id=user_id, account_id=account_id, period_type=period_type, deleted=deleted,
        hir=hir, conversion_rate=conversion, field_growth_rate=growth, prescription_index=index,
    )
    return outcome


async def get_outcomes(
    store: RecordStore,
    user_id: str,
    period_start: datetime,
    period_end: datetime,
    period_type: Optional[PeriodType] = None,
    account_id: Optional[str] = None,
) -> List[Outcome]:
    """
    Stored outcomes whose period lies within the given one, oldest first.

    Without account_id only account-wide outcomes are returned.
    """
    filters = {'user_id': user_id}
    if period_type is not None:
        filters['period_type'] = period_type.value
    if account_id:
        filters['account_id'] = account_id
    rows = await store.select(
        'outcomes',
        filters=filters,
        ranges={
            'period_start': Range(gte=to_date(period_start)),
            'period_end': Range(lte=to_date(period_end)),
        },
        is_null=None if account_id else {'account_id': True},
        order_by='period_start',
    )
    return [Outcome.model_validate(row) for row in rows]
