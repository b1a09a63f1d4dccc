"""
Small helpers shared by the analytics services: score rounding and clamping,
UTC normalization, period arithmetic and row helpers.

Scores are rounded half-up (2.5 -> 3), not with Python's round-half-even.
"""

import math
from datetime import date as DateType, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import pandas as pd
from pydantic import BaseModel

from behavior_crm.core.errors import ForbiddenError, NotFoundError
from behavior_crm.core.store import RecordStore, Row
from behavior_crm.models.enums import ComparisonPeriod


# =============================================================================
# Scores
# =============================================================================

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float, low: int = 0, high: int = 100) -> int:
    """Round half-up and clamp to [low, high]. NaN counts as 0."""
    if value is None or math.isnan(value):
        return 0
    return max(low, min(high, round_half_up(value)))


def growth_rate(current: float, previous: float) -> float:
    """
    Percentage change from previous to current.

    A zero baseline counts as 100% growth when there is anything now and 0%
    otherwise.
    """
    if previous > 0:
        return (current - previous) / previous * 100
    if current > 0:
        return 100.0
    return 0.0


# =============================================================================
# Time
# =============================================================================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_date(value: datetime) -> DateType:
    return ensure_utc(value).date()


def trailing_window(now: datetime, days: int) -> Tuple[datetime, datetime]:
    """The ``days``-long window ending at ``now``."""
    now = ensure_utc(now)
    return now - timedelta(days=days), now


def previous_period(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
    """The equal-length period immediately before [start, end]."""
    return start - (end - start), start


def comparison_period(
    start: datetime,
    end: datetime,
    comparison: ComparisonPeriod = ComparisonPeriod.PREVIOUS_PERIOD,
    custom_start: Optional[datetime] = None,
    custom_end: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """
    Baseline period for growth calculations.

    previous_month / previous_year shift the start back by one calendar
    month / year and keep the period length. custom uses the given bounds and
    falls back to previous_period when either is missing.
    """
    length = end - start
    if comparison == ComparisonPeriod.CUSTOM and custom_start and custom_end:
        return custom_start, custom_end
    if comparison == ComparisonPeriod.PREVIOUS_MONTH:
        shifted = (pd.Timestamp(start) - pd.DateOffset(months=1)).to_pydatetime()
        return shifted, shifted + length
    if comparison == ComparisonPeriod.PREVIOUS_YEAR:
        shifted = (pd.Timestamp(start) - pd.DateOffset(years=1)).to_pydatetime()
        return shifted, shifted + length
    return previous_period(start, end)


def period_days(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 86400


# =============================================================================
# Rows
# =============================================================================

def to_row(model: BaseModel, **dump_kwargs: Any) -> Dict[str, Any]:
    """Dump a model to column values, with enums reduced to their values."""
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in model.model_dump(**dump_kwargs).items()
    }


async def get_owned_row(
    store: RecordStore,
    table: str,
    record_id: str,
    user_id: str,
    label: str,
) -> Row:
    """
    Fetch a row that the caller is about to mutate.

    Raises:
        NotFoundError: No row with that id.
        ForbiddenError: The row belongs to another user.
    """
    rows = await store.select(table, filters={'id': record_id}, limit=1)
    if not rows:
        raise NotFoundError(f"{label} not found")
    if rows[0].get('user_id') != user_id:
        raise ForbiddenError(f"{label} belongs to another user")
    return rows[0]
