"""
Competitor Signal Detection Service.

Classifies the free-text description of an activity as a competitor signal and
persists detected or manually entered signals.

Detection Algorithm (detect_competitor_signal):
1. Known competitor names (case-insensitive substring)
   -> competitor_mentioned, confidence 0.9
2. Otherwise count keyword hits
   -> keyword_detected, confidence min(0.3 + 0.2 * hits, 0.8)
3. Behavioral patterns ("using another product", "comparing prices", ...),
   first match only: seed doctor_mention at 0.7, or boost the existing
   confidence by 0.1 (capped at 0.95)
4. Price/sample inquiry patterns, first match only: seed price_sample_inquiry
   at 0.6, or boost by 0.1 (capped at 0.95)
5. No match, or final confidence below 0.5 -> None

The detector is pure and deterministic. It never raises on any input string.

Keyword and pattern lists cover Korean field notes and their English
equivalents.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from behavior_crm.core.log import log_event
from behavior_crm.core.store import Range, RecordStore
from behavior_crm.models.enums import CompetitorSignalType
from behavior_crm.models.schemas import (
    Activity,
    CompetitorSignal,
    CompetitorSignalCreate,
    DetectedCompetitorSignal,
)
from behavior_crm.services.common import ensure_utc, to_row, utcnow


# =============================================================================
# Module Constants
# =============================================================================

UNKNOWN_COMPETITOR: str = "unknown competitor"

NAMED_CONFIDENCE: float = 0.9
KEYWORD_BASE_CONFIDENCE: float = 0.3
KEYWORD_STEP: float = 0.2
KEYWORD_MAX_CONFIDENCE: float = 0.8
DOCTOR_PATTERN_CONFIDENCE: float = 0.7
PRICE_SAMPLE_CONFIDENCE: float = 0.6
PATTERN_BOOST: float = 0.1
MAX_CONFIDENCE: float = 0.95
MIN_CONFIDENCE: float = 0.5

COMPETITOR_KEYWORDS: List[str] = [
    '경쟁사',
    '경쟁 제품',
    '다른 제품',
    '다른 회사',
    '비교',
    '샘플',
    '샘플 요청',
    '가격 비교',
    '가격 문의',
    '대안',
    '대체',
    '교체',
    '변경',
    '바꾸',
    'competitor',
    'compare',
    'sample',
    'alternative',
]

DOCTOR_MENTION_PATTERNS: List[re.Pattern] = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r'다른.*제품.*쓰고',
        r'다른.*회사.*제품',
        r'비교.*중',
        r'가격.*비교',
        r'샘플.*요청',
        r'대안.*검토',
        r'교체.*고려',
        r'using\s+(another|a\s+different)\s+product',
        r'comparing\s+prices',
    )
]

PRICE_SAMPLE_PATTERNS: List[re.Pattern] = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r'가격.*문의',
        r'가격.*비교',
        r'샘플.*요청',
        r'샘플.*제공',
        r'견적.*요청',
        r'(price|pricing)\s+(inquiry|quote)',
        r'request(ed)?\s+(a\s+)?samples?',
    )
]

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Detection
# =============================================================================


def _first_match(patterns: Sequence[re.Pattern], text: str) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def detect_competitor_signal(
    description: Optional[str],
    competitor_names: Optional[Sequence[str]] = None,
) -> Optional[DetectedCompetitorSignal]:
    """
    Classify an activity description as a competitor signal.

    Args:
        description: Free-text activity notes.
        competitor_names: Known competitor names, matched case-insensitively.

    Returns:
        DetectedCompetitorSignal, or None when nothing matched or the final
        confidence is below 0.5.

    Example:
        >>> detect_competitor_signal("경쟁사 제품과 비교 중입니다").confidence
        0.8
        >>> detect_competitor_signal("오늘 병원 방문 완료") is None
        True
    """
    if not description or not description.strip():
        return None

    lowered = description.lower()
    signal_type: Optional[CompetitorSignalType] = None
    competitor_name = UNKNOWN_COMPETITOR
    confidence = 0.0

    for name in competitor_names or []:
        if name and name.strip() and name.strip().lower() in lowered:
            signal_type = CompetitorSignalType.COMPETITOR_MENTIONED
            competitor_name = name.strip()
            confidence = NAMED_CONFIDENCE
            break

    if signal_type is None:
        hits = sum(1 for keyword in COMPETITOR_KEYWORDS if keyword.lower() in lowered)
        if hits > 0:
            signal_type = CompetitorSignalType.KEYWORD_DETECTED
            confidence = min(KEYWORD_BASE_CONFIDENCE + KEYWORD_STEP * hits, KEYWORD_MAX_CONFIDENCE)

    for patterns, seed_type, seed_confidence in (
        (DOCTOR_MENTION_PATTERNS, CompetitorSignalType.DOCTOR_MENTION, DOCTOR_PATTERN_CONFIDENCE),
        (PRICE_SAMPLE_PATTERNS, CompetitorSignalType.PRICE_SAMPLE_INQUIRY, PRICE_SAMPLE_CONFIDENCE),
    ):
        if not _first_match(patterns, description):
            continue
        if signal_type is None:
            signal_type = seed_type
            confidence = seed_confidence
        else:
            confidence = min(confidence + PATTERN_BOOST, MAX_CONFIDENCE)

    confidence = round(confidence, 2)
    if signal_type is None or confidence < MIN_CONFIDENCE:
        return None

    return DetectedCompetitorSignal(
        competitor_name=competitor_name,
        type=signal_type,
        description=description,
        confidence=confidence,
    )


# =============================================================================
# Persistence
# =============================================================================


async def detect_and_save_competitor_signal(
    store: RecordStore,
    user_id: str,
    activity: Activity,
    competitor_names: Optional[Sequence[str]] = None,
    now: Optional[datetime] = None,
) -> Optional[CompetitorSignal]:
    """
    Detect a competitor signal in an activity and persist it.

    A signal is skipped when one for the same account and competitor was
    already recorded on the same (UTC) day.

    Returns:
        The stored signal, or None when nothing was detected or it was a
        duplicate.
    """
    detected = detect_competitor_signal(activity.description, competitor_names)
    if detected is None:
        return None

    now = ensure_utc(now or utcnow())
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    existing = await store.select(
        'competitor_signals',
        filters={
            'account_id': activity.account_id,
            'competitor_name': detected.competitor_name,
        },
        ranges={'detected_at': Range(gte=day_start, lt=day_start + timedelta(days=1))},
        limit=1,
    )
    if existing:
        log_event(
            logger, logging.DEBUG, 'competitor_signal.duplicate',
            account_id=activity.account_id, competitor=detected.competitor_name,
        )
        return None

    rows = await store.insert('competitor_signals', [{
        'user_id': user_id,
        'account_id': activity.account_id,
        'contact_id': activity.contact_id,
        'competitor_name': detected.competitor_name,
        'type': detected.type.value,
        'description': detected.description,
        'confidence': detected.confidence,
        'detected_at': now,
    }])
    signal = CompetitorSignal.model_validate(rows[0])
    log_event(
        logger, logging.INFO, 'competitor_signal.detected',
        account_id=signal.account_id, type=signal.type, confidence=signal.confidence,
    )
    return signal


async def create_competitor_signal(
    store: RecordStore,
    user_id: str,
    payload: CompetitorSignalCreate,
) -> CompetitorSignal:
    """Record a competitor signal entered by hand. Confidence stays null."""
    row = to_row(payload)
    row['user_id'] = user_id
    row['confidence'] = None
    row['detected_at'] = ensure_utc(payload.detected_at) if payload.detected_at else utcnow()
    rows = await store.insert('competitor_signals', [row])
    signal = CompetitorSignal.model_validate(rows[0])
    log_event(
        logger, logging.INFO, 'competitor_signal.created',
        account_id=signal.account_id, type=signal.type,
    )
    return signal


async def get_competitor_signals(
    store: RecordStore,
    user_id: Optional[str] = None,
    account_ids: Optional[Sequence[str]] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
) -> List[CompetitorSignal]:
    """
    List competitor signals, newest first.

    account_ids, when given, restricts to those accounts; an empty sequence
    matches nothing.
    """
    if account_ids is not None and not account_ids:
        return []
    filters = {'user_id': user_id} if user_id else None
    ranges = None
    if start or end:
        ranges = {'detected_at': Range(gte=start, lte=end)}
    rows = await store.select(
        'competitor_signals',
        filters=filters,
        ranges=ranges,
        in_={'account_id': list(account_ids)} if account_ids is not None else None,
        order_by='detected_at',
        descending=True,
        limit=limit,
    )
    return [CompetitorSignal.model_validate(row) for row in rows]
