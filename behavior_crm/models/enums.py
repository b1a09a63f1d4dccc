"""
Enumeration definitions for the Behavior CRM backend.

All enums inherit from both `str` and `Enum` so Pydantic models serialize them
as their plain string values and rows read from the store validate directly.

Declaration order matters for BehaviorType and OutcomeType: it is the canonical
order used to list correlation pairs and to break ties between behaviors.
"""

from enum import Enum


class BehaviorType(str, Enum):
    """
    The eight canonical sales behaviors, in canonical order.

    - approach: first approach to a new account
    - contact: regular contact with a known doctor/buyer
    - visit: on-site visit
    - presentation: product presentation
    - question: discovery questions about needs
    - need_creation: creating a need for the product
    - demonstration: product demonstration
    - follow_up: follow-up after a previous activity
    """
    APPROACH = "approach"
    CONTACT = "contact"
    VISIT = "visit"
    PRESENTATION = "presentation"
    QUESTION = "question"
    NEED_CREATION = "need_creation"
    DEMONSTRATION = "demonstration"
    FOLLOW_UP = "follow_up"


class ActivityType(str, Enum):
    """Channel of a recorded activity."""
    VISIT = "visit"
    CALL = "call"
    MESSAGE = "message"
    PRESENTATION = "presentation"
    FOLLOW_UP = "follow_up"


class OutcomeType(str, Enum):
    """
    The four canonical business-result measures, in canonical order.

    Values match the score columns of the outcomes table except HIR, which is
    stored as hir_score.
    """
    HIR = "hir"
    CONVERSION_RATE = "conversion_rate"
    FIELD_GROWTH_RATE = "field_growth_rate"
    PRESCRIPTION_INDEX = "prescription_index"


class PeriodType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class ActivityOutcome(str, Enum):
    """Result tag a rep can put on an activity."""
    WON = "won"
    ONGOING = "ongoing"
    LOST = "lost"


class SignalPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CoachingSignalType(str, Enum):
    """
    Conditions flagged by the coaching-signal generator.

    - behavior_lack: too few activities of a behavior, late follow-ups, or an
      irregular cadence
    - relationship_decline: fewer contacts with an account or a cold RTR
    - competitor_activity: competitor signals recorded at an account
    - conversion_lack: a high-conversion behavior is under-performed
    - interest_drop: activity quality at an account is low or falling
    - weak_behavior: a behavior's quality is far below the rep's average
    """
    BEHAVIOR_LACK = "behavior_lack"
    RELATIONSHIP_DECLINE = "relationship_decline"
    COMPETITOR_ACTIVITY = "competitor_activity"
    CONVERSION_LACK = "conversion_lack"
    INTEREST_DROP = "interest_drop"
    WEAK_BEHAVIOR = "weak_behavior"


class CompetitorSignalType(str, Enum):
    """
    Kinds of competitor signals.

    The first four are emitted by the text detector; the rest are chosen by a
    rep entering a signal by hand.
    """
    # Detector
    COMPETITOR_MENTIONED = "competitor_mentioned"
    KEYWORD_DETECTED = "keyword_detected"
    DOCTOR_MENTION = "doctor_mention"
    PRICE_SAMPLE_INQUIRY = "price_sample_inquiry"
    # Manual entry
    MENTION = "mention"
    PRICE_INQUIRY = "price_inquiry"
    PREFERENCE_CHANGE = "preference_change"
    SAMPLE_REQUEST = "sample_request"
    PRODUCT_COMPARISON = "product_comparison"
    SWITCHING_INTENT = "switching_intent"
    OTHER = "other"


class AccountType(str, Enum):
    GENERAL_HOSPITAL = "general_hospital"
    HOSPITAL = "hospital"
    CLINIC = "clinic"
    PHARMACY = "pharmacy"


class ComparisonPeriod(str, Enum):
    """Baseline used by the field-growth calculation."""
    PREVIOUS_PERIOD = "previous_period"
    PREVIOUS_MONTH = "previous_month"
    PREVIOUS_YEAR = "previous_year"
    CUSTOM = "custom"


class UserRole(str, Enum):
    """users.role. Managers see their team; head managers see every rep."""
    SALESPERSON = "salesperson"
    MANAGER = "manager"
    HEAD_MANAGER = "head_manager"


class TrendGranularity(str, Enum):
    """Bucket size for behavior-score trends. Weeks start on Monday."""
    DAY = "day"
    WEEK = "week"
