"""
Pydantic models for the Behavior CRM backend.

Two families live here:
- Row models (Activity, BehaviorScore, Outcome, ...) mirror the columns of the
  tables the RecordStore reads. Services validate raw rows into them before any
  scoring, so enum and date coercion happens in one place.
- Request/response models (ActivityCreate, BehaviorMetrics, NextBestAction, ...)
  are the API contracts.

Field names are snake_case and match the column names, so a row dict can be
passed straight to model_validate() and model_dump() gives back insertable
values.

All models use Pydantic v2 syntax.
"""

from datetime import datetime, date as DateType
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator

from behavior_crm.models.enums import (
    AccountType,
    ActivityOutcome,
    ActivityType,
    BehaviorType,
    CoachingSignalType,
    CompetitorSignalType,
    OutcomeType,
    PeriodType,
    SignalPriority,
    UserRole,
)


# =============================================================================
# Activities
# =============================================================================


class Activity(BaseModel):
    """
    A single recorded sales interaction.

    quality_score and quantity_score are self-reported (0-100). sentiment_score
    is the rep's read of the relationship temperature and may be absent.
    """
    model_config = ConfigDict(
        extra='ignore',
        json_schema_extra={
            "example": {
                "id": "7f0c6a1e-3c1b-4c55-9a59-3f8b9d1f0e11",
                "user_id": "0b8f7f8e-2f55-4a8e-9d39-7d3c1f6f3a02",
                "account_id": "a6a8d1c4-5e0e-4d8b-8c2a-1c3f2b9e7d10",
                "type": "visit",
                "behavior": "presentation",
                "description": "Presented the new dosage data to the head of internal medicine",
                "quality_score": 80,
                "quantity_score": 60,
                "duration_minutes": 30,
                "sentiment_score": 75,
                "next_action_date": "2025-03-10",
                "outcome": "ongoing",
                "performed_at": "2025-03-03T10:30:00Z"
            }
        }
    )

    id: str = Field(..., description="Activity identifier (UUID)")
    user_id: str = Field(..., description="Owning user (UUID)")
    account_id: str = Field(..., description="Account the activity was performed at")
    contact_id: Optional[str] = Field(default=None, description="Contact met, if any")
    type: ActivityType = Field(..., description="Activity channel")
    behavior: BehaviorType = Field(..., description="Behavior performed")
    description: Optional[str] = Field(default="", description="Free-text notes")
    quality_score: int = Field(..., ge=0, le=100)
    quantity_score: int = Field(..., ge=0, le=100)
    duration_minutes: int = Field(default=0, ge=0)
    sentiment_score: Optional[int] = Field(default=None, ge=0, le=100)
    next_action_date: Optional[DateType] = Field(default=None)
    outcome: Optional[ActivityOutcome] = Field(default=None)
    tags: List[str] = Field(default_factory=list)
    performed_at: datetime = Field(..., description="When the activity happened")
    created_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)


class ActivityCreate(BaseModel):
    """Request body for recording a new activity."""
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: str = Field(..., min_length=1)
    contact_id: Optional[str] = None
    type: ActivityType
    behavior: BehaviorType
    description: str = Field(default="")
    quality_score: int = Field(..., ge=0, le=100)
    quantity_score: int = Field(..., ge=0, le=100)
    duration_minutes: int = Field(default=0, ge=0)
    sentiment_score: Optional[int] = Field(default=None, ge=0, le=100)
    next_action_date: Optional[DateType] = None
    outcome: Optional[ActivityOutcome] = None
    tags: List[str] = Field(default_factory=list)
    performed_at: datetime


class ActivityUpdate(BaseModel):
    """Partial update of an activity. Only fields that are set are written."""
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: Optional[str] = None
    contact_id: Optional[str] = None
    type: Optional[ActivityType] = None
    behavior: Optional[BehaviorType] = None
    description: Optional[str] = None
    quality_score: Optional[int] = Field(default=None, ge=0, le=100)
    quantity_score: Optional[int] = Field(default=None, ge=0, le=100)
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    sentiment_score: Optional[int] = Field(default=None, ge=0, le=100)
    next_action_date: Optional[DateType] = None
    outcome: Optional[ActivityOutcome] = None
    tags: Optional[List[str]] = None
    performed_at: Optional[datetime] = None


class ActivityFilter(BaseModel):
    """Query parameters for listing activities."""

    account_id: Optional[str] = None
    behavior: Optional[BehaviorType] = None
    type: Optional[ActivityType] = None
    outcome: Optional[ActivityOutcome] = None
    start: Optional[datetime] = Field(default=None, description="performed_at lower bound (inclusive)")
    end: Optional[datetime] = Field(default=None, description="performed_at upper bound (inclusive)")
    limit: int = Field(default=100, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)

    @model_validator(mode='after')
    def _check_range(self) -> 'ActivityFilter':
        if self.start and self.end and self.start > self.end:
            raise ValueError("start must not be after end")
        return self


# =============================================================================
# Behavior Scores & Outcomes
# =============================================================================


class BehaviorScoreResult(BaseModel):
    """Computed sub-scores for one behavior over one period."""

    behavior: BehaviorType
    intensity_score: int = Field(..., ge=0, le=100)
    diversity_score: int = Field(..., ge=0, le=100)
    quality_score: int = Field(..., ge=0, le=100)


class BehaviorScore(BehaviorScoreResult):
    """Stored behavior score, bound to a user and a period."""
    model_config = ConfigDict(extra='ignore')

    id: Optional[str] = None
    user_id: str
    period_start: DateType
    period_end: DateType
    created_at: Optional[datetime] = None


class OutcomeResult(BaseModel):
    """
    Business-result snapshot for one period.

    conversion_rate lies in [-100, 100]. field_growth_rate is a percentage
    change and is not bounded above.
    """

    hir_score: int = Field(..., ge=0, le=100)
    conversion_rate: float = Field(..., ge=-100, le=100)
    field_growth_rate: float
    prescription_index: int = Field(..., ge=0, le=100)

    def value(self, outcome: OutcomeType) -> float:
        if outcome == OutcomeType.HIR:
            return float(self.hir_score)
        return float(getattr(self, outcome.value))


class Outcome(OutcomeResult):
    """Stored outcome, optionally scoped to one account."""
    model_config = ConfigDict(extra='ignore')

    id: Optional[str] = None
    user_id: str
    account_id: Optional[str] = None
    period_type: PeriodType
    period_start: DateType
    period_end: DateType
    created_at: Optional[datetime] = None


# =============================================================================
# Accounts, Contacts, Prescriptions
# =============================================================================


class Account(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: str
    name: str
    type: AccountType = AccountType.CLINIC
    address: Optional[str] = None
    phone: Optional[str] = None
    specialty: Optional[str] = None
    patient_count: int = 0
    revenue: float = 0
    tier: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class Contact(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: str
    account_id: str
    name: str
    role: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    specialty: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class Prescription(BaseModel):
    """A prescription written at an account, optionally linked to the activity that led to it."""
    model_config = ConfigDict(extra='ignore')

    id: str
    account_id: str
    contact_id: Optional[str] = None
    related_activity_id: Optional[str] = None
    product_name: str
    product_code: Optional[str] = None
    quantity: float = Field(..., ge=0)
    quantity_unit: str = "unit"
    price: float = Field(default=0, ge=0)
    prescription_date: DateType
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


# =============================================================================
# Signals
# =============================================================================


class CoachingSignalDraft(BaseModel):
    """
    A coaching signal produced by the generator, before it is persisted.

    behavior is used for deduplication and action text only; the coaching
    signals table does not store it.
    """

    type: CoachingSignalType
    priority: SignalPriority
    message: str
    recommended_action: Optional[str] = None
    behavior: Optional[BehaviorType] = None
    account_id: Optional[str] = None
    contact_id: Optional[str] = None


class CoachingSignal(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: str
    user_id: str
    type: CoachingSignalType
    priority: SignalPriority
    message: str
    recommended_action: Optional[str] = None
    account_id: Optional[str] = None
    contact_id: Optional[str] = None
    is_resolved: bool = False
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SignalSaveResult(BaseModel):
    created: int = Field(default=0, ge=0)
    updated: int = Field(default=0, ge=0)
    signals: List[CoachingSignal] = Field(default_factory=list)


class DetectedCompetitorSignal(BaseModel):
    """Output of the competitor-signal text detector."""

    competitor_name: str
    type: CompetitorSignalType
    description: str
    confidence: float = Field(..., ge=0.5, le=0.95)


class CompetitorSignalCreate(BaseModel):
    """Request body for entering a competitor signal by hand."""
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: str = Field(..., min_length=1)
    contact_id: Optional[str] = None
    competitor_name: str = Field(..., min_length=1)
    type: CompetitorSignalType
    description: Optional[str] = None
    detected_at: Optional[datetime] = None


class CompetitorSignal(BaseModel):
    """Stored competitor signal. confidence is null for manual entries."""
    model_config = ConfigDict(extra='ignore')

    id: str
    user_id: Optional[str] = None
    account_id: str
    contact_id: Optional[str] = None
    competitor_name: str
    type: CompetitorSignalType
    description: Optional[str] = None
    confidence: Optional[float] = None
    detected_at: datetime
    created_at: Optional[datetime] = None


class DetectRequest(BaseModel):
    description: str = ""


# =============================================================================
# Analytics Results
# =============================================================================


class BehaviorMetrics(BaseModel):
    """The four behavior indices and their rounded mean."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {"hir": 72, "rtr": 80, "bcr": 64, "phr": 60, "total": 69}
        }
    )

    hir: int = Field(..., ge=0, le=100, description="Honesty/High-Impact Rate")
    rtr: int = Field(..., ge=0, le=100, description="Relationship Temperature Rate")
    bcr: int = Field(..., ge=0, le=100, description="Behavior Consistency Rate")
    phr: int = Field(..., ge=0, le=100, description="Proactive Health Rate")
    total: int = Field(..., ge=0, le=100, description="round(mean(hir, rtr, bcr, phr))")


class BehaviorOutcomeCorrelation(BaseModel):
    behavior: BehaviorType
    outcome: OutcomeType
    correlation: float = Field(..., ge=-1, le=1)
    weight: float = Field(..., ge=0, le=1, description="Association strength")
    sample_size: int = Field(..., ge=0, description="Number of aligned periods")


class CorrelationSummary(BaseModel):
    """Top behaviors per outcome type, strongest first."""

    top_behaviors_for_hir: List[BehaviorType] = Field(default_factory=list)
    top_behaviors_for_conversion: List[BehaviorType] = Field(default_factory=list)
    top_behaviors_for_growth: List[BehaviorType] = Field(default_factory=list)
    top_behaviors_for_prescription: List[BehaviorType] = Field(default_factory=list)


class CorrelationAnalysis(BaseModel):
    correlations: List[BehaviorOutcomeCorrelation] = Field(default_factory=list)
    summary: CorrelationSummary = Field(default_factory=CorrelationSummary)


class NextBestAction(BaseModel):
    """A per-account recommendation. Derived, never persisted."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "account_id": "a6a8d1c4-5e0e-4d8b-8c2a-1c3f2b9e7d10",
                "account_name": "Seoul General Hospital",
                "contact_id": None,
                "contact_name": None,
                "behavior": "visit",
                "reason": "visit is a top behavior for conversion but has not been performed at Seoul General Hospital in the last 30 days",
                "priority": 60
            }
        }
    )

    account_id: str
    account_name: str
    contact_id: Optional[str] = None
    contact_name: Optional[str] = None
    behavior: BehaviorType
    reason: str
    priority: int = Field(..., ge=0, le=100)


class BehaviorTrendPoint(BaseModel):
    """Mean quality score per behavior for one day or week bucket."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "date": "2025-03-10",
                "approach": 0, "contact": 40, "visit": 72, "presentation": 55,
                "question": 60, "need_creation": 0, "demonstration": 30, "follow_up": 80
            }
        }
    )

    date: DateType = Field(..., description="Bucket start (the Monday for weekly buckets)")
    approach: int = 0
    contact: int = 0
    visit: int = 0
    presentation: int = 0
    question: int = 0
    need_creation: int = 0
    demonstration: int = 0
    follow_up: int = 0


# =============================================================================
# Team
# =============================================================================


class User(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: str
    name: Optional[str] = None
    role: UserRole = UserRole.SALESPERSON
    team_id: Optional[str] = None


class KPIChange(BaseModel):
    current: int
    previous: int
    change: int = Field(..., description="Percent change from previous; 0 when previous is 0")


class TeamKPIs(BaseModel):
    """Team-wide KPIs over the trailing window against the window before it."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "member_count": 6,
                "behavior_score": {"current": 58, "previous": 52, "change": 12},
                "avg_hir": {"current": 64, "previous": 60, "change": 7},
                "goal_forecast": {"current": 91, "previous": 86, "change": 6}
            }
        }
    )

    member_count: int = Field(..., ge=0, description="Reps whose KPIs were computed")
    behavior_score: KPIChange
    avg_hir: KPIChange
    goal_forecast: KPIChange = Field(..., description="avg HIR as a percentage of the HIR target, capped at 100")
