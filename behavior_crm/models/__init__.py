"""
Package initialization file for the Behavior CRM models.

Re-exports all enumerations and Pydantic schemas so other modules can write:

    from behavior_crm.models import Activity, BehaviorType, NextBestAction
"""

# =============================================================================
# Enums
# =============================================================================

from behavior_crm.models.enums import (
    AccountType,
    ActivityOutcome,
    ActivityType,
    BehaviorType,
    CoachingSignalType,
    ComparisonPeriod,
    CompetitorSignalType,
    OutcomeType,
    PeriodType,
    SignalPriority,
    TrendGranularity,
    UserRole,
)

# =============================================================================
# Schemas
# =============================================================================

from behavior_crm.models.schemas import (
    # Activities
    Activity,
    ActivityCreate,
    ActivityUpdate,
    ActivityFilter,
    # Behavior scores & outcomes
    BehaviorScoreResult,
    BehaviorScore,
    OutcomeResult,
    Outcome,
    # Accounts, contacts, prescriptions
    Account,
    Contact,
    Prescription,
    # Signals
    CoachingSignalDraft,
    CoachingSignal,
    SignalSaveResult,
    DetectedCompetitorSignal,
    CompetitorSignalCreate,
    CompetitorSignal,
    DetectRequest,
    # Analytics results
    BehaviorMetrics,
    BehaviorOutcomeCorrelation,
    CorrelationSummary,
    CorrelationAnalysis,
    NextBestAction,
    BehaviorTrendPoint,
    # Team
    User,
    KPIChange,
    TeamKPIs,
)

__all__ = [
    # Enums
    'AccountType',
    'ActivityOutcome',
    'ActivityType',
    'BehaviorType',
    'CoachingSignalType',
    'ComparisonPeriod',
    'CompetitorSignalType',
    'OutcomeType',
    'PeriodType',
    'SignalPriority',
    'TrendGranularity',
    'UserRole',
    # Schemas
    'Activity',
    'ActivityCreate',
    'ActivityUpdate',
    'ActivityFilter',
    'BehaviorScoreResult',
    'BehaviorScore',
    'OutcomeResult',
    'Outcome',
    'Account',
    'Contact',
    'Prescription',
    'CoachingSignalDraft',
    'CoachingSignal',
    'SignalSaveResult',
    'DetectedCompetitorSignal',
    'CompetitorSignalCreate',
    'CompetitorSignal',
    'DetectRequest',
    'BehaviorMetrics',
    'BehaviorOutcomeCorrelation',
    'CorrelationSummary',
    'CorrelationAnalysis',
    'NextBestAction',
    'BehaviorTrendPoint',
    'User',
    'KPIChange',
    'TeamKPIs',
]
