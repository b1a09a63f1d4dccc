"""
Behavior CRM Services Module

Business logic for the sales-behavior analytics core. Every service is a set of
module-level functions taking a RecordStore first, so the API layer and tests
can hand in any store implementation.

Services:
- activities: activity CRUD and the period fetch every calculator uses
- metrics: HIR / RTR / BCR / PHR calculators and their aggregate
- behavior_scores: per-behavior intensity, diversity and quality scores
- outcomes: conversion rate, field growth and prescription index
- competitor_signals: text detector and competitor-signal storage
- coaching: coaching-signal rules, action text and persistence
- correlation: behavior x outcome correlation analysis
- recommendations: next best action per account
- identity: auth subject -> internal user id
"""

# =============================================================================
# Activity Service Exports
# =============================================================================

from behavior_crm.services.activities import (
    create_activity,
    delete_activity,
    fetch_activities,
    get_activities,
    get_recent_activities,
    update_activity,
)

# =============================================================================
# Metric Calculator Exports
# =============================================================================

from behavior_crm.services.metrics import (
    calculate_bcr,
    calculate_hir,
    calculate_phr,
    calculate_rtr,
    get_behavior_metrics,
    score_bcr,
    score_hir,
    score_phr,
    score_rtr,
)

# =============================================================================
# Behavior Score & Outcome Exports
# =============================================================================

from behavior_crm.services.behavior_scores import (
    behavior_score_trend,
    calculate_behavior_scores,
    get_behavior_score_trend,
    get_behavior_scores,
    refresh_behavior_scores,
)
from behavior_crm.services.outcomes import (
    calculate_conversion_rate,
    calculate_field_growth,
    calculate_prescription_index,
    get_outcomes,
    refresh_outcomes,
)

# =============================================================================
# Signal Exports
# =============================================================================

from behavior_crm.services.competitor_signals import (
    create_competitor_signal,
    detect_and_save_competitor_signal,
    detect_competitor_signal,
    get_competitor_signals,
)
from behavior_crm.services.coaching import (
    generate_and_save_coaching_signals,
    generate_coaching_action,
    generate_coaching_signals,
    get_coaching_signals,
    resolve_coaching_signal,
)

# =============================================================================
# Analysis Exports
# =============================================================================

from behavior_crm.services.correlation import (
    analyze_behavior_outcome_correlation,
    pearson_weight,
)
from behavior_crm.services.recommendations import recommend_next_actions
from behavior_crm.services.team import get_team_kpis, get_team_members
from behavior_crm.services.identity import IdentityResolver

__all__ = [
    # ----- Activities -----
    'create_activity',
    'delete_activity',
    'fetch_activities',
    'get_activities',
    'get_recent_activities',
    'update_activity',
    # ----- Metrics -----
    'calculate_bcr',
    'calculate_hir',
    'calculate_phr',
    'calculate_rtr',
    'get_behavior_metrics',
    'score_bcr',
    'score_hir',
    'score_phr',
    'score_rtr',
    # ----- Behavior Scores & Outcomes -----
    'behavior_score_trend',
    'calculate_behavior_scores',
    'get_behavior_score_trend',
    'get_behavior_scores',
    'refresh_behavior_scores',
    'calculate_conversion_rate',
    'calculate_field_growth',
    'calculate_prescription_index',
    'get_outcomes',
    'refresh_outcomes',
    # ----- Signals -----
    'create_competitor_signal',
    'detect_and_save_competitor_signal',
    'detect_competitor_signal',
    'get_competitor_signals',
    'generate_and_save_coaching_signals',
    'generate_coaching_action',
    'generate_coaching_signals',
    'get_coaching_signals',
    'resolve_coaching_signal',
    # ----- Analysis -----
    'analyze_behavior_outcome_correlation',
    'pearson_weight',
    'recommend_next_actions',
    'get_team_kpis',
    'get_team_members',
    'IdentityResolver',
]
