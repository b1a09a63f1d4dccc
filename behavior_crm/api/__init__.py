"""
Behavior CRM API package initialization.

This package contains FastAPI router modules:
- metrics: behavior metrics, stored scores/outcomes and correlation
- activities: activity records
- coaching_signals: coaching signal listing, generation and resolution
- competitor_signals: competitor signal listing, entry and detection
- recommendations: next best actions
- team: manager KPIs
"""

from fastapi import APIRouter

# Import router modules
from behavior_crm.api.metrics import router as metrics_router
from behavior_crm.api.activities import router as activities_router
from behavior_crm.api.coaching_signals import router as coaching_signals_router
from behavior_crm.api.competitor_signals import router as competitor_signals_router
from behavior_crm.api.recommendations import router as recommendations_router
from behavior_crm.api.team import router as team_router

# Create main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(metrics_router, prefix="/metrics", tags=["metrics"])
api_router.include_router(activities_router, prefix="/activities", tags=["activities"])
api_router.include_router(coaching_signals_router, prefix="/coaching-signals", tags=["coaching-signals"])
api_router.include_router(competitor_signals_router, prefix="/competitor-signals", tags=["competitor-signals"])
api_router.include_router(recommendations_router, prefix="/recommendations", tags=["recommendations"])
api_router.include_router(team_router, prefix="/team", tags=["team"])

# Export all routers for selective imports
__all__ = [
    "api_router",
    "metrics_router",
    "activities_router",
    "coaching_signals_router",
    "competitor_signals_router",
    "recommendations_router",
    "team_router",
]
