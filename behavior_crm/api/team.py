"""
FastAPI router for manager dashboards.

Key Endpoints:
- GET /team/kpis - team behavior score, average HIR and goal forecast,
                   trailing window vs the window before it
"""

from fastapi import APIRouter

from behavior_crm.core.dependencies import CurrentUserDep, SettingsDep, StoreDep
from behavior_crm.models.schemas import TeamKPIs
from behavior_crm.services.team import get_team_kpis

router = APIRouter()


@router.get("/kpis", response_model=TeamKPIs)
async def read_team_kpis(
    store: StoreDep,
    user_id: CurrentUserDep,
    settings: SettingsDep,
) -> TeamKPIs:
    """Only managers and head managers may read team KPIs (403 otherwise)."""
    return await get_team_kpis(store, user_id, window_days=settings.analysis_window_days)
