from fastapi import APIRouter, Depends, Query

from ..auth.security import get_current_user
from ..baas.client import get_baas
from ..baas.provider import BaaSProvider
from ..errors import surface_errors
from ..services.dashboard import load_dashboard


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("")
def get_dashboard(
    time_range: str = Query("month", pattern="^(week|month|quarter|year)$"),
    baas: BaaSProvider = Depends(get_baas),
    _=Depends(get_current_user),
):
    with surface_errors("Failed to load dashboard data"):
        return load_dashboard(baas, time_range)
