"""Tutor analytics endpoint."""

from fastapi import APIRouter

from nskai.auth import CurrentAuth
from nskai.middleware.error_handlers import raise_for_result

from .schemas import TutorAnalytics
from .service import AnalyticsService


router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


@router.get("/tutor")
async def get_tutor_analytics(auth: CurrentAuth) -> TutorAnalytics:
    """Dashboard KPIs and trends for the calling tutor's courses."""
    return TutorAnalytics(**raise_for_result(await AnalyticsService(auth).get_tutor_analytics()))
