"""Gamification API endpoints."""

from fastapi import APIRouter, Depends

from nskai.auth import CurrentAuth
from nskai.middleware.error_handlers import raise_for_result
from nskai.middleware.security import heartbeat_route_limit

from .schemas import LeaderboardEntry, MyStats, WatchTimeResponse
from .service import GamificationService


router = APIRouter(prefix="/api/v1/gamification", tags=["gamification"])


@router.post("/watch-time", dependencies=[Depends(heartbeat_route_limit)])
async def log_video_watch_time(auth: CurrentAuth) -> WatchTimeResponse:
    """Heartbeat sent about once a minute while a lesson video plays."""
    user = raise_for_result(await auth.require_user())
    minutes = raise_for_result(await GamificationService(auth.session).log_video_watch_time(user.id))
    return WatchTimeResponse(minutes=minutes)


@router.get("/leaderboard")
async def get_leaderboard(auth: CurrentAuth) -> list[LeaderboardEntry]:
    """Top learners by points."""
    learners = raise_for_result(await GamificationService(auth.session).get_leaderboard())
    return [LeaderboardEntry.model_validate(user) for user in learners]


@router.get("/me")
async def get_my_stats(auth: CurrentAuth) -> MyStats:
    user = raise_for_result(await auth.require_user())
    return MyStats(**raise_for_result(await GamificationService(auth.session).get_my_stats(user.id)))
