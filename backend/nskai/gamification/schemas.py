from uuid import UUID

from pydantic import BaseModel, ConfigDict


class WatchTimeResponse(BaseModel):
    minutes: int


class LeaderboardEntry(BaseModel):
    id: UUID
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None
    points: int = 0
    current_streak: int = 0

    model_config = ConfigDict(from_attributes=True)


class MyStats(BaseModel):
    points: int
    current_streak: int
    longest_streak: int
    minutes_watched_today: int
    streak_minutes_threshold: int
