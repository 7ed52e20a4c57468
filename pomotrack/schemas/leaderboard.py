import uuid
from datetime import datetime

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    user_id: uuid.UUID
    name: str | None
    email: str
    total_focus_minutes: int
    completed_pomodoros: int
    last_activity: datetime | None = None
    current_streak: int
    productivity_score: int
    rank: int


class LeaderboardResponse(BaseModel):
    users: list[LeaderboardEntry]
    fallback: bool = False
