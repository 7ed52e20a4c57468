import uuid
from datetime import datetime

from pydantic import BaseModel

from pomotrack.schemas.leaderboard import LeaderboardEntry
from pomotrack.schemas.session import SessionSummary
from pomotrack.schemas.stats import CalendarDay


class DashboardReflection(BaseModel):
    id: uuid.UUID
    session_id: uuid.UUID
    learnings: str
    created_at: datetime
    session: SessionSummary | None = None


class DashboardResponse(BaseModel):
    sessions: list[SessionSummary]
    recent_reflections: list[DashboardReflection]
    completed_pomodoros: int
    total_focus_minutes: int
    work_sessions: int
    break_sessions: int
    long_break_sessions: int
    today_sessions: int
    weekly_pomodoros: list[int]  # Mon..Sun
    best_day_sessions: int
    streak_days: int
    calendar: list[CalendarDay]
    productivity_score: int
    average_sessions_per_day: float
    leaderboard: list[LeaderboardEntry]
    leaderboard_fallback: bool = False
    current_user_rank: int = 0
    degraded: list[str] = []  # fetches that failed and were replaced by empty data
