from datetime import date, datetime

from pydantic import BaseModel

from pomotrack.schemas.session import SessionSummary


class PeriodBucket(BaseModel):
    bucket_key: str  # %Y-%m-%d, %Y-%U or %Y-%m
    total_sessions: int = 0
    work_sessions: int = 0
    break_sessions: int = 0
    long_break_sessions: int = 0
    total_duration_minutes: int = 0


class TypeSummary(BaseModel):
    session_type: str
    count: int
    total_duration: int
    avg_duration: float


class BestTime(BaseModel):
    day_of_week: int  # Monday=0 .. Sunday=6
    hour: int
    session_count: int


class CalendarDay(BaseModel):
    date: date
    count: int
    work_sessions: int = 0
    break_sessions: int = 0
    long_break_sessions: int = 0
    sessions: list[SessionSummary] = []  # filled by the calendar endpoint only


class StatsPeriod(BaseModel):
    start_date: datetime
    end_date: datetime
    days: int


class StatsOverview(BaseModel):
    total_sessions: int
    total_focus_minutes: int
    current_streak: int
    period: StatsPeriod


class StatsResponse(BaseModel):
    overview: StatsOverview
    group_by: str  # day, week, month
    by_type: list[TypeSummary]
    activity: list[PeriodBucket]
    best_times: list[BestTime]
    unique_dates: int
    average_sessions_per_day: float


class CalendarResponse(BaseModel):
    year: int
    month: int
    start_date: datetime
    end_date: datetime
    days: list[CalendarDay]
