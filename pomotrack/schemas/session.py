import uuid
from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field, StringConstraints

from pomotrack.models.session import MAX_WORK_MINUTES

SessionType = Literal["work", "break", "longBreak"]
Tag = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=20)]


class SessionCreate(BaseModel):
    session_type: SessionType
    duration: int = Field(ge=1, le=MAX_WORK_MINUTES)  # minutes
    completed_at: datetime | None = None
    notes: str | None = Field(default=None, max_length=500)
    tags: list[Tag] = Field(default_factory=list)
    efficiency: int = Field(default=3, ge=1, le=5)


class SessionUpdate(BaseModel):
    session_type: SessionType | None = None
    duration: int | None = Field(default=None, ge=1, le=MAX_WORK_MINUTES)
    completed_at: datetime | None = None
    notes: str | None = Field(default=None, max_length=500)
    tags: list[Tag] | None = None
    efficiency: int | None = Field(default=None, ge=1, le=5)


class SessionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    session_type: str
    duration: int
    completed_at: datetime
    notes: str | None
    tags: list[str] | None
    efficiency: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SessionSummary(BaseModel):
    id: uuid.UUID
    session_type: str
    duration: int
    completed_at: datetime

    model_config = {"from_attributes": True}


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]
    total: int
    limit: int
    offset: int
    has_next: bool
    has_prev: bool
