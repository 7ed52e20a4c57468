import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints

from pomotrack.schemas.session import SessionResponse, SessionSummary, Tag

LEARNINGS_MAX_LENGTH = 2000

Learnings = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=LEARNINGS_MAX_LENGTH),
]


class ReflectionCreate(BaseModel):
    session_id: uuid.UUID
    learnings: Learnings
    rating: int | None = Field(default=None, ge=1, le=5)
    tags: list[Tag] = Field(default_factory=list)
    created_at: datetime | None = None


class ReflectionUpdate(BaseModel):
    learnings: Learnings | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    tags: list[Tag] | None = None


class ReflectionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    session_id: uuid.UUID
    learnings: str
    rating: int | None
    tags: list[str] | None
    created_at: datetime
    updated_at: datetime
    session: SessionSummary | None = None

    model_config = {"from_attributes": True}


class SessionDetailResponse(BaseModel):
    session: SessionResponse
    reflection: ReflectionResponse | None = None
