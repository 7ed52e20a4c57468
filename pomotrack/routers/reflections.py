import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from pomotrack.database import get_db
from pomotrack.dependencies import get_current_user
from pomotrack.models.user import User
from pomotrack.schemas.reflection import ReflectionCreate, ReflectionResponse, ReflectionUpdate
from pomotrack.services import reflection_service

router = APIRouter(prefix="/reflections", tags=["reflections"])


@router.post("", response_model=ReflectionResponse, status_code=201)
async def create_reflection(
    data: ReflectionCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        reflection = await reflection_service.create_reflection(db, user.id, data.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if reflection is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Session not found"
        )
    return reflection


@router.get("", response_model=list[ReflectionResponse])
async def list_reflections(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await reflection_service.get_reflections(db, user.id, limit=limit, offset=offset)


@router.get("/session/{session_id}", response_model=ReflectionResponse)
async def get_reflection_for_session(
    session_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    reflection = await reflection_service.get_reflection_for_session(db, user.id, session_id)
    if reflection is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Reflection not found"
        )
    return reflection


@router.patch("/{reflection_id}", response_model=ReflectionResponse)
async def update_reflection(
    reflection_id: uuid.UUID,
    data: ReflectionUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    reflection = await reflection_service.update_reflection(
        db, user.id, reflection_id, data.model_dump(exclude_unset=True)
    )
    if reflection is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Reflection not found"
        )
    return reflection


@router.delete("/{reflection_id}", status_code=204)
async def delete_reflection(
    reflection_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await reflection_service.delete_reflection(db, user.id, reflection_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Reflection not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
