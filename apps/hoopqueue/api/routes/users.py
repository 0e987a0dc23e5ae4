"""User route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.api.routes import http_error
from hoopqueue.database.db import get_db_session
from hoopqueue.models.schemas import AutoupUpdate, UserCreate, UserResponse
from hoopqueue.services import user_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/users", response_model=UserResponse)
async def create_user(payload: UserCreate, session: AsyncSession = Depends(get_db_session)):
    try:
        return await user_service.create_user(session, **payload.model_dump())
    except Exception as e:
        raise http_error(e, "creating user")


@router.get("/api/users", response_model=List[UserResponse])
async def list_users(session: AsyncSession = Depends(get_db_session)):
    try:
        return await user_service.list_users(session)
    except Exception as e:
        raise http_error(e, "listing users")


@router.patch("/api/users/{user_id}/autoup", response_model=UserResponse)
async def set_autoup(
    user_id: int, payload: AutoupUpdate, session: AsyncSession = Depends(get_db_session)
):
    """Turn automatic re-queueing after each game on or off."""
    try:
        return await user_service.set_autoup(session, user_id, payload.autoup)
    except Exception as e:
        raise http_error(e, "updating autoup")
