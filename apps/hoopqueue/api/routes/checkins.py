"""Check-in, checkout and player move route handlers."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.api.routes import http_error, limiter
from hoopqueue.database.db import get_db_session
from hoopqueue.models.schemas import (
    CheckinRequest,
    CheckinResponse,
    CheckInAllResponse,
    CheckoutResponse,
    PlayerMoveRequest,
    PlayerMoveResponse,
)
from hoopqueue.services import queue_service
from hoopqueue.services.game_set_registry import GameSetRegistry, get_game_set_registry

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/checkins", response_model=CheckinResponse)
@limiter.limit("30/minute")
async def check_in(
    request: Request,
    payload: CheckinRequest,
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    """
    Check a user into the active game set at the tail of the queue.
    Checking in again returns the existing check-in.
    """
    try:
        return await queue_service.check_in(session, registry, payload.user_id)
    except Exception as e:
        raise http_error(e, "checking in")


@router.post("/api/checkins/all", response_model=CheckInAllResponse)
async def check_in_all(
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    try:
        return await queue_service.check_in_all(session, registry)
    except Exception as e:
        raise http_error(e, "checking in all players")


@router.post("/api/checkouts", response_model=CheckoutResponse)
async def check_out(
    payload: CheckinRequest,
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    """
    Check a user out. Players in a game are replaced from the queue where
    possible; a HOME player with nobody to replace them gets a 400.
    """
    try:
        return await queue_service.check_out(session, registry, payload.user_id)
    except Exception as e:
        raise http_error(e, "checking out")


@router.post("/api/checkins/move", response_model=PlayerMoveResponse)
async def move_player(
    payload: PlayerMoveRequest,
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    try:
        return await queue_service.move_player(session, registry, payload.user_id, payload.move)
    except Exception as e:
        raise http_error(e, "moving player")
