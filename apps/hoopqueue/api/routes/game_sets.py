"""Game set route handlers: lifecycle of a game set and read-only queue views."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.api.routes import http_error
from hoopqueue.database.db import get_db_session
from hoopqueue.models.schemas import (
    GameResponse,
    GameSetCreate,
    GameSetResponse,
    GameSetStatusResponse,
    QueueEntryResponse,
)
from hoopqueue.services import queue_service
from hoopqueue.services.game_set_registry import GameSetRegistry, get_game_set_registry

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/game-sets", response_model=GameSetResponse)
async def create_game_set(
    payload: GameSetCreate,
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    """
    Start a new game set. Any previously active game set is deactivated
    together with its check-ins.
    """
    try:
        game_set = await registry.create_game_set(session, **payload.model_dump())
        return queue_service.game_set_to_dict(game_set)
    except Exception as e:
        raise http_error(e, "creating game set")


@router.get("/api/game-sets", response_model=List[GameSetResponse])
async def list_game_sets(
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    try:
        game_sets = await registry.list_game_sets(session)
        return [queue_service.game_set_to_dict(gs) for gs in game_sets]
    except Exception as e:
        raise http_error(e, "listing game sets")


@router.get("/api/game-sets/active", response_model=GameSetResponse)
async def get_active_game_set(
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    try:
        game_set = await registry.require_active(session)
        return queue_service.game_set_to_dict(game_set)
    except Exception as e:
        raise http_error(e, "getting active game set")


@router.post("/api/game-sets/{game_set_id}/deactivate", response_model=GameSetResponse)
async def deactivate_game_set(
    game_set_id: int,
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    try:
        game_set = await registry.deactivate_game_set(session, game_set_id)
        return queue_service.game_set_to_dict(game_set)
    except Exception as e:
        raise http_error(e, "deactivating game set")


@router.get("/api/queue", response_model=List[QueueEntryResponse])
async def get_queue(
    game_set_id: Optional[int] = None,
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    """
    Active queue in position order, each entry labelled HOME, AWAY or NEXT_UP.

    Args:
        game_set_id: Optional game set; defaults to the active one
    """
    try:
        return await queue_service.get_queue_snapshot(session, registry, game_set_id)
    except Exception as e:
        raise http_error(e, "getting queue")


@router.get("/api/game-sets/status", response_model=GameSetStatusResponse)
async def get_game_set_status(
    game_set_id: Optional[int] = None,
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    try:
        return await queue_service.get_game_set_status(session, registry, game_set_id)
    except Exception as e:
        raise http_error(e, "getting game set status")


@router.get("/api/game-sets/log", response_model=List[GameResponse])
async def get_game_set_log(
    game_set_id: Optional[int] = None,
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    """Every game of the game set, oldest first."""
    try:
        return await queue_service.get_game_set_log(session, registry, game_set_id)
    except Exception as e:
        raise http_error(e, "getting game set log")
