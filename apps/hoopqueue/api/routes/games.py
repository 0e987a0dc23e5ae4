"""Game route handlers: proposing, starting and finalizing games."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.api.routes import http_error
from hoopqueue.database.db import get_db_session
from hoopqueue.models.schemas import (
    FinalizeResponse,
    GameCreateRequest,
    GameFinalizeRequest,
    GameProposalResponse,
    GameResponse,
    GameStartRequest,
)
from hoopqueue.services import game_lifecycle, queue_service
from hoopqueue.services.game_set_registry import GameSetRegistry, get_game_set_registry

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/games/proposal", response_model=GameProposalResponse)
async def propose_game(
    court: Optional[str] = None,
    swap: bool = False,
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    """Preview the next game from the head of the queue without starting it."""
    try:
        game_set = await registry.require_active(session)
        proposal = await game_lifecycle.propose_game(session, game_set, court=court, swap=swap)
        return {
            "court": proposal["court"],
            "home": [
                {"user_id": c.user_id, "queue_position": c.queue_position}
                for c in proposal["home"]
            ],
            "away": [
                {"user_id": c.user_id, "queue_position": c.queue_position}
                for c in proposal["away"]
            ],
        }
    except Exception as e:
        raise http_error(e, "proposing game")


@router.post("/api/games/start", response_model=GameResponse)
async def start_game(
    payload: GameStartRequest,
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    """Create the next game and assign the two teams at the head of the queue."""
    try:
        return await game_lifecycle.start_game(
            session, registry, court=payload.court, swap=payload.swap
        )
    except Exception as e:
        raise http_error(e, "starting game")


@router.post("/api/games", response_model=GameResponse)
async def create_game(
    payload: GameCreateRequest,
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    try:
        return await game_lifecycle.create_game(session, registry, payload.court)
    except Exception as e:
        raise http_error(e, "creating game")


@router.post("/api/games/{game_id}/finalize", response_model=FinalizeResponse)
async def finalize_game(
    game_id: int,
    payload: GameFinalizeRequest,
    session: AsyncSession = Depends(get_db_session),
    registry: GameSetRegistry = Depends(get_game_set_registry),
):
    """
    Record the final score, promote a team to the head of the queue and
    re-queue auto-up players.
    """
    try:
        return await game_lifecycle.finalize_game(
            session, registry, game_id, payload.team1_score, payload.team2_score
        )
    except Exception as e:
        raise http_error(e, "finalizing game")


@router.get("/api/games/{game_id}", response_model=GameResponse)
async def get_game(game_id: int, session: AsyncSession = Depends(get_db_session)):
    try:
        return await queue_service.get_game_details(session, game_id)
    except Exception as e:
        raise http_error(e, "getting game")
