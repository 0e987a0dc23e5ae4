"""Game roster (GamePlayer) helpers shared by checkout, moves and the game lifecycle."""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.database.models import GamePlayer


async def get_roster(session: AsyncSession, game_id: int) -> List[GamePlayer]:
    """Roster of a game in original queue order."""
    result = await session.execute(
        select(GamePlayer)
        .where(GamePlayer.game_id == game_id)
        .order_by(GamePlayer.relative_position.asc(), GamePlayer.id.asc())
    )
    return list(result.scalars().all())


async def get_entry(session: AsyncSession, game_id: int, user_id: int) -> Optional[GamePlayer]:
    result = await session.execute(
        select(GamePlayer).where(GamePlayer.game_id == game_id, GamePlayer.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def add_player(
    session: AsyncSession, game_id: int, user_id: int, team: int, relative_position: int
) -> GamePlayer:
    """Add a user to a game's roster, reviving an earlier entry of the same user."""
    game_player = await get_entry(session, game_id, user_id)
    if game_player is None:
        game_player = GamePlayer(
            game_id=game_id, user_id=user_id, team=team, relative_position=relative_position
        )
        session.add(game_player)
    else:
        game_player.team = team
        game_player.relative_position = relative_position
        game_player.checked_out = False
    return game_player


async def mark_checked_out(session: AsyncSession, game_id: int, user_id: int) -> None:
    game_player = await get_entry(session, game_id, user_id)
    if game_player is not None:
        game_player.checked_out = True
