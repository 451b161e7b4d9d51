"""Shared builders for game objects used across the test-suite."""

from typing import Callable, List, Optional, Sequence

import pytest

from src.game.state import (
    GameConfig,
    GamePhase,
    GameState,
    Personality,
    Player,
    RoleType,
    create_role,
)


def _make_player(
    player_id: str,
    seat: int,
    role_type: RoleType,
    *,
    name: Optional[str] = None,
    is_agent: bool = True,
    personality: Optional[Personality] = None,
) -> Player:
    role = create_role(role_type)
    return Player(
        id=player_id,
        name=name or player_id.capitalize(),
        seat=seat,
        role=role,
        faction=role.faction,
        is_agent=is_agent,
        personality=personality,
    )


def _make_state(
    roles: Sequence[RoleType],
    *,
    day: int = 1,
    phase: GamePhase = GamePhase.NIGHT,
    names: Optional[List[str]] = None,
) -> GameState:
    players = [
        _make_player(f"p{seat}", seat, role, name=names[seat] if names else None)
        for seat, role in enumerate(roles)
    ]
    return GameState(
        phase=phase,
        day=day,
        players=players,
        config=GameConfig(total_players=len(players)),
    )


@pytest.fixture
def make_player() -> Callable[..., Player]:
    return _make_player


@pytest.fixture
def make_state() -> Callable[..., GameState]:
    return _make_state


@pytest.fixture
def eight_player_deck() -> List[RoleType]:
    """Seat order: human villager, then 3 wolves, seer, witch, 2 villagers."""
    return [
        RoleType.VILLAGER,
        RoleType.WEREWOLF,
        RoleType.WEREWOLF,
        RoleType.WEREWOLF,
        RoleType.SEER,
        RoleType.WITCH,
        RoleType.VILLAGER,
        RoleType.VILLAGER,
    ]
