"""
Data model for the werewolf game.

Every shared structure is a Pydantic model so snapshots can be deep-copied,
serialised for the recorder, and validated at the boundaries. The
``GameState`` aggregate is owned by :class:`src.game.engine.GameEngine`; all
other components receive copies produced by ``GameEngine.snapshot``.

Key pieces:
- Closed enums for roles, factions, phases and night actions
- ``create_role`` which is the only way to build a ``Role`` (capabilities
  come from a fixed table)
- ``Personality`` with eight clamped traits
- ``GameState`` plus a few read-only helpers
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

HUMAN_PLAYER_ID = "human_player"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """Clamp a float into [lower, upper]."""
    return max(lower, min(upper, value))


class RoleType(str, Enum):
    WEREWOLF = "werewolf"
    VILLAGER = "villager"
    SEER = "seer"
    WITCH = "witch"
    HUNTER = "hunter"
    GUARD = "guard"


class Faction(str, Enum):
    WEREWOLF = "werewolf"
    VILLAGER = "villager"


class GamePhase(str, Enum):
    PREPARATION = "preparation"
    NIGHT = "night"
    DAY_DISCUSSION = "day_discussion"
    VOTING = "voting"
    LAST_WORDS = "last_words"
    GAME_OVER = "game_over"


class NightActionType(str, Enum):
    KILL = "kill"
    CHECK = "check"
    HEAL = "heal"
    PROTECT = "protect"
    POISON = "poison"


class SpeechType(str, Enum):
    ACCUSATION = "accusation"
    DEFENSE = "defense"
    INFORMATION = "information"
    STRATEGY = "strategy"
    VOTE = "vote"


class EliminationCause(str, Enum):
    VOTE = "vote"
    KILL = "kill"
    POISON = "poison"
    HUNTER_SHOT = "hunter_shot"


class Role(BaseModel):
    """A role card. Built through ``create_role`` and never mutated."""

    model_config = ConfigDict(frozen=True)

    role_type: RoleType
    faction: Faction
    description: str
    can_vote: bool = True
    has_night_action: bool = False


# role -> (faction, can_vote, has_night_action, description)
_ROLE_TABLE: Dict[RoleType, Tuple[Faction, bool, bool, str]] = {
    RoleType.WEREWOLF: (
        Faction.WEREWOLF,
        True,
        True,
        "Wakes with the pack each night to choose a victim.",
    ),
    RoleType.VILLAGER: (
        Faction.VILLAGER,
        True,
        False,
        "No special power; finds the wolves by reasoning and voting.",
    ),
    RoleType.SEER: (
        Faction.VILLAGER,
        True,
        True,
        "Learns the faction of one player each night.",
    ),
    RoleType.WITCH: (
        Faction.VILLAGER,
        True,
        True,
        "Holds one healing potion and one poison for the whole game.",
    ),
    RoleType.HUNTER: (
        Faction.VILLAGER,
        True,
        False,
        "Takes one player down with them when they die, unless poisoned.",
    ),
    RoleType.GUARD: (
        Faction.VILLAGER,
        True,
        True,
        "Shields one player from the wolves each night.",
    ),
}

ROLE_NIGHT_ACTIONS: Dict[RoleType, FrozenSet[NightActionType]] = {
    RoleType.WEREWOLF: frozenset({NightActionType.KILL}),
    RoleType.SEER: frozenset({NightActionType.CHECK}),
    RoleType.WITCH: frozenset({NightActionType.HEAL, NightActionType.POISON}),
    RoleType.GUARD: frozenset({NightActionType.PROTECT}),
}


def create_role(role_type: RoleType) -> Role:
    """Build the role card for ``role_type`` from the capability table."""
    faction, can_vote, has_night_action, description = _ROLE_TABLE[RoleType(role_type)]
    return Role(
        role_type=RoleType(role_type),
        faction=faction,
        description=description,
        can_vote=can_vote,
        has_night_action=has_night_action,
    )


PERSONALITY_TRAITS: Tuple[str, ...] = (
    "aggressiveness",
    "logic",
    "deception",
    "trustfulness",
    "patience",
    "confidence",
    "empathy",
    "impulsiveness",
)


class Personality(BaseModel):
    """Behavioural traits of an agent, each in [0, 1]."""

    id: str
    name: str
    description: str = ""
    aggressiveness: float = Field(default=0.5, ge=0.0, le=1.0)
    logic: float = Field(default=0.5, ge=0.0, le=1.0)
    deception: float = Field(default=0.5, ge=0.0, le=1.0)
    trustfulness: float = Field(default=0.5, ge=0.0, le=1.0)
    patience: float = Field(default=0.5, ge=0.0, le=1.0)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    empathy: float = Field(default=0.5, ge=0.0, le=1.0)
    impulsiveness: float = Field(default=0.5, ge=0.0, le=1.0)

    def traits(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in PERSONALITY_TRAITS}

    def nudge(self, trait: str, delta: float) -> float:
        """Shift one trait by ``delta``, clamped to [0, 1]. Returns the new value."""
        if trait not in PERSONALITY_TRAITS:
            raise KeyError(f"Unknown personality trait '{trait}'")
        value = clamp(getattr(self, trait) + delta)
        setattr(self, trait, value)
        return value


class Player(BaseModel):
    id: str
    name: str
    seat: int = Field(ge=0)
    role: Role
    faction: Faction
    is_alive: bool = True
    is_agent: bool = True
    personality: Optional[Personality] = None


class Vote(BaseModel):
    voter: str
    target: str
    timestamp: datetime = Field(default_factory=_utc_now)


class NightAction(BaseModel):
    """A role-specific action submitted during the night.

    ``target`` may be ``None`` only for a witch heal, meaning "whoever the
    wolves attack tonight".
    """

    actor: str
    action: NightActionType
    target: Optional[str] = None


class CheckResult(BaseModel):
    seer: str
    target: str
    faction: Faction


class NightOutcome(BaseModel):
    """Resolved effects of one night."""

    day: int
    attacked: Optional[str] = None
    protected: Optional[str] = None
    healed: Optional[str] = None
    poisoned: Optional[str] = None
    deaths: List[str] = Field(default_factory=list)
    checks: List[CheckResult] = Field(default_factory=list)

    @property
    def saved(self) -> bool:
        return self.attacked is not None and self.attacked not in self.deaths


class Speech(BaseModel):
    day: int
    phase: GamePhase
    speaker: str
    content: str
    timestamp: datetime = Field(default_factory=_utc_now)


class Elimination(BaseModel):
    player_id: str
    cause: EliminationCause
    day: int


class VotingRound(BaseModel):
    day: int
    tally: Dict[str, int] = Field(default_factory=dict)
    eliminated: Optional[str] = None


class GameConfig(BaseModel):
    """Settings consumed by the engine. Only ``total_players > 0`` is enforced."""

    total_players: int = 8
    role_distribution: Dict[RoleType, int] = Field(default_factory=dict)
    discussion_time: int = Field(default=300, ge=0)
    voting_time: int = Field(default=60, ge=0)
    last_words: bool = False
    agent_names: List[str] = Field(default_factory=list)
    human_name: str = "Guest"


class GameState(BaseModel):
    """The authoritative game aggregate."""

    phase: GamePhase = GamePhase.PREPARATION
    day: int = 0
    players: List[Player] = Field(default_factory=list)
    dead_players: List[Player] = Field(default_factory=list)
    votes: List[Vote] = Field(default_factory=list)
    night_actions: List[NightAction] = Field(default_factory=list)
    speeches: List[Speech] = Field(default_factory=list)
    winner: Optional[Faction] = None
    current_speaker: Optional[str] = None
    time_remaining: int = 0
    eliminations: List[Elimination] = Field(default_factory=list)
    night_history: List[NightOutcome] = Field(default_factory=list)
    vote_history: List[VotingRound] = Field(default_factory=list)
    config: GameConfig = Field(default_factory=GameConfig)


def alive_players(state: GameState) -> List[Player]:
    """Return living players in seat order."""
    return [p for p in state.players if p.is_alive]


def all_players(state: GameState) -> List[Player]:
    """Return every player, living or dead, in seat order."""
    return sorted([*state.players, *state.dead_players], key=lambda p: p.seat)


def find_player(state: GameState, player_id: str) -> Optional[Player]:
    for player in (*state.players, *state.dead_players):
        if player.id == player_id:
            return player
    return None


def count_alive_by_faction(state: GameState) -> Dict[Faction, int]:
    counts = {Faction.WEREWOLF: 0, Faction.VILLAGER: 0}
    for player in alive_players(state):
        counts[player.faction] += 1
    return counts


def speeches_for_day(state: GameState, day: int | None = None) -> List[Speech]:
    target_day = state.day if day is None else day
    return [s for s in state.speeches if s.day == target_day]
