"""
Strategy selection for agent-controlled players.

A ``StrategySelector`` turns an agent's personality, role and current beliefs
into concrete choices: whom to attack, check, heal, poison or protect at
night, whom to vote for, and what a speech should try to achieve.

Dispatch is a closed match over ``RoleType``, ``StrategyType`` and
``VotingStrategy``; a new role or policy means a new enum member plus a new
branch here.

When no legal target exists the selector returns ``None`` rather than
raising.
"""

from __future__ import annotations

import random
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set

from pydantic import BaseModel, Field

from ..logger import get_logger
from ..state import (
    Faction,
    GameState,
    NightAction,
    NightActionType,
    Personality,
    Player,
    Role,
    RoleType,
    SpeechType,
    alive_players,
    clamp,
    create_role,
)
from .belief import BeliefModel

logger = get_logger(__name__)

ESCALATION_DAY = 3
DECEPTION_ESCALATION = 0.1
CHAOTIC_IMPULSIVENESS = 0.85
WITCH_HEAL_PROBABILITY = 0.7
MEDIUM_SUSPICION_RANGE = (0.3, 0.7)
ACCUSATION_THRESHOLD = 0.6

THREAT_LEVELS: Dict[RoleType, float] = {
    RoleType.SEER: 0.9,
    RoleType.WITCH: 0.8,
    RoleType.HUNTER: 0.7,
    RoleType.GUARD: 0.6,
    RoleType.VILLAGER: 0.3,
    RoleType.WEREWOLF: 0.0,
}


class StrategyType(str, Enum):
    AGGRESSIVE = "aggressive"
    DEFENSIVE = "defensive"
    NEUTRAL = "neutral"
    DECEPTIVE = "deceptive"
    LOGICAL = "logical"
    CHAOTIC = "chaotic"


class VotingStrategy(str, Enum):
    FOLLOW_MAJORITY = "follow_majority"
    INDEPENDENT = "independent"
    PROTECTIVE = "protective"
    AGGRESSIVE = "aggressive"
    RANDOM = "random"


class SpeechStyle(str, Enum):
    CONCISE = "concise"
    DETAILED = "detailed"
    EMOTIONAL = "emotional"
    ANALYTICAL = "analytical"
    CASUAL = "casual"


class SpeechTone(str, Enum):
    AGGRESSIVE = "aggressive"
    DEFENSIVE = "defensive"
    ANALYTICAL = "analytical"
    CONFIDENT = "confident"
    NEUTRAL = "neutral"


class Strategy(BaseModel):
    strategy_type: StrategyType
    voting_strategy: VotingStrategy
    speech_style: SpeechStyle
    deception_level: float = Field(default=0.0, ge=0.0, le=1.0)
    priority_targets: List[str] = Field(default_factory=list)
    avoid_targets: List[str] = Field(default_factory=list)


class SpeechStrategy(BaseModel):
    speech_type: SpeechType
    target: Optional[str] = None
    tone: SpeechTone = SpeechTone.NEUTRAL
    key_points: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    deception_elements: List[str] = Field(default_factory=list)


_VOTING_BY_STRATEGY: Dict[StrategyType, VotingStrategy] = {
    StrategyType.AGGRESSIVE: VotingStrategy.AGGRESSIVE,
    StrategyType.DEFENSIVE: VotingStrategy.PROTECTIVE,
    StrategyType.LOGICAL: VotingStrategy.INDEPENDENT,
    StrategyType.DECEPTIVE: VotingStrategy.FOLLOW_MAJORITY,
    StrategyType.NEUTRAL: VotingStrategy.INDEPENDENT,
    StrategyType.CHAOTIC: VotingStrategy.RANDOM,
}

_TONE_BY_STYLE: Dict[SpeechStyle, SpeechTone] = {
    SpeechStyle.ANALYTICAL: SpeechTone.ANALYTICAL,
    SpeechStyle.EMOTIONAL: SpeechTone.AGGRESSIVE,
    SpeechStyle.CASUAL: SpeechTone.NEUTRAL,
}


def initial_strategy(personality: Optional[Personality], role: Role) -> Strategy:
    """Derive the opening strategy from personality traits and faction."""
    traits = personality or Personality(id="default", name="default")

    if role.faction == Faction.WEREWOLF:
        if traits.deception > 0.7:
            strategy_type = StrategyType.DECEPTIVE
        elif traits.aggressiveness > 0.6:
            strategy_type = StrategyType.AGGRESSIVE
        elif traits.impulsiveness >= CHAOTIC_IMPULSIVENESS:
            strategy_type = StrategyType.CHAOTIC
        else:
            strategy_type = StrategyType.DEFENSIVE
    else:
        if traits.logic > 0.7:
            strategy_type = StrategyType.LOGICAL
        elif traits.aggressiveness > 0.6:
            strategy_type = StrategyType.AGGRESSIVE
        elif traits.impulsiveness >= CHAOTIC_IMPULSIVENESS:
            strategy_type = StrategyType.CHAOTIC
        else:
            strategy_type = StrategyType.NEUTRAL

    if traits.logic > 0.7:
        speech_style = SpeechStyle.ANALYTICAL
    elif traits.aggressiveness > 0.6:
        speech_style = SpeechStyle.EMOTIONAL
    else:
        speech_style = SpeechStyle.CONCISE

    return Strategy(
        strategy_type=strategy_type,
        voting_strategy=_VOTING_BY_STRATEGY[strategy_type],
        speech_style=speech_style,
        deception_level=traits.deception,
    )


class StrategySelector:
    """Turns beliefs into actions for one agent."""

    def __init__(
        self,
        player_id: str,
        role: Role | RoleType,
        personality: Optional[Personality] = None,
        *,
        rng: random.Random | None = None,
        strategy: Optional[Strategy] = None,
    ) -> None:
        self.player_id = player_id
        self.role = role if isinstance(role, Role) else create_role(role)
        self.personality = personality or Personality(id="default", name="default")
        self.strategy = strategy or initial_strategy(personality, self.role)
        self._rng = rng or random.Random()
        self._last_protected: Optional[str] = None

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _living_others(self, game_state: GameState) -> List[Player]:
        return [p for p in alive_players(game_state) if p.id != self.player_id]

    def _open_candidates(self, game_state: GameState, belief: BeliefModel) -> List[str]:
        """Living others not already known to be on our side."""
        own = self.role.faction
        return [
            p.id
            for p in self._living_others(game_state)
            if belief.confirmed_faction(p.id) != own
        ]

    def _random_choice(self, ids: Sequence[str]) -> Optional[str]:
        if not ids:
            return None
        return ids[self._rng.randrange(len(ids))]

    # ------------------------------------------------------------------ #
    # Strategy maintenance
    # ------------------------------------------------------------------ #

    def update_strategy(self, game_state: GameState, belief: BeliefModel) -> Strategy:
        """Escalate after day three and refresh the priority/avoid lists."""
        strategy = self.strategy
        if game_state.day > ESCALATION_DAY:
            strategy.deception_level = clamp(strategy.deception_level + DECEPTION_ESCALATION)
            if strategy.strategy_type == StrategyType.DEFENSIVE:
                strategy.strategy_type = StrategyType.AGGRESSIVE
                logger.debug("%s escalates from defensive to aggressive", self.player_id)

        candidates = self._open_candidates(game_state, belief)
        suspicious = belief.most_suspicious(among=candidates)
        trusted = belief.most_trusted(among=candidates)
        strategy.priority_targets = [suspicious] if suspicious else []
        strategy.avoid_targets = [trusted] if trusted else []
        return strategy

    # ------------------------------------------------------------------ #
    # Night
    # ------------------------------------------------------------------ #

    def decide_night_action(
        self,
        role: Role | RoleType,
        game_state: GameState,
        belief: BeliefModel,
        *,
        potions: Optional[Set[NightActionType]] = None,
    ) -> Optional[NightAction]:
        role_type = role.role_type if isinstance(role, Role) else RoleType(role)

        if role_type == RoleType.WEREWOLF:
            target = self._werewolf_target(game_state, belief)
            action = NightActionType.KILL
        elif role_type == RoleType.SEER:
            target = self._seer_target(game_state, belief)
            action = NightActionType.CHECK
        elif role_type == RoleType.WITCH:
            return self._witch_action(game_state, belief, potions)
        elif role_type == RoleType.GUARD:
            target = self._guard_target(game_state, belief)
            action = NightActionType.PROTECT
            if target is not None:
                self._last_protected = target
        else:
            return None

        if target is None:
            return None
        logger.debug("%s decides %s on %s", self.player_id, action.value, target)
        return NightAction(actor=self.player_id, action=action, target=target)

    def _werewolf_target(self, game_state: GameState, belief: BeliefModel) -> Optional[str]:
        victims = [p for p in self._living_others(game_state) if p.faction != Faction.WEREWOLF]
        if not victims:
            return None
        ids = [p.id for p in victims]
        strategy_type = self.strategy.strategy_type

        if strategy_type == StrategyType.AGGRESSIVE:
            return belief.most_trusted(among=ids) or self._random_choice(ids)

        if strategy_type == StrategyType.DECEPTIVE:
            low, high = MEDIUM_SUSPICION_RANGE
            medium = [pid for pid in ids if low <= belief.faction_probability(pid) <= high]
            return self._random_choice(medium or ids)

        scores = {
            p.id: (1.0 - belief.faction_probability(p.id)) * THREAT_LEVELS[p.role.role_type]
            for p in victims
        }
        best = max(scores.values())
        if best <= 0.0:
            return self._random_choice(ids)
        tied = [pid for pid in ids if scores[pid] == best]
        return tied[0] if len(tied) == 1 else self._random_choice(tied)

    def _seer_target(self, game_state: GameState, belief: BeliefModel) -> Optional[str]:
        unchecked = [
            p.id
            for p in self._living_others(game_state)
            if belief.confirmed_faction(p.id) is None
        ]
        if not unchecked:
            return None
        return belief.most_suspicious(among=unchecked) or self._random_choice(unchecked)

    def _witch_action(
        self,
        game_state: GameState,
        belief: BeliefModel,
        potions: Optional[Set[NightActionType]],
    ) -> Optional[NightAction]:
        available = (
            set(potions)
            if potions is not None
            else {NightActionType.HEAL, NightActionType.POISON}
        )
        if not available:
            return None

        wants_heal = self._rng.random() < WITCH_HEAL_PROBABILITY
        if wants_heal and NightActionType.HEAL in available:
            return NightAction(actor=self.player_id, action=NightActionType.HEAL, target=None)

        if NightActionType.POISON in available:
            target = belief.most_suspicious(among=self._open_candidates(game_state, belief))
            if target is not None:
                return NightAction(
                    actor=self.player_id, action=NightActionType.POISON, target=target
                )

        if NightActionType.HEAL in available:
            return NightAction(actor=self.player_id, action=NightActionType.HEAL, target=None)
        return None

    def _guard_target(self, game_state: GameState, belief: BeliefModel) -> Optional[str]:
        ids = [p.id for p in self._living_others(game_state) if p.id != self._last_protected]
        if not ids:
            return None
        return belief.most_trusted(among=ids) or self._random_choice(ids)

    # ------------------------------------------------------------------ #
    # Day
    # ------------------------------------------------------------------ #

    def decide_vote_target(self, game_state: GameState, belief: BeliefModel) -> Optional[str]:
        others = [p.id for p in self._living_others(game_state)]
        if not others:
            return None
        candidates = self._open_candidates(game_state, belief) or others
        policy = self.strategy.voting_strategy

        if policy in (VotingStrategy.AGGRESSIVE, VotingStrategy.INDEPENDENT):
            return belief.most_suspicious(among=candidates) or self._random_choice(others)

        if policy in (VotingStrategy.FOLLOW_MAJORITY, VotingStrategy.RANDOM):
            return self._random_choice(candidates)

        # Protective: never pile onto the player we trust most.
        trusted = belief.most_trusted(among=others)
        suspicious = belief.most_suspicious(among=candidates)
        if suspicious is not None and suspicious != trusted:
            return suspicious
        pool = (
            [pid for pid in candidates if pid != trusted]
            or [pid for pid in others if pid != trusted]
            or others
        )
        return self._random_choice(pool)

    def choose_speech_type(
        self,
        game_state: GameState,
        belief: BeliefModel,
        *,
        under_pressure: bool = False,
        has_information: bool = False,
    ) -> SpeechType:
        if under_pressure:
            return SpeechType.DEFENSE
        if has_information:
            return SpeechType.INFORMATION

        suspect = belief.most_suspicious(among=self._open_candidates(game_state, belief))
        if suspect is not None and (
            self.strategy.strategy_type == StrategyType.AGGRESSIVE
            or belief.suspicion(suspect) > ACCUSATION_THRESHOLD
        ):
            return SpeechType.ACCUSATION
        return SpeechType.STRATEGY

    def generate_speech_strategy(
        self,
        speech_type: SpeechType,
        belief: BeliefModel,
        game_state: Optional[GameState] = None,
    ) -> SpeechStrategy:
        among = self._open_candidates(game_state, belief) if game_state is not None else None
        most_suspicious = belief.most_suspicious(among=among)
        most_trusted = belief.most_trusted(among=among)

        if speech_type == SpeechType.ACCUSATION:
            return SpeechStrategy(
                speech_type=speech_type,
                target=most_suspicious,
                tone=_TONE_BY_STYLE.get(self.strategy.speech_style, SpeechTone.CONFIDENT),
                key_points=[
                    "point out suspicious behaviour",
                    "analyse the voting pattern",
                    "lay out the reasoning",
                ],
                confidence=self.personality.aggressiveness,
                deception_elements=(
                    ["muddy the waters", "shift attention elsewhere"]
                    if self.strategy.deception_level > 0.5
                    else []
                ),
            )
        if speech_type == SpeechType.DEFENSE:
            return SpeechStrategy(
                speech_type=speech_type,
                tone=SpeechTone.DEFENSIVE,
                key_points=[
                    "clear up the misunderstanding",
                    "offer evidence",
                    "rebut the accusation",
                ],
                confidence=0.8,
            )
        if speech_type == SpeechType.INFORMATION:
            return SpeechStrategy(
                speech_type=speech_type,
                target=most_trusted,
                tone=SpeechTone.ANALYTICAL,
                key_points=["share observations", "offer information", "suggest a plan"],
                confidence=self.personality.logic,
            )
        return SpeechStrategy(
            speech_type=speech_type,
            key_points=["general remarks"],
            confidence=0.5,
        )

    def choose_hunter_target(self, game_state: GameState, belief: BeliefModel) -> Optional[str]:
        """Pick the player to take down when the hunter dies."""
        candidates = self._open_candidates(game_state, belief)
        return belief.most_suspicious(among=candidates) or self._random_choice(candidates)
