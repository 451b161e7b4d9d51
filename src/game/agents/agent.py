"""Agent-controlled player: private beliefs, strategy and a lightweight memory."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Set

from ..logger import get_logger
from ..state import (
    Faction,
    GameState,
    NightAction,
    NightActionType,
    NightOutcome,
    Player,
    RoleType,
    SpeechType,
    all_players,
)
from .belief import BeliefModel, BeliefReport, Evidence, EvidenceType
from .speech import SpeechAnalysis, analyze_speech
from .strategy import SpeechStrategy, StrategySelector

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ObservedSpeech:
    day: int
    speaker: str
    content: str
    analysis: SpeechAnalysis
    ts: datetime = field(default_factory=_utc_now)


@dataclass(slots=True)
class DecisionRecord:
    """Tracks what the agent chose and why."""

    day: int
    kind: str
    target: Optional[str] = None
    detail: Optional[str] = None
    ts: datetime = field(default_factory=_utc_now)


@dataclass(slots=True)
class AgentMemory:
    speeches: List[ObservedSpeech] = field(default_factory=list)
    votes: List[tuple[int, str, str]] = field(default_factory=list)
    night_outcomes: List[NightOutcome] = field(default_factory=list)
    decisions: List[DecisionRecord] = field(default_factory=list)
    accused_on: Set[int] = field(default_factory=set)

    def remember_decision(self, record: DecisionRecord) -> None:
        self.decisions.append(record)


class Agent:
    """Bundles one player's belief model, strategy selector and memory."""

    def __init__(self, player: Player, *, rng: random.Random | None = None) -> None:
        self.player_id = player.id
        self.name = player.name
        self.role = player.role
        self.personality = player.personality
        self.belief = BeliefModel(player.id)
        self.selector = StrategySelector(player.id, player.role, player.personality, rng=rng)
        self.memory = AgentMemory()
        self._roster: List[Player] = []

    @property
    def role_type(self) -> RoleType:
        return self.role.role_type

    def initialize(self, game_state: GameState) -> None:
        """Seed beliefs; werewolves also learn who their teammates are."""
        self._roster = all_players(game_state)
        self.belief.initialize(game_state)
        if self.role.faction == Faction.WEREWOLF:
            for player in self._roster:
                if player.id != self.player_id and player.faction == Faction.WEREWOLF:
                    self.belief.confirm_faction(player.id, Faction.WEREWOLF, source="pack")

    # ------------------------------------------------------------------ #
    # Observations
    # ------------------------------------------------------------------ #

    def observe_speech(self, day: int, speaker_id: str, content: str) -> Optional[SpeechAnalysis]:
        if speaker_id == self.player_id:
            return None

        analysis = analyze_speech(content, self._roster)
        self.memory.speeches.append(
            ObservedSpeech(day=day, speaker=speaker_id, content=content, analysis=analysis)
        )
        self.belief.analyze_speech(speaker_id, content)

        if analysis.intent == SpeechType.DEFENSE:
            self.belief.add_evidence(
                speaker_id,
                Evidence(
                    evidence_type=EvidenceType.DEFENSIVE_BEHAVIOR,
                    confidence=0.6,
                    weight=round(1.0 - analysis.credibility, 4),
                    source="speech_intent",
                    description=f"{speaker_id} defended themselves on day {day}",
                ),
            )
        if analysis.intent == SpeechType.ACCUSATION and self.player_id in analysis.targets_mentioned:
            self.memory.accused_on.add(day)
        return analysis

    def observe_vote(self, day: int, voter_id: str, target_id: str) -> None:
        self.memory.votes.append((day, voter_id, target_id))
        if voter_id != self.player_id:
            self.belief.analyze_vote(voter_id, target_id)

    def observe_night_outcome(self, outcome: NightOutcome) -> None:
        """Learn tonight's deaths; a seer also learns its own check results."""
        self.memory.night_outcomes.append(outcome)
        for player_id in outcome.deaths:
            self.belief.mark_eliminated(player_id)
        for check in outcome.checks:
            if check.seer == self.player_id:
                self.belief.confirm_faction(check.target, check.faction)

    def observe_elimination(self, player_id: str) -> None:
        self.belief.mark_eliminated(player_id)

    # ------------------------------------------------------------------ #
    # Decisions
    # ------------------------------------------------------------------ #

    def decide_night_action(
        self,
        game_state: GameState,
        *,
        potions: Optional[Set[NightActionType]] = None,
    ) -> Optional[NightAction]:
        self.selector.update_strategy(game_state, self.belief)
        action = self.selector.decide_night_action(
            self.role, game_state, self.belief, potions=potions
        )
        self.memory.remember_decision(
            DecisionRecord(
                day=game_state.day,
                kind=f"night:{action.action.value}" if action else "night:none",
                target=action.target if action else None,
                detail=self.selector.strategy.strategy_type.value,
            )
        )
        return action

    def decide_vote(self, game_state: GameState) -> Optional[str]:
        self.selector.update_strategy(game_state, self.belief)
        target = self.selector.decide_vote_target(game_state, self.belief)
        self.memory.remember_decision(
            DecisionRecord(
                day=game_state.day,
                kind="vote",
                target=target,
                detail=self.selector.strategy.voting_strategy.value,
            )
        )
        return target

    def plan_speech(self, game_state: GameState) -> SpeechStrategy:
        has_information = self.role_type == RoleType.SEER and any(
            check.seer == self.player_id
            for outcome in self.memory.night_outcomes
            if outcome.day == game_state.day
            for check in outcome.checks
        )
        speech_type = self.selector.choose_speech_type(
            game_state,
            self.belief,
            under_pressure=game_state.day in self.memory.accused_on,
            has_information=has_information,
        )
        plan = self.selector.generate_speech_strategy(speech_type, self.belief, game_state)
        self.memory.remember_decision(
            DecisionRecord(
                day=game_state.day,
                kind=f"speech:{plan.speech_type.value}",
                target=plan.target,
                detail=plan.tone.value,
            )
        )
        return plan

    def hunter_target(self, game_state: GameState) -> Optional[str]:
        return self.selector.choose_hunter_target(game_state, self.belief)

    def report(self) -> BeliefReport:
        return self.belief.analysis_report()
