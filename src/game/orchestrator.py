"""
Round orchestration for the werewolf game.

The ``Orchestrator`` sits between the engine and the agents. For each phase
it hands every eligible agent the same read-only snapshot, gathers their
decisions concurrently (only calls to the text-generation service actually
suspend), applies the results through the engine's operations, and then
advances the phase.

Failure policy: a failed or unusable model reply only affects the agent that
asked for it. That agent falls back to its heuristic strategy (night actions)
or to a canned line (speeches); the round itself never aborts.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set, Tuple
from uuid import uuid4

from .agents import Agent
from .engine import GameEngine
from .errors import GameLogicError
from .logger import get_logger
from .prompts import (
    build_last_words_prompt,
    build_night_action_prompt,
    build_speech_prompt,
    fallback_speech,
    parse_night_action_response,
    sanitize_speech,
)
from .recorder import GameRecorder
from .state import (
    HUMAN_PLAYER_ID,
    EliminationCause,
    GamePhase,
    GameState,
    NightAction,
    NightActionType,
    NightOutcome,
    Player,
    RoleType,
    Speech,
    VotingRound,
    alive_players,
)

logger = get_logger(__name__)


class TextService(Protocol):
    async def generate(self, prompt: str) -> str: ...


class HumanController(Protocol):
    """Source of the human player's decisions. ``None`` means abstain."""

    async def night_action(
        self, player: Player, state: GameState, potions: Set[NightActionType]
    ) -> Optional[NightAction]: ...

    async def speech(self, player: Player, state: GameState) -> Optional[str]: ...

    async def vote(self, player: Player, state: GameState) -> Optional[str]: ...


class PassiveHumanController:
    """Human seat that never acts; handy for simulations and tests."""

    async def night_action(
        self, player: Player, state: GameState, potions: Set[NightActionType]
    ) -> Optional[NightAction]:
        return None

    async def speech(self, player: Player, state: GameState) -> Optional[str]:
        return None

    async def vote(self, player: Player, state: GameState) -> Optional[str]:
        return None


class Orchestrator:
    """Drives one round of agent decisions per phase."""

    def __init__(
        self,
        engine: GameEngine,
        *,
        text_service: Optional[TextService] = None,
        recorder: Optional[GameRecorder] = None,
        human: Optional[HumanController] = None,
        game_id: Optional[str] = None,
        rng: random.Random | None = None,
    ) -> None:
        self.engine = engine
        self.text_service = text_service
        self.recorder = recorder or GameRecorder(enabled=False)
        self.human = human or PassiveHumanController()
        self.game_id = game_id or f"game-{uuid4()}"
        self.agents: Dict[str, Agent] = {}
        self._rng = rng or random.Random()
        self._seen_eliminations = 0
        self._finished = False
        self._handlers: Dict[GamePhase, Callable[[], Awaitable[Any]]] = {
            GamePhase.NIGHT: self.run_night,
            GamePhase.DAY_DISCUSSION: self.run_discussion,
            GamePhase.VOTING: self.run_voting,
            GamePhase.LAST_WORDS: self.run_last_words,
        }

    # ------------------------------------------------------------------ #
    # Setup
    # ------------------------------------------------------------------ #

    def setup(self) -> GameState:
        """Deal roles if needed, create agents and start the first night."""
        state = self.engine.snapshot()
        if not state.players:
            state = self.engine.initialize()

        self.agents = {
            p.id: Agent(p, rng=random.Random(self._rng.getrandbits(64)))
            for p in state.players
            if p.is_agent
        }
        for agent in self.agents.values():
            agent.initialize(state)

        self.engine.register_death_hook(RoleType.HUNTER, self._hunter_shot)
        self.recorder.on_game_start(
            game_id=self.game_id,
            players={p.id: p.role.role_type.value for p in state.players},
            config=state.config.model_dump(mode="json"),
        )

        if self.engine.phase == GamePhase.PREPARATION:
            self.engine.start()
        logger.info("Game %s set up with %d agents", self.game_id, len(self.agents))
        return self.engine.snapshot()

    def _hunter_shot(self, player: Player, cause: EliminationCause, state: GameState) -> Optional[str]:
        if cause == EliminationCause.POISON:
            logger.info("Hunter %s was poisoned and cannot shoot", player.id)
            return None
        agent = self.agents.get(player.id)
        if agent is None:
            return None
        target = agent.hunter_target(state)
        logger.info("Hunter %s takes %s down with them", player.id, target)
        return target

    # ------------------------------------------------------------------ #
    # Phase handlers
    # ------------------------------------------------------------------ #

    async def step(self) -> GamePhase:
        """Run the handler for the current phase and return the new phase."""
        phase = self.engine.phase
        if phase == GamePhase.PREPARATION:
            self.setup()
        elif phase == GamePhase.GAME_OVER:
            self.finish()
        else:
            await self._handlers[phase]()
        if self.engine.phase == GamePhase.GAME_OVER:
            self.finish()
        return self.engine.phase

    async def run_game(self, *, max_days: int = 30) -> GameState:
        """Play until a faction wins or ``max_days`` have passed."""
        if self.engine.phase == GamePhase.PREPARATION:
            self.setup()
        while self.engine.phase != GamePhase.GAME_OVER and self.engine.day <= max_days:
            await self.step()
        if self.engine.phase != GamePhase.GAME_OVER:
            logger.warning("Game %s stopped after %d days without a winner", self.game_id, max_days)
            self.finish(force=True)
        else:
            self.finish()
        return self.engine.snapshot()

    def _require(self, phase: GamePhase) -> GameState:
        if self.engine.phase != phase:
            raise GameLogicError(
                f"Expected phase {phase.value}, game is in {self.engine.phase.value}"
            )
        return self.engine.snapshot()

    async def run_night(self) -> Optional[NightOutcome]:
        """Collect every night action, resolve the night and brief the agents."""
        state = self._require(GamePhase.NIGHT)
        actors = [
            p
            for p in alive_players(state)
            if p.role.has_night_action and p.id in self.agents
        ]
        decisions = await asyncio.gather(
            *(self._decide_night_action(player, state) for player in actors)
        )

        for player, (action, source) in zip(actors, decisions):
            if action is None:
                continue
            if not self._apply_night_action(action, source):
                fallback = self.agents[player.id].decide_night_action(
                    state, potions=self._potions_for(player)
                )
                if fallback is not None and fallback != action:
                    self._apply_night_action(fallback, "heuristic")

        human = self._human_player(state)
        if human is not None and human.role.has_night_action:
            action = await self.human.night_action(human, state, self._potions_for(human) or set())
            if action is not None:
                self._apply_night_action(action, "human")

        self.engine.advance_phase()
        outcome = self.engine.last_night_outcome()
        if outcome is not None:
            for agent in self.agents.values():
                private = [c for c in outcome.checks if c.seer == agent.player_id]
                agent.observe_night_outcome(outcome.model_copy(update={"checks": private}))
        self._sync_eliminations()
        return outcome

    async def run_discussion(self) -> List[Speech]:
        """Every living player speaks once, in seat order."""
        state = self._require(GamePhase.DAY_DISCUSSION)
        speakers = alive_players(state)
        agent_speakers = [p for p in speakers if p.id in self.agents]
        composed = await asyncio.gather(
            *(self._compose_speech(player, state) for player in agent_speakers)
        )
        lines: Dict[str, Tuple[str, str]] = {
            player.id: result for player, result in zip(agent_speakers, composed)
        }

        human = self._human_player(state)
        if human is not None:
            text = await self.human.speech(human, state)
            if text:
                lines[human.id] = (sanitize_speech(text), "human")

        speeches: List[Speech] = []
        for player in speakers:
            if player.id not in lines:
                continue
            text, source = lines[player.id]
            speeches.append(self._publish_speech(player.id, text, source))

        self.engine.advance_phase()
        return speeches

    async def run_voting(self) -> Optional[VotingRound]:
        """Collect votes; the phase closes as soon as everyone has voted."""
        state = self._require(GamePhase.VOTING)
        ballots: List[Tuple[str, str]] = []
        for player in alive_players(state):
            agent = self.agents.get(player.id)
            if agent is None:
                continue
            target = agent.decide_vote(state)
            if target is not None:
                ballots.append((player.id, target))

        human = self._human_player(state)
        if human is not None:
            target = await self.human.vote(human, state)
            if target:
                ballots.append((human.id, target))

        for voter_id, target_id in ballots:
            self._apply_vote(voter_id, target_id)
            if self._maybe_auto_advance():
                break
        else:
            self.engine.advance_phase()

        self._sync_eliminations()
        self._record_analyses(state.day)
        history = self.engine.snapshot().vote_history
        return history[-1] if history else None

    async def run_last_words(self) -> Optional[Speech]:
        state = self._require(GamePhase.LAST_WORDS)
        speaker_id = state.current_speaker
        speech: Optional[Speech] = None
        player = next((p for p in state.dead_players if p.id == speaker_id), None)

        if player is not None:
            text: Optional[str]
            source = "fallback"
            if player.id in self.agents:
                text = fallback_speech(player.role.role_type, state.day)
                if self.text_service is not None:
                    try:
                        text = sanitize_speech(
                            await self.text_service.generate(build_last_words_prompt(player, state))
                        )
                        source = "llm"
                    except Exception as exc:  # noqa: BLE001 - one agent's failure must not stop the round
                        logger.warning("Last words for %s fell back to a canned line: %s", player.id, exc)
            else:
                text = await self.human.speech(player, state)
                source = "human"
            if text:
                speech = self._publish_speech(player.id, sanitize_speech(text), source)

        self.engine.advance_phase()
        return speech

    # ------------------------------------------------------------------ #
    # Human interactions
    # ------------------------------------------------------------------ #

    def submit_human_vote(self, target_id: str) -> bool:
        """Register the human's vote. Returns True if it closed the voting phase."""
        self._apply_vote(HUMAN_PLAYER_ID, target_id, strict=True)
        advanced = self._maybe_auto_advance()
        if advanced:
            self._sync_eliminations()
        return advanced

    def submit_human_speech(self, content: str) -> Speech:
        return self._publish_speech(HUMAN_PLAYER_ID, sanitize_speech(content), "human")

    def submit_human_night_action(
        self, action: NightActionType, target_id: Optional[str] = None
    ) -> NightAction:
        return self.engine.execute_night_action(
            NightAction(actor=HUMAN_PLAYER_ID, action=action, target=target_id)
        )

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _human_player(self, state: GameState) -> Optional[Player]:
        return next(
            (p for p in alive_players(state) if not p.is_agent),
            None,
        )

    def _potions_for(self, player: Player) -> Optional[Set[NightActionType]]:
        if player.role.role_type == RoleType.WITCH:
            return self.engine.remaining_potions(player.id)
        return None

    async def _decide_night_action(
        self, player: Player, state: GameState
    ) -> Tuple[Optional[NightAction], str]:
        agent = self.agents[player.id]
        potions = self._potions_for(player)

        if self.text_service is not None:
            prompt = build_night_action_prompt(player, state, potions=potions)
            try:
                reply = await self.text_service.generate(prompt)
            except Exception as exc:  # noqa: BLE001 - one agent's failure must not stop the round
                logger.warning("Night decision for %s fell back to heuristics: %s", player.id, exc)
            else:
                action = parse_night_action_response(player, reply, state)
                if action is not None:
                    return action, "llm"
                logger.info("Unusable night reply from %s; using heuristics", player.id)

        return agent.decide_night_action(state, potions=potions), "heuristic"

    def _apply_night_action(self, action: NightAction, source: str) -> bool:
        try:
            self.engine.execute_night_action(action)
        except GameLogicError as exc:
            logger.warning("Rejected %s night action from %s: %s", source, action.actor, exc)
            return False
        self.recorder.on_night_action(
            game_id=self.game_id,
            day=self.engine.day,
            actor_id=action.actor,
            action=action.action.value,
            target_id=action.target,
            source=source,
        )
        return True

    async def _compose_speech(self, player: Player, state: GameState) -> Tuple[str, str]:
        agent = self.agents[player.id]
        plan = agent.plan_speech(state)
        if self.text_service is not None:
            try:
                reply = await self.text_service.generate(build_speech_prompt(player, state, plan))
                return sanitize_speech(reply), "llm"
            except Exception as exc:  # noqa: BLE001 - one agent's failure must not stop the round
                logger.warning("Speech for %s fell back to a canned line: %s", player.id, exc)
        return fallback_speech(player.role.role_type, state.day), "fallback"

    def _publish_speech(self, speaker_id: str, text: str, source: str) -> Speech:
        try:
            speech = self.engine.record_speech(speaker_id, text)
        except GameLogicError:
            logger.warning("Speech from %s rejected in phase %s", speaker_id, self.engine.phase.value)
            raise
        logger.info("%s says: %s", speaker_id, text)
        for agent in self.agents.values():
            agent.observe_speech(speech.day, speaker_id, text)
        self.recorder.on_speech(
            game_id=self.game_id, day=speech.day, player_id=speaker_id, content=text, source=source
        )
        return speech

    def _apply_vote(self, voter_id: str, target_id: str, *, strict: bool = False) -> bool:
        try:
            self.engine.vote(voter_id, target_id)
        except GameLogicError as exc:
            if strict:
                raise
            logger.warning("Rejected vote %s -> %s: %s", voter_id, target_id, exc)
            return False
        day = self.engine.day
        for agent in self.agents.values():
            agent.observe_vote(day, voter_id, target_id)
        self.recorder.on_vote(game_id=self.game_id, day=day, voter_id=voter_id, target_id=target_id)
        return True

    def _maybe_auto_advance(self) -> bool:
        if self.engine.phase == GamePhase.VOTING and self.engine.all_players_voted():
            logger.debug("All living players voted; closing the vote early")
            self.engine.advance_phase()
            return True
        return False

    def _sync_eliminations(self) -> None:
        eliminations = self.engine.snapshot().eliminations
        for record in eliminations[self._seen_eliminations:]:
            for agent in self.agents.values():
                agent.observe_elimination(record.player_id)
            self.recorder.on_elimination(
                game_id=self.game_id,
                day=record.day,
                player_id=record.player_id,
                cause=record.cause.value,
            )
        self._seen_eliminations = len(eliminations)

    def _record_analyses(self, day: int) -> None:
        if not self.recorder.enabled:
            return
        for agent in self.agents.values():
            self.recorder.on_analysis(
                game_id=self.game_id,
                day=day,
                player_id=agent.player_id,
                report=agent.report().model_dump(mode="json"),
            )

    def finish(self, *, force: bool = False) -> None:
        """Close the game record once a winner is known; safe to call repeatedly.

        ``force`` closes it even without a winner (a day cap was hit).
        """
        if self._finished or (self.engine.phase != GamePhase.GAME_OVER and not force):
            return
        self._finished = True
        self._sync_eliminations()
        winner = self.engine.winner
        self.recorder.on_game_end(
            game_id=self.game_id,
            winner=winner.value if winner else None,
            days=self.engine.day,
        )
        logger.info("Game %s finished: %s", self.game_id, winner.value if winner else "no winner")
