"""
Game phase state machine.

``GameEngine`` owns the single authoritative ``GameState``. Every mutation
goes through one of its operations (``vote``, ``eliminate_player``,
``execute_night_action``, ``record_speech``, ``advance_phase``); everyone else
works on copies from ``snapshot``.

Phase graph::

    PREPARATION -> NIGHT -> DAY_DISCUSSION -> VOTING -> (LAST_WORDS) -> NIGHT
                     \\                          \\
                      -> GAME_OVER               -> GAME_OVER

Night actions are collected while the night is open and resolved together
when the night ends, so no action can observe another one's effect.
"""

from __future__ import annotations

import random
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Sequence, Set

from .errors import GameLogicError
from .logger import get_logger
from .personality import create_random_personality, optimize_for_role
from .rules import (
    build_role_deck,
    check_win_condition as faction_winner,
    generate_role_distribution,
    resolve_night_actions,
    resolve_votes,
    tally_votes,
    validate_distribution,
)
from .state import (
    HUMAN_PLAYER_ID,
    ROLE_NIGHT_ACTIONS,
    Elimination,
    EliminationCause,
    Faction,
    GameConfig,
    GamePhase,
    GameState,
    NightAction,
    NightActionType,
    NightOutcome,
    Player,
    RoleType,
    Speech,
    Vote,
    VotingRound,
    count_alive_by_faction,
    create_role,
)

logger = get_logger(__name__)

DEFAULT_AGENT_NAMES: List[str] = [
    "Alice",
    "Bob",
    "Charlie",
    "Diana",
    "Ethan",
    "Fiona",
    "George",
    "Hannah",
    "Ivan",
    "Julia",
    "Kevin",
    "Luna",
    "Marcus",
    "Nora",
    "Oscar",
]

# Called with (dead player, cause, state snapshot); may return a player id to
# take down as well.
DeathHook = Callable[[Player, EliminationCause, GameState], Optional[str]]


class GameEngine:
    """Authoritative game state plus the legal transitions between phases."""

    def __init__(
        self,
        config: GameConfig,
        *,
        rng: random.Random | None = None,
    ) -> None:
        if config.total_players <= 0:
            raise GameLogicError("total_players must be greater than zero")
        self.config = config
        self._rng = rng or random.Random()
        self._state = GameState(config=config)
        self._index: Dict[str, int] = {}
        self._death_hooks: Dict[RoleType, List[DeathHook]] = defaultdict(list)
        self._potions: Dict[str, Set[NightActionType]] = {}
        self._last_protected: Dict[str, Optional[str]] = {}

    # ------------------------------------------------------------------ #
    # Read access
    # ------------------------------------------------------------------ #

    @property
    def phase(self) -> GamePhase:
        return self._state.phase

    @property
    def day(self) -> int:
        return self._state.day

    @property
    def winner(self) -> Optional[Faction]:
        return self._state.winner

    @property
    def player_index(self) -> Dict[str, int]:
        return dict(self._index)

    def snapshot(self) -> GameState:
        """Return a deep copy of the current state."""
        return self._state.model_copy(deep=True)

    def is_alive(self, player_id: str) -> bool:
        return player_id in self._index

    def get_player(self, player_id: str) -> Optional[Player]:
        idx = self._index.get(player_id)
        if idx is not None:
            return self._state.players[idx].model_copy(deep=True)
        for player in self._state.dead_players:
            if player.id == player_id:
                return player.model_copy(deep=True)
        return None

    def remaining_potions(self, player_id: str) -> Set[NightActionType]:
        return set(self._potions.get(player_id, set()))

    def last_night_outcome(self) -> Optional[NightOutcome]:
        history = self._state.night_history
        return history[-1].model_copy(deep=True) if history else None

    # ------------------------------------------------------------------ #
    # Setup
    # ------------------------------------------------------------------ #

    def initialize(self, deck: Sequence[RoleType] | None = None) -> GameState:
        """Deal roles and seat the human plus the generated agents.

        Seat 0 is always the human slot. ``deck`` may pin the dealt roles in
        seat order; otherwise the configured (or tabled) distribution is
        shuffled.
        """
        total = self.config.total_players
        if deck is None:
            distribution = dict(self.config.role_distribution) or generate_role_distribution(total)
            validate_distribution(distribution, total)
            deck = build_role_deck(distribution, self._rng)
        elif len(deck) != total:
            raise GameLogicError(
                f"Deck has {len(deck)} roles but the game has {total} players"
            )

        names = list(self.config.agent_names) or list(DEFAULT_AGENT_NAMES)
        players: List[Player] = []
        for seat, role_type in enumerate(deck):
            role = create_role(role_type)
            if seat == 0:
                players.append(
                    Player(
                        id=HUMAN_PLAYER_ID,
                        name=self.config.human_name,
                        seat=0,
                        role=role,
                        faction=role.faction,
                        is_agent=False,
                    )
                )
                continue

            name = names[seat - 1] if seat - 1 < len(names) else f"Player {seat}"
            personality = optimize_for_role(
                create_random_personality(self._rng), role.role_type
            )
            players.append(
                Player(
                    id=f"ai_{seat}",
                    name=name,
                    seat=seat,
                    role=role,
                    faction=role.faction,
                    personality=personality,
                )
            )

        self._state = GameState(config=self.config, players=players)
        self._potions = {
            p.id: {NightActionType.HEAL, NightActionType.POISON}
            for p in players
            if p.role.role_type == RoleType.WITCH
        }
        self._last_protected = {}
        self._rebuild_index()
        logger.info(
            "Initialized game with %d players: %s",
            len(players),
            {p.id: p.role.role_type.value for p in players},
        )
        return self.snapshot()

    def start(self) -> None:
        """Move from PREPARATION into the first night."""
        if not self._state.players:
            raise GameLogicError("Cannot start a game without players")
        if self._state.phase != GamePhase.PREPARATION:
            raise GameLogicError("Game has already started")
        self._state.day = 1
        self._enter(GamePhase.NIGHT)
        logger.info("Game started; night %d begins", self._state.day)

    def register_death_hook(self, role_type: RoleType, hook: DeathHook) -> None:
        """Run ``hook`` whenever a player holding ``role_type`` is eliminated."""
        self._death_hooks[RoleType(role_type)].append(hook)

    # ------------------------------------------------------------------ #
    # Phase transitions
    # ------------------------------------------------------------------ #

    def advance_phase(self) -> GamePhase:
        """Run the transition out of the current phase and return the new phase."""
        phase = self._state.phase
        if phase == GamePhase.GAME_OVER:
            return phase

        if phase == GamePhase.PREPARATION:
            self.start()
        elif phase == GamePhase.NIGHT:
            self._end_night()
        elif phase == GamePhase.DAY_DISCUSSION:
            self._state.votes = []
            self._enter(GamePhase.VOTING)
        elif phase == GamePhase.VOTING:
            self._end_voting()
        elif phase == GamePhase.LAST_WORDS:
            self._begin_night()
        else:
            raise GameLogicError(f"No transition defined out of phase {phase}")

        logger.info("Phase %s -> %s (day %d)", phase.value, self._state.phase.value, self._state.day)
        return self._state.phase

    def _enter(self, phase: GamePhase) -> None:
        self._state.phase = phase
        self._state.current_speaker = None
        self._state.time_remaining = self._phase_duration(phase)

    def _phase_duration(self, phase: GamePhase) -> int:
        if phase == GamePhase.DAY_DISCUSSION:
            return self.config.discussion_time
        if phase == GamePhase.VOTING:
            return self.config.voting_time
        return 0

    def _begin_night(self) -> None:
        self._state.day += 1
        self._state.night_actions = []
        self._enter(GamePhase.NIGHT)

    def _end_night(self) -> None:
        state = self._state
        seat_of = {p.id: p.seat for p in state.players}
        faction_of = {p.id: p.faction for p in state.players}
        outcome = resolve_night_actions(
            state.night_actions, day=state.day, seat_of=seat_of, faction_of=faction_of
        )

        for action in state.night_actions:
            if action.action == NightActionType.HEAL and outcome.healed:
                self._potions.get(action.actor, set()).discard(NightActionType.HEAL)
            elif action.action == NightActionType.POISON and outcome.poisoned == action.target:
                self._potions.get(action.actor, set()).discard(NightActionType.POISON)

        guards = [p.id for p in state.players if p.role.role_type == RoleType.GUARD]
        for guard_id in guards:
            self._last_protected[guard_id] = next(
                (
                    a.target
                    for a in state.night_actions
                    if a.actor == guard_id and a.action == NightActionType.PROTECT
                ),
                None,
            )

        state.night_actions = []
        state.night_history.append(outcome)

        for player_id in outcome.deaths:
            if not self.is_alive(player_id):
                continue
            cause = (
                EliminationCause.POISON
                if player_id == outcome.poisoned
                else EliminationCause.KILL
            )
            self.eliminate_player(player_id, cause)

        logger.info(
            "Night %d resolved: attacked=%s deaths=%s", outcome.day, outcome.attacked, outcome.deaths
        )
        if self.check_win_condition() is None:
            self._enter(GamePhase.DAY_DISCUSSION)

    def _end_voting(self) -> None:
        state = self._state
        seat_of = {p.id: p.seat for p in state.players}
        tally = tally_votes(state.votes)
        eliminated = resolve_votes(state.votes, seat_of)
        state.vote_history.append(
            VotingRound(day=state.day, tally=tally, eliminated=eliminated)
        )
        state.votes = []

        if eliminated is not None:
            self.eliminate_player(eliminated, EliminationCause.VOTE)
        else:
            logger.info("No votes cast on day %d; nobody is eliminated", state.day)

        if self.check_win_condition() is not None:
            return
        if self.config.last_words and eliminated is not None:
            self._enter(GamePhase.LAST_WORDS)
            state.current_speaker = eliminated
        else:
            self._begin_night()

    # ------------------------------------------------------------------ #
    # Mutations requested by players
    # ------------------------------------------------------------------ #

    def _alive(self, player_id: str) -> Player:
        idx = self._index.get(player_id)
        if idx is None:
            raise GameLogicError(f"Player '{player_id}' is not alive")
        return self._state.players[idx]

    def vote(self, voter_id: str, target_id: str) -> Vote:
        """Register a vote, replacing any earlier vote from the same voter."""
        if self._state.phase != GamePhase.VOTING:
            raise GameLogicError("Votes are only accepted during the voting phase")
        voter = self._alive(voter_id)
        self._alive(target_id)
        if not voter.role.can_vote:
            raise GameLogicError(f"Player '{voter_id}' cannot vote")

        vote = Vote(voter=voter_id, target=target_id)
        self._state.votes = [v for v in self._state.votes if v.voter != voter_id]
        self._state.votes.append(vote)
        logger.debug("Vote registered: %s -> %s", voter_id, target_id)
        return vote

    def all_players_voted(self) -> bool:
        """True once every living player has a pending vote."""
        voters = {v.voter for v in self._state.votes}
        eligible = [p for p in self._state.players if p.role.can_vote]
        return bool(eligible) and len(voters) >= len(eligible)

    def execute_night_action(self, action: NightAction) -> NightAction:
        """Validate and queue a night action for resolution at dawn.

        One pending action per actor: a second submission replaces the first.
        """
        if self._state.phase != GamePhase.NIGHT:
            raise GameLogicError("Night actions are only accepted at night")
        actor = self._alive(action.actor)
        allowed = ROLE_NIGHT_ACTIONS.get(actor.role.role_type, frozenset())
        if action.action not in allowed:
            raise GameLogicError(
                f"A {actor.role.role_type.value} cannot perform '{action.action.value}'"
            )

        if action.target is None:
            if action.action != NightActionType.HEAL:
                raise GameLogicError(f"'{action.action.value}' requires a target")
        else:
            self._alive(action.target)

        if action.action in (NightActionType.HEAL, NightActionType.POISON):
            if action.action not in self._potions.get(actor.id, set()):
                raise GameLogicError(f"The {action.action.value} potion has already been used")
        if (
            action.action == NightActionType.PROTECT
            and self._last_protected.get(actor.id) == action.target
        ):
            raise GameLogicError("The same player cannot be protected two nights in a row")

        queued = action.model_copy()
        self._state.night_actions = [
            a for a in self._state.night_actions if a.actor != action.actor
        ]
        self._state.night_actions.append(queued)
        logger.debug(
            "Night action queued: %s %s %s", action.actor, action.action.value, action.target
        )
        return queued

    def record_speech(self, speaker_id: str, content: str) -> Speech:
        """Append a public statement to the game log."""
        phase = self._state.phase
        if phase == GamePhase.LAST_WORDS:
            if speaker_id != self._state.current_speaker:
                raise GameLogicError("Only the eliminated player may give last words")
        elif phase == GamePhase.DAY_DISCUSSION:
            self._alive(speaker_id)
            self._state.current_speaker = speaker_id
        else:
            raise GameLogicError("Speeches are only accepted during discussion or last words")

        speech = Speech(day=self._state.day, phase=phase, speaker=speaker_id, content=content)
        self._state.speeches.append(speech)
        return speech

    # ------------------------------------------------------------------ #
    # Elimination and win condition
    # ------------------------------------------------------------------ #

    def eliminate_player(
        self,
        player_id: str,
        cause: EliminationCause = EliminationCause.VOTE,
    ) -> Player:
        """Move a living player to ``dead_players`` and fire role death hooks."""
        idx = self._index.get(player_id)
        if idx is None:
            raise GameLogicError(f"Player '{player_id}' is not alive")

        player = self._state.players.pop(idx)
        player.is_alive = False
        self._state.dead_players.append(player)
        self._rebuild_index()
        self._state.eliminations.append(
            Elimination(player_id=player_id, cause=cause, day=self._state.day)
        )
        logger.info(
            "Player %s (%s) eliminated by %s on day %d",
            player_id,
            player.role.role_type.value,
            cause.value,
            self._state.day,
        )

        for hook in self._death_hooks.get(player.role.role_type, []):
            target = hook(player.model_copy(deep=True), cause, self.snapshot())
            if target and self.is_alive(target):
                self.eliminate_player(target, EliminationCause.HUNTER_SHOT)
        return player

    def check_win_condition(self) -> Optional[Faction]:
        """Set the winner and end the game when a faction has won."""
        if self._state.winner is not None:
            return self._state.winner

        counts = count_alive_by_faction(self._state)
        winner = faction_winner(counts[Faction.WEREWOLF], counts[Faction.VILLAGER])
        if winner is not None:
            self._state.winner = winner
            self._enter(GamePhase.GAME_OVER)
            logger.info("Game over on day %d: %s faction wins", self._state.day, winner.value)
        return winner

    def update_timer(self, elapsed: int = 1) -> bool:
        """Tick the informational countdown. Returns True once it reaches zero."""
        if self._state.time_remaining <= 0:
            return self._phase_duration(self._state.phase) > 0
        self._state.time_remaining = max(0, self._state.time_remaining - elapsed)
        return self._state.time_remaining == 0

    def _rebuild_index(self) -> None:
        self._index = {p.id: i for i, p in enumerate(self._state.players)}
        assert all(
            self._state.players[i].id == pid for pid, i in self._index.items()
        ), "player index out of sync with roster"
