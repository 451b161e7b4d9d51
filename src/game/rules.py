"""
Game rules for the werewolf game.

Pure functions only: nothing here touches a ``GameState`` directly, which keeps
the rules trivial to table-test and lets the engine stay the single owner of
mutable state.

Rules summary:
- Role decks come from fixed tables for 6, 8, 10 and 12 players; any other
  size degrades to two werewolves and the rest villagers
- Votes are a plurality; ties go to the tied player sitting in the lowest seat
- The werewolf faction wins at parity (wolves >= villager faction), the
  villager faction wins once no werewolf is alive
- Night actions are resolved together: a guard's protection or a witch's heal
  cancels the wolves' kill, poison always kills

Key Functions:
- generate_role_distribution / build_role_deck: deck construction
- resolve_votes: plurality with deterministic tie-break
- check_win_condition: faction win rule
- resolve_night_actions: one night's combined effects
"""

from __future__ import annotations

import random
from collections import Counter
from typing import Dict, Iterable, List, Mapping, MutableSequence, Optional, TypeVar

from .errors import GameLogicError
from .logger import get_logger
from .state import (
    CheckResult,
    Faction,
    NightAction,
    NightActionType,
    NightOutcome,
    RoleType,
    Vote,
)

logger = get_logger(__name__)

T = TypeVar("T")

ROLE_DISTRIBUTIONS: Dict[int, Dict[RoleType, int]] = {
    6: {
        RoleType.WEREWOLF: 2,
        RoleType.VILLAGER: 2,
        RoleType.SEER: 1,
        RoleType.WITCH: 1,
    },
    8: {
        RoleType.WEREWOLF: 3,
        RoleType.VILLAGER: 3,
        RoleType.SEER: 1,
        RoleType.WITCH: 1,
    },
    10: {
        RoleType.WEREWOLF: 3,
        RoleType.VILLAGER: 4,
        RoleType.SEER: 1,
        RoleType.WITCH: 1,
        RoleType.HUNTER: 1,
    },
    12: {
        RoleType.WEREWOLF: 4,
        RoleType.VILLAGER: 4,
        RoleType.SEER: 1,
        RoleType.WITCH: 1,
        RoleType.HUNTER: 1,
        RoleType.GUARD: 1,
    },
}


def generate_role_distribution(total_players: int) -> Dict[RoleType, int]:
    """Return the role counts for a game of ``total_players``.

    Unknown sizes get two werewolves (or fewer, for one-player games) and
    villagers for every remaining seat.
    """
    if total_players <= 0:
        raise GameLogicError("total_players must be greater than zero")

    table = ROLE_DISTRIBUTIONS.get(total_players)
    if table is not None:
        return dict(table)

    werewolves = min(2, total_players)
    distribution = {RoleType.WEREWOLF: werewolves}
    if total_players > werewolves:
        distribution[RoleType.VILLAGER] = total_players - werewolves
    return distribution


def validate_distribution(
    distribution: Mapping[RoleType, int], total_players: int
) -> None:
    """Reject distributions with negative counts or the wrong total."""
    if any(count < 0 for count in distribution.values()):
        raise GameLogicError("Role counts cannot be negative")
    total = sum(distribution.values())
    if total != total_players:
        raise GameLogicError(
            f"Role distribution covers {total} seats but the game has {total_players}"
        )


def fisher_yates_shuffle(items: MutableSequence[T], rng: random.Random) -> MutableSequence[T]:
    """Shuffle ``items`` in place with a uniform Fisher-Yates pass."""
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def build_role_deck(
    distribution: Mapping[RoleType, int], rng: random.Random
) -> List[RoleType]:
    """Expand a distribution into a shuffled list of role types."""
    deck: List[RoleType] = []
    for role_type in RoleType:
        deck.extend([role_type] * distribution.get(role_type, 0))
    fisher_yates_shuffle(deck, rng)
    return deck


def _plurality(
    targets: Iterable[str], seat_of: Mapping[str, int]
) -> tuple[Optional[str], Counter[str]]:
    counts: Counter[str] = Counter(targets)
    if not counts:
        return None, counts

    top = max(counts.values())
    tied = [target for target, count in counts.items() if count == top]
    winner = min(tied, key=lambda pid: (seat_of.get(pid, len(seat_of)), pid))
    if len(tied) > 1:
        logger.info("Tie between %s broken by seat order; %s selected", tied, winner)
    return winner, counts


def tally_votes(votes: Iterable[Vote]) -> Dict[str, int]:
    """Count votes per target."""
    return dict(Counter(vote.target for vote in votes))


def resolve_votes(votes: Iterable[Vote], seat_of: Mapping[str, int]) -> Optional[str]:
    """Return the player eliminated by ``votes``, or ``None`` when nobody voted.

    The target with most votes wins; a tie goes to the lowest seat among the
    tied targets.
    """
    winner, _ = _plurality((vote.target for vote in votes), seat_of)
    return winner


def check_win_condition(
    alive_werewolves: int, alive_villagers: int
) -> Optional[Faction]:
    """Apply the faction win rule to living head counts.

    Werewolves only need parity with the villager faction, not a majority.
    """
    if alive_werewolves == 0:
        return Faction.VILLAGER
    if alive_werewolves >= alive_villagers:
        return Faction.WEREWOLF
    return None


def resolve_night_actions(
    actions: Iterable[NightAction],
    *,
    day: int,
    seat_of: Mapping[str, int],
    faction_of: Mapping[str, Faction],
) -> NightOutcome:
    """Combine one night's actions into a ``NightOutcome``.

    - Werewolf kills are pooled; the plurality target is attacked (seat order
      breaks ties).
    - A guard's protection or a witch's heal on the attacked player cancels
      the attack. A heal without a target applies to whoever was attacked.
    - Poison always kills, even a protected player.
    - Seer checks report the target's true faction.
    """
    actions = list(actions)

    attacked, _ = _plurality(
        (a.target for a in actions if a.action == NightActionType.KILL and a.target),
        seat_of,
    )

    protected: Optional[str] = None
    healed: Optional[str] = None
    poisoned: Optional[str] = None
    checks: List[CheckResult] = []

    for action in actions:
        if action.action == NightActionType.PROTECT:
            protected = action.target
        elif action.action == NightActionType.HEAL:
            target = action.target or attacked
            if target is not None and target == attacked:
                healed = target
        elif action.action == NightActionType.POISON:
            poisoned = action.target
        elif action.action == NightActionType.CHECK and action.target:
            faction = faction_of.get(action.target)
            if faction is not None:
                checks.append(
                    CheckResult(seer=action.actor, target=action.target, faction=faction)
                )

    deaths: List[str] = []
    if attacked is not None and attacked not in (protected, healed):
        deaths.append(attacked)
    if poisoned is not None and poisoned not in deaths:
        deaths.append(poisoned)

    return NightOutcome(
        day=day,
        attacked=attacked,
        protected=protected,
        healed=healed,
        poisoned=poisoned,
        deaths=deaths,
        checks=checks,
    )
