import random
from collections import Counter

import pytest

from src.game.errors import GameLogicError
from src.game.rules import (
    ROLE_DISTRIBUTIONS,
    build_role_deck,
    check_win_condition,
    fisher_yates_shuffle,
    generate_role_distribution,
    resolve_night_actions,
    resolve_votes,
    tally_votes,
    validate_distribution,
)
from src.game.state import Faction, NightAction, NightActionType, RoleType, Vote


@pytest.fixture
def seat_of():
    return {"a": 0, "b": 1, "c": 2, "d": 3}


@pytest.fixture
def faction_of():
    return {
        "a": Faction.VILLAGER,
        "b": Faction.WEREWOLF,
        "c": Faction.VILLAGER,
        "d": Faction.VILLAGER,
    }


@pytest.mark.parametrize("total", sorted(ROLE_DISTRIBUTIONS))
def test_table_distributions_cover_every_seat(total):
    distribution = generate_role_distribution(total)
    assert sum(distribution.values()) == total
    assert distribution[RoleType.WEREWOLF] >= 2


def test_eight_player_table():
    assert generate_role_distribution(8) == {
        RoleType.WEREWOLF: 3,
        RoleType.VILLAGER: 3,
        RoleType.SEER: 1,
        RoleType.WITCH: 1,
    }


def test_untabled_size_falls_back_to_two_wolves():
    assert generate_role_distribution(7) == {RoleType.WEREWOLF: 2, RoleType.VILLAGER: 5}
    assert generate_role_distribution(1) == {RoleType.WEREWOLF: 1}


def test_distribution_rejects_non_positive_sizes():
    with pytest.raises(GameLogicError):
        generate_role_distribution(0)


def test_validate_distribution_checks_total():
    with pytest.raises(GameLogicError):
        validate_distribution({RoleType.WEREWOLF: 2, RoleType.VILLAGER: 3}, 6)
    with pytest.raises(GameLogicError):
        validate_distribution({RoleType.WEREWOLF: -1, RoleType.VILLAGER: 7}, 6)


def test_role_deck_matches_distribution():
    distribution = generate_role_distribution(12)
    deck = build_role_deck(distribution, random.Random(7))
    assert Counter(deck) == Counter(distribution)


def test_fisher_yates_is_a_permutation():
    items = list(range(20))
    shuffled = fisher_yates_shuffle(list(items), random.Random(3))
    assert sorted(shuffled) == items


def test_resolve_votes_plurality(seat_of):
    votes = [Vote(voter="a", target="c"), Vote(voter="b", target="c"), Vote(voter="c", target="a")]
    assert resolve_votes(votes, seat_of) == "c"
    assert tally_votes(votes) == {"c": 2, "a": 1}


def test_resolve_votes_tie_goes_to_lowest_seat(seat_of):
    votes = [
        Vote(voter="a", target="d"),
        Vote(voter="b", target="b"),
        Vote(voter="c", target="d"),
        Vote(voter="d", target="b"),
    ]
    assert resolve_votes(votes, seat_of) == "b"


def test_resolve_votes_without_votes(seat_of):
    assert resolve_votes([], seat_of) is None


@pytest.mark.parametrize(
    "wolves, villagers, expected",
    [
        (0, 5, Faction.VILLAGER),
        (0, 0, Faction.VILLAGER),
        (2, 2, Faction.WEREWOLF),
        (3, 2, Faction.WEREWOLF),
        (1, 2, None),
    ],
)
def test_check_win_condition(wolves, villagers, expected):
    assert check_win_condition(wolves, villagers) == expected


def test_night_kill_without_protection(seat_of, faction_of):
    outcome = resolve_night_actions(
        [NightAction(actor="b", action=NightActionType.KILL, target="c")],
        day=1,
        seat_of=seat_of,
        faction_of=faction_of,
    )
    assert outcome.attacked == "c"
    assert outcome.deaths == ["c"]
    assert not outcome.saved


def test_guard_protection_cancels_kill(seat_of, faction_of):
    outcome = resolve_night_actions(
        [
            NightAction(actor="b", action=NightActionType.KILL, target="c"),
            NightAction(actor="d", action=NightActionType.PROTECT, target="c"),
        ],
        day=1,
        seat_of=seat_of,
        faction_of=faction_of,
    )
    assert outcome.deaths == []
    assert outcome.saved


def test_untargeted_heal_saves_whoever_was_attacked(seat_of, faction_of):
    outcome = resolve_night_actions(
        [
            NightAction(actor="b", action=NightActionType.KILL, target="d"),
            NightAction(actor="a", action=NightActionType.HEAL, target=None),
        ],
        day=2,
        seat_of=seat_of,
        faction_of=faction_of,
    )
    assert outcome.healed == "d"
    assert outcome.deaths == []


def test_heal_on_wrong_player_does_nothing(seat_of, faction_of):
    outcome = resolve_night_actions(
        [
            NightAction(actor="b", action=NightActionType.KILL, target="d"),
            NightAction(actor="a", action=NightActionType.HEAL, target="c"),
        ],
        day=2,
        seat_of=seat_of,
        faction_of=faction_of,
    )
    assert outcome.healed is None
    assert outcome.deaths == ["d"]


def test_poison_kills_through_protection(seat_of, faction_of):
    outcome = resolve_night_actions(
        [
            NightAction(actor="a", action=NightActionType.POISON, target="c"),
            NightAction(actor="d", action=NightActionType.PROTECT, target="c"),
        ],
        day=1,
        seat_of=seat_of,
        faction_of=faction_of,
    )
    assert outcome.deaths == ["c"]
    assert outcome.poisoned == "c"


def test_attacked_and_poisoned_player_dies_once(seat_of, faction_of):
    outcome = resolve_night_actions(
        [
            NightAction(actor="b", action=NightActionType.KILL, target="c"),
            NightAction(actor="a", action=NightActionType.POISON, target="c"),
        ],
        day=1,
        seat_of=seat_of,
        faction_of=faction_of,
    )
    assert outcome.deaths == ["c"]


def test_split_wolf_vote_breaks_tie_by_seat(seat_of, faction_of):
    outcome = resolve_night_actions(
        [
            NightAction(actor="b", action=NightActionType.KILL, target="d"),
            NightAction(actor="x", action=NightActionType.KILL, target="c"),
        ],
        day=1,
        seat_of=seat_of,
        faction_of=faction_of,
    )
    assert outcome.attacked == "c"


def test_seer_check_reports_true_faction(seat_of, faction_of):
    outcome = resolve_night_actions(
        [NightAction(actor="a", action=NightActionType.CHECK, target="b")],
        day=1,
        seat_of=seat_of,
        faction_of=faction_of,
    )
    assert len(outcome.checks) == 1
    assert outcome.checks[0].faction == Faction.WEREWOLF
    assert outcome.deaths == []
