"""
Test coverage for game state structures and utility functions
"""

import pytest
from pydantic import ValidationError

from src.game.state import (
    ROLE_NIGHT_ACTIONS,
    Faction,
    GamePhase,
    NightActionType,
    NightOutcome,
    Personality,
    RoleType,
    alive_players,
    all_players,
    clamp,
    count_alive_by_faction,
    create_role,
    find_player,
    speeches_for_day,
    Speech,
)


class TestRoles:
    """Role cards and their capabilities"""

    def test_werewolf_role(self):
        role = create_role(RoleType.WEREWOLF)
        assert role.faction == Faction.WEREWOLF
        assert role.has_night_action
        assert role.can_vote

    def test_villager_side_roles(self):
        for role_type in (RoleType.VILLAGER, RoleType.SEER, RoleType.WITCH, RoleType.HUNTER, RoleType.GUARD):
            assert create_role(role_type).faction == Faction.VILLAGER

    def test_night_capabilities_follow_table(self):
        for role_type in RoleType:
            role = create_role(role_type)
            assert role.has_night_action == (role_type in ROLE_NIGHT_ACTIONS)
        assert ROLE_NIGHT_ACTIONS[RoleType.WITCH] == {NightActionType.HEAL, NightActionType.POISON}

    def test_roles_are_frozen(self):
        role = create_role(RoleType.SEER)
        with pytest.raises(ValidationError):
            role.can_vote = False

    def test_role_from_string_value(self):
        assert create_role("guard").role_type == RoleType.GUARD


class TestPersonality:
    def test_traits_are_bounded(self):
        with pytest.raises(ValidationError):
            Personality(id="x", name="x", logic=1.5)

    def test_nudge_clamps_high_and_low(self):
        personality = Personality(id="x", name="x", deception=0.95, patience=0.05)
        assert personality.nudge("deception", 0.3) == 1.0
        assert personality.nudge("patience", -0.3) == 0.0
        assert personality.traits()["deception"] == 1.0

    def test_nudge_unknown_trait(self):
        with pytest.raises(KeyError):
            Personality(id="x", name="x").nudge("charisma", 0.1)


class TestHelpers:
    def test_clamp(self):
        assert clamp(-0.2) == 0.0
        assert clamp(1.7) == 1.0
        assert clamp(0.4) == 0.4

    def test_alive_and_all_players(self, make_state):
        state = make_state([RoleType.VILLAGER, RoleType.WEREWOLF, RoleType.SEER])
        dead = state.players.pop(1)
        dead.is_alive = False
        state.dead_players.append(dead)

        assert [p.id for p in alive_players(state)] == ["p0", "p2"]
        assert [p.id for p in all_players(state)] == ["p0", "p1", "p2"]
        assert find_player(state, "p1").is_alive is False
        assert find_player(state, "nobody") is None

    def test_count_alive_by_faction(self, make_state):
        state = make_state(
            [RoleType.VILLAGER, RoleType.WEREWOLF, RoleType.WEREWOLF, RoleType.WITCH]
        )
        assert count_alive_by_faction(state) == {Faction.WEREWOLF: 2, Faction.VILLAGER: 2}

    def test_speeches_for_day(self, make_state):
        state = make_state([RoleType.VILLAGER, RoleType.WEREWOLF], day=2)
        state.speeches = [
            Speech(day=1, phase=GamePhase.DAY_DISCUSSION, speaker="p0", content="old"),
            Speech(day=2, phase=GamePhase.DAY_DISCUSSION, speaker="p1", content="new"),
        ]
        assert [s.content for s in speeches_for_day(state)] == ["new"]
        assert [s.content for s in speeches_for_day(state, 1)] == ["old"]

    def test_night_outcome_saved(self):
        assert NightOutcome(day=1, attacked="p1", healed="p1").saved
        assert not NightOutcome(day=1, attacked="p1", deaths=["p1"]).saved
        assert not NightOutcome(day=1).saved
