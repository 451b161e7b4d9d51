import random

from src.game.agents import Agent, EvidenceType
from src.game.state import (
    CheckResult,
    Faction,
    NightOutcome,
    RoleType,
    SpeechType,
)

ROLES = [
    RoleType.VILLAGER,
    RoleType.WEREWOLF,
    RoleType.WEREWOLF,
    RoleType.SEER,
    RoleType.VILLAGER,
    RoleType.VILLAGER,
]
NAMES = ["Guest", "Alice", "Bob", "Carol", "Dave", "Erin"]


def _agent(state, player_id):
    player = next(p for p in state.players if p.id == player_id)
    agent = Agent(player, rng=random.Random(1))
    agent.initialize(state)
    return agent


def test_werewolves_know_their_pack(make_state):
    state = make_state(ROLES, names=NAMES)
    wolf = _agent(state, "p1")
    assert wolf.belief.confirmed_faction("p2") == Faction.WEREWOLF
    assert wolf.belief.confirmed_faction("p3") is None

    villager = _agent(state, "p4")
    assert villager.belief.confirmed_faction("p1") is None


def test_defensive_speech_adds_evidence(make_state):
    state = make_state(ROLES, names=NAMES)
    agent = _agent(state, "p4")
    analysis = agent.observe_speech(1, "p1", "It wasn't me, I'm innocent, trust me.")

    assert analysis.intent == SpeechType.DEFENSE
    kinds = [e.evidence_type for e in agent.belief.nodes["p1"].evidence]
    assert kinds == [EvidenceType.SPEECH_ANALYSIS, EvidenceType.DEFENSIVE_BEHAVIOR]
    assert agent.memory.speeches[-1].speaker == "p1"


def test_own_speech_is_ignored(make_state):
    state = make_state(ROLES, names=NAMES)
    agent = _agent(state, "p4")
    assert agent.observe_speech(1, "p4", "Hello") is None
    assert agent.memory.speeches == []


def test_being_accused_puts_agent_under_pressure(make_state):
    state = make_state(ROLES, names=NAMES)
    agent = _agent(state, "p4")
    agent.observe_speech(1, "p1", "I suspect Dave, he dodged every question.")
    assert 1 in agent.memory.accused_on
    assert agent.plan_speech(state).speech_type == SpeechType.DEFENSE


def test_seer_learns_checks_and_shares_them(make_state):
    state = make_state(ROLES, names=NAMES)
    seer = _agent(state, "p3")
    outcome = NightOutcome(
        day=1,
        attacked="p5",
        deaths=["p5"],
        checks=[CheckResult(seer="p3", target="p2", faction=Faction.WEREWOLF)],
    )
    seer.observe_night_outcome(outcome)

    assert seer.belief.confirmed_faction("p2") == Faction.WEREWOLF
    assert seer.belief.nodes["p5"].eliminated
    plan = seer.plan_speech(state)
    assert plan.speech_type == SpeechType.INFORMATION


def test_votes_feed_belief_and_memory(make_state):
    state = make_state(ROLES, names=NAMES)
    agent = _agent(state, "p4")
    agent.observe_vote(1, "p1", "p4")
    assert agent.memory.votes == [(1, "p1", "p4")]
    assert agent.belief.suspicion("p1") > agent.belief.suspicion("p2")


def test_decisions_are_remembered(make_state):
    state = make_state(ROLES, names=NAMES)
    wolf = _agent(state, "p1")
    action = wolf.decide_night_action(state)
    vote = wolf.decide_vote(state)

    assert action is not None and action.target not in ("p1", "p2")
    assert vote not in (None, "p1", "p2")
    assert [d.kind for d in wolf.memory.decisions] == ["night:kill", "vote"]


def test_report_covers_other_players(make_state):
    state = make_state(ROLES, names=NAMES)
    report = _agent(state, "p4").report()
    assert report.owner_id == "p4"
    assert {p.player_id for p in report.players} == {"p0", "p1", "p2", "p3", "p5"}
