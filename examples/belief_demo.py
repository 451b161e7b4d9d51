"""
Example script showing how agents read a day of table talk.

This script shows how to:
1. Deal a fixed 8-player game
2. Feed a few statements and votes to one agent
3. Inspect the resulting belief report and the agent's next decisions

Usage:
    python examples/belief_demo.py
"""

import random

from src.game.agents import Agent
from src.game.engine import GameEngine
from src.game.state import GameConfig, RoleType

DECK = [
    RoleType.VILLAGER,
    RoleType.WEREWOLF,
    RoleType.WEREWOLF,
    RoleType.WEREWOLF,
    RoleType.SEER,
    RoleType.WITCH,
    RoleType.VILLAGER,
    RoleType.VILLAGER,
]

TABLE_TALK = [
    ("ai_1", "Obviously it's Fiona, trust me, I'm not lying to you."),
    ("ai_4", "Last night I checked Bob. Bob is a werewolf, vote him out."),
    ("ai_2", "Why suspect me? I'm a villager, you're wrong about this."),
    ("ai_6", "Pass."),
]

VOTES = [("ai_1", "ai_4"), ("ai_2", "ai_4"), ("ai_4", "ai_2"), ("ai_6", "ai_2")]


def main():
    engine = GameEngine(GameConfig(total_players=len(DECK)), rng=random.Random(42))
    engine.initialize(DECK)
    engine.start()
    engine.advance_phase()
    state = engine.snapshot()

    watcher = next(p for p in state.players if p.id == "ai_7")
    agent = Agent(watcher, rng=random.Random(1))
    agent.initialize(state)

    print(f"Watching as {watcher.name} ({watcher.role.role_type.value})")
    for speaker, line in TABLE_TALK:
        analysis = agent.observe_speech(state.day, speaker, line)
        print(f"  {speaker}: {analysis.intent.value:<11} {analysis.emotion:<9} credibility={analysis.credibility:.2f}")

    for voter, target in VOTES:
        agent.observe_vote(state.day, voter, target)

    report = agent.report()
    print("\nBelief report:")
    for entry in report.players:
        print(
            f"  {entry.player_id}: werewolf={entry.werewolf_probability:.2f} "
            f"suspicion={entry.suspicion:.2f} trust={entry.trust:.2f}"
        )
    print(f"\nMost suspicious: {report.most_suspicious}, most trusted: {report.most_trusted}")
    print(f"Would vote for: {agent.decide_vote(state)}")


if __name__ == "__main__":
    main()
