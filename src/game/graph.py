"""
LangGraph workflow for a Howl werewolf game.

The graph mirrors the engine's phase machine: one node per phase, each
delegating to the ``Orchestrator``, and a single router that reads the phase
the engine reports after every node.

Architecture:
- StateGraph carries a small, serializable progress record (phase, day,
  winner and an event log); the authoritative game state stays in the engine
- Conditional edges route from every phase node back through the router
- Concurrency lives inside the nodes (the orchestrator gathers agent calls)
"""

from __future__ import annotations

import asyncio
import operator
import random
from functools import partial
from typing import Annotated, List, Optional, TypedDict

from langchain_core.runnables import RunnableConfig
from langgraph.checkpoint.memory import MemorySaver
from langgraph.constants import START
from langgraph.graph import END, StateGraph

from src.tools.graph_viz import save_graph_image

from .dependencies import GameDependencies, build_dependencies
from .engine import GameEngine
from .logger import get_logger
from .orchestrator import HumanController, Orchestrator
from .state import GamePhase, GameState

logger = get_logger(__name__)

DEFAULT_MAX_DAYS = 30

_NODE_BY_PHASE = {
    GamePhase.PREPARATION.value: "setup",
    GamePhase.NIGHT.value: "night",
    GamePhase.DAY_DISCUSSION.value: "day_discussion",
    GamePhase.VOTING.value: "voting",
    GamePhase.LAST_WORDS.value: "last_words",
    GamePhase.GAME_OVER.value: "result",
}


class GraphState(TypedDict, total=False):
    game_id: str
    phase: str
    day: int
    winner: Optional[str]
    max_days: int
    events: Annotated[List[str], operator.add]


def _progress(orchestrator: Orchestrator, event: str) -> GraphState:
    engine = orchestrator.engine
    return {
        "phase": engine.phase.value,
        "day": engine.day,
        "winner": engine.winner.value if engine.winner else None,
        "events": [event],
    }


async def setup_node(state: GraphState, *, orchestrator: Orchestrator) -> GraphState:
    snapshot = orchestrator.setup()
    return _progress(orchestrator, f"setup: {len(snapshot.players)} players seated")


async def night_node(state: GraphState, *, orchestrator: Orchestrator) -> GraphState:
    day = orchestrator.engine.day
    outcome = await orchestrator.run_night()
    deaths = outcome.deaths if outcome else []
    return _progress(orchestrator, f"night {day}: deaths={deaths}")


async def discussion_node(state: GraphState, *, orchestrator: Orchestrator) -> GraphState:
    day = orchestrator.engine.day
    speeches = await orchestrator.run_discussion()
    return _progress(orchestrator, f"day {day}: {len(speeches)} speeches")


async def voting_node(state: GraphState, *, orchestrator: Orchestrator) -> GraphState:
    day = orchestrator.engine.day
    result = await orchestrator.run_voting()
    eliminated = result.eliminated if result else None
    return _progress(orchestrator, f"vote {day}: eliminated={eliminated}")


async def last_words_node(state: GraphState, *, orchestrator: Orchestrator) -> GraphState:
    speech = await orchestrator.run_last_words()
    speaker = speech.speaker if speech else None
    return _progress(orchestrator, f"last words: {speaker}")


async def result_node(state: GraphState, *, orchestrator: Orchestrator) -> GraphState:
    forced = orchestrator.engine.phase != GamePhase.GAME_OVER
    orchestrator.finish(force=forced)
    winner = orchestrator.engine.winner
    return _progress(orchestrator, f"result: {winner.value if winner else 'no winner'}")


def route_from_phase(state: GraphState) -> str:
    """Pick the node for the engine's current phase.

    Past the day cap the game is sent to ``result`` regardless of phase;
    unknown phases also end up there.
    """
    if state.get("day", 0) > state.get("max_days", DEFAULT_MAX_DAYS):
        return "result"
    return _NODE_BY_PHASE.get(state.get("phase", ""), "result")


def build_workflow(orchestrator: Orchestrator, *, checkpointer=None):
    """Build the compiled LangGraph app driving ``orchestrator``."""
    workflow = StateGraph(GraphState)

    workflow.add_node("setup", partial(setup_node, orchestrator=orchestrator))
    workflow.add_node("night", partial(night_node, orchestrator=orchestrator))
    workflow.add_node("day_discussion", partial(discussion_node, orchestrator=orchestrator))
    workflow.add_node("voting", partial(voting_node, orchestrator=orchestrator))
    workflow.add_node("last_words", partial(last_words_node, orchestrator=orchestrator))
    workflow.add_node("result", partial(result_node, orchestrator=orchestrator))

    routes = {name: name for name in _NODE_BY_PHASE.values()}
    workflow.add_conditional_edges(START, route_from_phase, routes)
    for name in ("setup", "night", "day_discussion", "voting", "last_words"):
        workflow.add_conditional_edges(name, route_from_phase, routes)
    workflow.add_edge("result", END)

    memory = checkpointer or MemorySaver()
    app = workflow.compile(checkpointer=memory)
    # A game takes three or four nodes per day
    app = app.with_config({"recursion_limit": 500})
    return app


def create_orchestrator(
    deps: GameDependencies,
    *,
    human: HumanController | None = None,
    game_id: str | None = None,
    seed: int | None = None,
) -> Orchestrator:
    rng = random.Random(seed)
    engine = GameEngine(deps.config.to_game_config(), rng=rng)
    return Orchestrator(
        engine,
        text_service=deps.text_service,
        recorder=deps.recorder,
        human=human,
        game_id=game_id,
        rng=rng,
    )


async def run_game(
    deps: GameDependencies | None = None,
    *,
    human: HumanController | None = None,
    game_id: str | None = None,
    seed: int | None = None,
    max_days: int = DEFAULT_MAX_DAYS,
) -> GameState:
    """Play one full game through the workflow and return the final state."""
    deps = deps or build_dependencies()
    orchestrator = create_orchestrator(deps, human=human, game_id=game_id, seed=seed)
    app = build_workflow(orchestrator)

    initial_state: GraphState = {
        "game_id": orchestrator.game_id,
        "phase": orchestrator.engine.phase.value,
        "day": orchestrator.engine.day,
        "winner": None,
        "max_days": max_days,
        "events": [],
    }
    langgraph_config = RunnableConfig(
        configurable={"thread_id": orchestrator.game_id},
    )
    result = await app.ainvoke(initial_state, config=langgraph_config)
    logger.debug("Workflow events: %s", result.get("events"))
    return orchestrator.engine.snapshot()


async def _checked_run(deps: GameDependencies) -> GameState:
    if deps.text_service is not None:
        health = await deps.text_service.check_endpoints()
        dead = [name for name, ok in health.items() if not ok]
        if dead:
            print(f"  Unreachable endpoints: {', '.join(dead)}")
        if len(dead) == len(health):
            print("  No endpoint answered; agents will rely on heuristics.")
    return await run_game(deps)


def main():
    """Simulate one game from ``config.yaml`` with a passive human seat."""
    deps = build_dependencies()
    config = deps.config

    print("Game Configuration:")
    print(f"  Player count: {config.total_players}")
    print(f"  LLM: {'enabled' if deps.text_service else 'heuristics only'}")
    print(f"  Recorder: {'enabled' if deps.recorder.enabled else 'disabled'}")

    orchestrator = create_orchestrator(deps)
    save_graph_image(build_workflow(orchestrator), filename="artifacts/howl_graph.png")

    final_state = asyncio.run(_checked_run(deps))
    print(f"Winner: {final_state.winner.value if final_state.winner else 'none'} after {final_state.day} days")
    for record in final_state.eliminations:
        print(f"  day {record.day}: {record.player_id} ({record.cause.value})")


if __name__ == "__main__":
    main()
