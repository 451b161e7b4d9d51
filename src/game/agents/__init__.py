"""
Decision-making for agent-controlled players.

- speech: keyword heuristics for reading statements
- belief: per-agent suspicion / trust / faction estimates
- strategy: night actions, votes and speech plans from beliefs
- agent: the per-player bundle the orchestrator talks to
"""

from .agent import Agent
from .belief import BeliefModel, Evidence, EvidenceType
from .speech import SpeechAnalysis, analyze_speech, assess_suspicion
from .strategy import (
    SpeechStrategy,
    Strategy,
    StrategySelector,
    StrategyType,
    VotingStrategy,
)

__all__ = [
    "Agent",
    "BeliefModel",
    "Evidence",
    "EvidenceType",
    "SpeechAnalysis",
    "SpeechStrategy",
    "Strategy",
    "StrategySelector",
    "StrategyType",
    "VotingStrategy",
    "analyze_speech",
    "assess_suspicion",
]
