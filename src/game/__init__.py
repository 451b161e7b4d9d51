"""
Game module containing the core game logic.

Only the dependency-free core is imported here; ``orchestrator`` and
``graph`` pull in the LLM tooling and are imported explicitly.
"""

from . import state
from . import rules
from . import engine
from . import config
from .engine import GameEngine
from .errors import GameLogicError

__all__ = ["state", "rules", "engine", "config", "GameEngine", "GameLogicError"]
