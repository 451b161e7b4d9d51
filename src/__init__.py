"""
Howl: werewolf game engine with belief-tracking agent players.
"""

from . import game
from . import tools

__all__ = [
    "game",
    "tools",
]
