"""Exception types raised by the game core."""

from __future__ import annotations


class GameLogicError(ValueError):
    """Raised when an operation is illegal for the current game state.

    The rejected operation never mutates the game; callers may report the
    message to the player and carry on.
    """
