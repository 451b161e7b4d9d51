"""
Pydantic models for structured replies from the text-generation service.

Kept apart from the game state so parsing can be strict without the engine
ever depending on model output.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .state import NightActionType


class NightActionDecision(BaseModel):
    """A night decision as requested in the night-action prompt."""

    action: NightActionType
    target: Optional[str] = Field(default=None, description="ID of the chosen player.")

    @field_validator("action", mode="before")
    @classmethod
    def _normalize_action(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("target", mode="before")
    @classmethod
    def _normalize_target(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if value.lower() in ("", "null", "none"):
                return None
            return value
        return value
