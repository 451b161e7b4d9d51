"""
Configuration management for the Howl werewolf game.

A user-provided ``config.yaml`` is layered over built-in defaults and the
merged result is validated with Pydantic models, so configuration errors
surface with clear messages at startup rather than mid-game.

Configuration precedence:
1. Built-in defaults defined in ``DEFAULT_CONFIG``.
2. Values provided in ``config.yaml`` (or a custom path passed to
   ``get_config`` / ``load_config``), merged over the defaults.
3. Pydantic model defaults for any fields still unset after the merge.
"""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .logger import get_logger
from .state import GameConfig, RoleType

logger = get_logger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when configuration cannot be loaded or validated."""


DEFAULT_CONFIG: Dict[str, Any] = {
    "game": {
        "total_players": 8,
        "discussion_time": 300,
        "voting_time": 60,
        "last_words": False,
        "human_name": "Guest",
        "agent_names": [
            "Alice",
            "Bob",
            "Charlie",
            "Diana",
            "Ethan",
            "Fiona",
            "George",
            "Hannah",
            "Ivan",
            "Julia",
            "Kevin",
            "Luna",
            "Marcus",
            "Nora",
            "Oscar",
        ],
    },
    "llm": {
        "enabled": False,
        "provider": None,
        "model": None,
        "temperature": None,
        "timeout": 30,
        "max_tokens": 256,
        "retry": {"max_attempts": 3, "base_delay": 1.0, "max_delay": 30.0},
        "fallbacks": [],
    },
    "recorder": {"enabled": False, "output_dir": "logs/games"},
}


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries without mutating the inputs."""
    result: Dict[str, Any] = {}
    for key in base.keys() | overrides.keys():
        base_value = base.get(key)
        override_value = overrides.get(key)

        if isinstance(base_value, dict) and isinstance(override_value, dict):
            result[key] = _deep_merge(base_value, override_value)
        elif override_value is not None:
            result[key] = override_value
        else:
            result[key] = deepcopy(base_value)
    return result


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML data from the provided path."""
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Failed to parse configuration file at {path}: {exc}"
        ) from exc

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file at {path} must contain a top-level mapping."
        )

    return data


class GameModel(BaseModel):
    """Pydantic model for the game section."""

    total_players: int = Field(default=8, ge=1)
    role_distribution: Dict[RoleType, int] = Field(default_factory=dict)
    discussion_time: int = Field(default=300, ge=0)
    voting_time: int = Field(default=60, ge=0)
    last_words: bool = False
    human_name: str = "Guest"
    agent_names: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_game(self) -> "GameModel":
        if self.role_distribution:
            if any(count < 0 for count in self.role_distribution.values()):
                raise ValueError("role_distribution counts cannot be negative")
            if sum(self.role_distribution.values()) != self.total_players:
                raise ValueError("role_distribution must add up to total_players")
            if not self.role_distribution.get(RoleType.WEREWOLF):
                raise ValueError("role_distribution needs at least one werewolf")

        if len(set(self.agent_names)) != len(self.agent_names):
            raise ValueError("Agent names must be unique")
        if len(self.agent_names) < self.total_players - 1:
            raise ValueError(
                "Agent name pool is smaller than the number of agent seats"
            )
        return self


class RetryModel(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=30.0, ge=0.0)

    @model_validator(mode="after")
    def validate_delays(self) -> "RetryModel":
        if self.base_delay > self.max_delay:
            raise ValueError("base_delay cannot exceed max_delay")
        return self


class EndpointModel(BaseModel):
    """A fallback text-generation endpoint."""

    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = None


class LLMConfigModel(EndpointModel):
    """Pydantic model for the llm section; the top-level fields are the primary endpoint."""

    enabled: bool = False
    timeout: float = Field(default=30, gt=0)
    max_tokens: int = Field(default=256, ge=1)
    retry: RetryModel = Field(default_factory=RetryModel)
    fallbacks: List[EndpointModel] = Field(default_factory=list)


class RecorderConfigModel(BaseModel):
    """Configuration for the optional game recorder."""

    enabled: bool = False
    output_dir: str = "logs/games"


class ProjectConfigModel(BaseModel):
    """Top-level Pydantic model for project configuration."""

    game: GameModel = Field(default_factory=GameModel)
    llm: LLMConfigModel = Field(default_factory=LLMConfigModel)
    recorder: RecorderConfigModel = Field(default_factory=RecorderConfigModel)


class ProjectConfig:
    """Validated configuration for a Howl process."""

    def __init__(self, config_path: str | Path | None = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML configuration file. If None, uses defaults.
        """
        self.config_path = Path(config_path).expanduser() if config_path else None
        self._config = self._load_config()

    def _load_config(self) -> ProjectConfigModel:
        """Load configuration from file, merge with defaults, and validate."""
        user_config: Dict[str, Any] = {}

        if self.config_path and self.config_path.exists():
            user_config = _load_yaml(self.config_path)

        merged = _deep_merge(deepcopy(DEFAULT_CONFIG), user_config)

        try:
            return ProjectConfigModel.model_validate(merged)
        except ValidationError as exc:
            detail = exc.errors()
            location = self.config_path or "built-in defaults"
            raise ConfigurationError(
                f"Invalid configuration in {location}: {detail}"
            ) from exc

    @property
    def model(self) -> ProjectConfigModel:
        return self._config

    @property
    def total_players(self) -> int:
        return self._config.game.total_players

    @property
    def llm(self) -> LLMConfigModel:
        return self._config.llm

    @property
    def llm_enabled(self) -> bool:
        return self._config.llm.enabled

    @property
    def recorder_enabled(self) -> bool:
        return self._config.recorder.enabled

    @property
    def recorder_output_dir(self) -> Path:
        path = Path(self._config.recorder.output_dir).expanduser()
        if not path.is_absolute():
            path = Path(__file__).resolve().parents[2] / path
        return path

    def to_game_config(self) -> GameConfig:
        """Build the engine-facing ``GameConfig``."""
        game = self._config.game
        return GameConfig(
            total_players=game.total_players,
            role_distribution=dict(game.role_distribution),
            discussion_time=game.discussion_time,
            voting_time=game.voting_time,
            last_words=game.last_words,
            agent_names=list(game.agent_names),
            human_name=game.human_name,
        )


# Global configuration instance
_config_instance: ProjectConfig | None = None


def _default_config_path() -> Path:
    return Path(__file__).resolve().parents[2] / "config.yaml"


def load_config(config_path: str | Path | None = None) -> ProjectConfig:
    """Build a fresh, non-global configuration (handy for tests and parallel games)."""
    return ProjectConfig(config_path if config_path is not None else _default_config_path())


def get_config(config_path: str | Path | None = None) -> ProjectConfig:
    """
    Get the global configuration instance.

    Args:
        config_path: Path to configuration file. If None, uses default location.
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = load_config(config_path)
        logger.debug("Loaded configuration from %s", _config_instance.config_path)

    return _config_instance


def reload_config(config_path: str | Path | None = None) -> ProjectConfig:
    """Drop the cached configuration and load it again."""
    global _config_instance
    _config_instance = None
    return get_config(config_path)
