"""
Lightweight dependency container for wiring runtime services into a game.

Instead of relying on module-level singletons, the collaborators a game needs
(validated configuration, the event recorder and the optional text-generation
service) are bundled into a simple data class and passed explicitly. This
makes it trivial to spin up several isolated games for tests or concurrent
simulations.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from src.tools.llm import TextGenerationService, build_text_service, require_llm_provider_api_key

from .config import ProjectConfig, load_config
from .logger import get_logger
from .recorder import GameRecorder

logger = get_logger(__name__)


@dataclass(slots=True)
class GameDependencies:
    """Container object that holds the runtime services a game needs."""

    config: ProjectConfig
    recorder: GameRecorder
    text_service: Optional[TextGenerationService] = None


def build_dependencies(
    *,
    config: ProjectConfig | None = None,
    recorder: GameRecorder | None = None,
    text_service: TextGenerationService | None = None,
    config_path: str | Path | None = None,
) -> GameDependencies:
    """
    Construct a ``GameDependencies`` instance.

    Args:
        config: Optional pre-built ``ProjectConfig``.
        recorder: Optional ``GameRecorder`` (useful for sharing across games).
        text_service: Optional pre-built text-generation service. When omitted
            and the ``llm`` section is enabled, one is built from configuration.
        config_path: Optional config path when ``config`` is not supplied.
    """
    cfg = config or load_config(config_path)
    collector = recorder or GameRecorder(
        cfg.recorder_output_dir, enabled=cfg.recorder_enabled
    )

    service = text_service
    if service is None and cfg.llm_enabled:
        try:
            require_llm_provider_api_key(cfg.llm.provider)
        except RuntimeError as exc:
            logger.warning("LLM disabled, agents will use heuristics only: %s", exc)
        else:
            service = build_text_service(cfg.llm)

    return GameDependencies(config=cfg, recorder=collector, text_service=service)
