from __future__ import annotations

from pathlib import Path
from typing import Protocol

from src.game.logger import get_logger

logger = get_logger(__name__)


class _GraphLike(Protocol):
    def draw_mermaid(self) -> str: ...

    def draw_mermaid_png(self) -> bytes: ...


class _AppLike(Protocol):
    def get_graph(self, *, xray: bool = False) -> _GraphLike: ...


def save_graph_image(
    app: _AppLike, filename: str | Path = "graph.png", *, xray: bool = False
) -> Path:
    """Render a compiled LangGraph app to PNG.

    Rendering goes through the Mermaid web service; when it is unreachable the
    Mermaid source is written next to the requested file (``.mmd``) instead.
    """
    output_path = Path(filename)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    graph = app.get_graph(xray=xray)
    try:
        png_bytes = graph.draw_mermaid_png()
    except ValueError as exc:
        logger.warning("PNG rendering unavailable, writing Mermaid source: %s", exc)
        source_path = output_path.with_suffix(".mmd")
        source_path.write_text(graph.draw_mermaid(), encoding="utf-8")
        return source_path

    output_path.write_bytes(png_bytes)
    logger.info("Graph saved to %s", output_path)
    return output_path
