"""
Tools module containing utility functions and tools.
"""

from .llm import (
    Endpoint,
    RetryPolicy,
    TextGenerationError,
    TextGenerationService,
    build_text_service,
    create_llm,
    require_llm_provider_api_key,
)
from .graph_viz import save_graph_image

__all__ = [
    "Endpoint",
    "RetryPolicy",
    "TextGenerationError",
    "TextGenerationService",
    "build_text_service",
    "create_llm",
    "require_llm_provider_api_key",
    "save_graph_image",
]
