"""Core utilities for the extraction assistant.

Submodules are imported directly (e.g. vsme_assistant.core.response_parser);
only the leaf modules with no package-internal dependencies are re-exported
here.
"""

from vsme_assistant.core.cost_tracker import CostTracker
from vsme_assistant.core.errors import PipelineErrors, VSMEAssistantError
from vsme_assistant.core.pipeline_logger import PipelineLogger, get_logger

__all__ = [
    "CostTracker",
    "PipelineErrors",
    "PipelineLogger",
    "VSMEAssistantError",
    "get_logger",
]
