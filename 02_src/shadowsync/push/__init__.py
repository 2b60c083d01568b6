"""PushOrchestrator module."""

from .orchestrator import IPushOrchestrator, PushOrchestrator
from .preview import ChangeLine, PushPreview, PushResult, PushStage, diff_logic

__all__ = [
    "ChangeLine",
    "IPushOrchestrator",
    "PushOrchestrator",
    "PushPreview",
    "PushResult",
    "PushStage",
    "diff_logic",
]
