"""
livesketch - live reloading for Python sketches

Watches a sketch file while it runs and swaps edited event functions,
methods, classes and imports into the running sketch without restarting it,
falling back to a full reset when the edit touches setup or sketch state.
"""

__version__ = "0.1.0"

from .config import SketchConfig, load_config
from .exceptions import (
    GrammarMismatchError,
    LiveSketchError,
    PatchError,
    PathSyntaxError,
    SketchRuntimeError,
    TrackedFileError,
)
from .reload import InterpreterState, ReloadOrchestrator
from .runtime import RecordingRenderer

__all__ = [
    "SketchConfig",
    "load_config",
    "GrammarMismatchError",
    "LiveSketchError",
    "PatchError",
    "PathSyntaxError",
    "SketchRuntimeError",
    "TrackedFileError",
    "InterpreterState",
    "ReloadOrchestrator",
    "RecordingRenderer",
]
