"""
Runtime collaborators of the reload engine: a headless renderer and a file watcher.
"""

from .renderer import DrawCommand, Frame, RecordingRenderer, sketch_api
from .watcher import FileWatcher, TrackedFile

__all__ = [
    "DrawCommand",
    "Frame",
    "RecordingRenderer",
    "sketch_api",
    "FileWatcher",
    "TrackedFile",
]
