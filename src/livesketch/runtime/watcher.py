"""
File Watcher

Tracks the sketch file and the local modules it imports by modification
time. A file counts as changed when its current mtime is greater than the
last one seen; a tracked file that can no longer be stat'ed is fatal, since
the file on disk is the only source of truth for the running sketch.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..exceptions import TrackedFileError
from ..logging_config import configure_logger_for_debug_trace

logger = configure_logger_for_debug_trace(__name__)


@dataclass
class TrackedFile:
    """
    A tracked path and what was last seen of it.

    ::: This is-in-layer Utility-Layer.
    ::: This is a value-object.
    """
    path: Path
    mtime: float
    size: int


class FileWatcher:
    """
    mtime-based watcher over a set of files.

    ::: This is-in-layer Infrastructure-Layer.
    ::: This is a adapter.
    ::: This is stateful.
    """

    def __init__(self):
        self._files: Dict[Path, TrackedFile] = {}

    def __contains__(self, path) -> bool:
        return Path(path).resolve() in self._files

    def __len__(self) -> int:
        return len(self._files)

    @property
    def paths(self) -> List[Path]:
        return list(self._files)

    def track(self, path: Union[str, Path]) -> TrackedFile:
        """
        Start tracking ``path``; tracking an already tracked file keeps its state.

        Raises:
            TrackedFileError: If the file cannot be stat'ed
        """
        resolved = Path(path).resolve()
        if resolved in self._files:
            return self._files[resolved]
        mtime, size = self._stat(resolved)
        tracked = TrackedFile(resolved, mtime, size)
        self._files[resolved] = tracked
        logger.debug(f"Tracking {resolved} (mtime={mtime})")
        return tracked

    def untrack(self, path: Union[str, Path]) -> None:
        self._files.pop(Path(path).resolve(), None)

    def get(self, path: Union[str, Path]) -> Optional[TrackedFile]:
        return self._files.get(Path(path).resolve())

    def poll(self) -> List[Path]:
        """
        Stat every tracked file once and return the ones that changed.

        Files are checked, and reported, in the order they were tracked.

        Raises:
            TrackedFileError: If a tracked file went missing or is unreadable
        """
        changed = []
        for tracked in self._files.values():
            mtime, size = self._stat(tracked.path)
            if mtime > tracked.mtime:
                tracked.mtime = mtime
                tracked.size = size
                changed.append(tracked.path)
        if changed:
            logger.debug(f"Changed files: {[str(p) for p in changed]}")
        return changed

    @staticmethod
    def _stat(path: Path):
        try:
            stat = path.stat()
        except OSError as e:
            raise TrackedFileError(str(path), e.strerror or str(e)) from e
        return stat.st_mtime, stat.st_size
