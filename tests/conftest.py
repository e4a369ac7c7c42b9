"""
Shared pytest fixtures for livesketch tests.

Provides a headless renderer, a test configuration, an orchestrator wired to
both, and a helper for writing sketch files whose modification time moves
forward on every write.
"""

import io
import os
import sys
from pathlib import Path

# keep the trace log out of the working directory
os.environ["LIVESKETCH_DEBUG_LOG"] = ""

import pytest
from rich.console import Console

from livesketch.config import SketchConfig
from livesketch.console import DiagnosticsConsole
from livesketch.reload import ReloadOrchestrator
from livesketch.runtime import RecordingRenderer


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """
    Clear LIVESKETCH_* variables for each test.

    ConfigLoader writes straight into os.environ, so the environment is
    restored after every test.
    """
    for name in list(os.environ):
        if name.startswith("LIVESKETCH_") and name != "LIVESKETCH_DEBUG_LOG":
            monkeypatch.delenv(name)
    saved = dict(os.environ)
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture
def isolated_imports(monkeypatch, tmp_path):
    """
    Let sketches extend sys.path and import local modules without leaking
    them into other tests.
    """
    monkeypatch.setattr(sys, "path", list(sys.path))
    yield
    for name, module in list(sys.modules.items()):
        module_file = getattr(module, "__file__", None)
        if module_file and Path(module_file).resolve().is_relative_to(tmp_path.resolve()):
            del sys.modules[name]


@pytest.fixture
def renderer():
    return RecordingRenderer(width=200, height=100)


@pytest.fixture
def config():
    return SketchConfig.for_testing()


@pytest.fixture
def console_output():
    return io.StringIO()


@pytest.fixture
def console(console_output):
    return DiagnosticsConsole(verbose=True, console=Console(file=console_output, width=120))


@pytest.fixture
def orchestrator(renderer, config, console):
    return ReloadOrchestrator(renderer=renderer, config=config, console=console)


@pytest.fixture
def render(orchestrator):
    """Run one frame of the render loop and return what was drawn."""
    def _render():
        orchestrator.renderer.begin_frame()
        orchestrator.on_update()
        orchestrator.on_draw()
        return orchestrator.renderer.end_frame()
    return _render


class SketchFiles:
    """Writes files under a directory, moving each file's mtime forward on every write."""

    def __init__(self, root: Path):
        self.root = root
        self._clock = 1_700_000_000

    def write(self, name: str, text: str) -> Path:
        path = self.root / name
        path.write_text(text, encoding="utf-8")
        # whole seconds so cached bytecode of imported modules is invalidated too
        self._clock += 10
        os.utime(path, (self._clock, self._clock))
        return path


@pytest.fixture
def sketch_files(tmp_path, isolated_imports):
    return SketchFiles(tmp_path)
