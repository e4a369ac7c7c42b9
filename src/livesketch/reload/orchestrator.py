"""
Reload Orchestrator.

Ties the reload engine together and owns the interpreter state machine::

    NO_SKETCH --load ok--> RUNNING <--reload ok-- ERROR
        |                     |  ^                  ^
        +------load fails-----+--+--handler raises--+

Every detected change of a tracked file is parsed, diffed against the
running version and either patched in place or applied as a full reset.
Syntax and runtime errors never escape: they move the interpreter to ERROR,
where drawing shows the last good frame under the error message while the
file keeps being polled so a fixed script recovers on its own. A tracked file
that disappears is the one fatal condition (TrackedFileError propagates).
"""

import importlib
import sys
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from ..config import SketchConfig
from ..console import DiagnosticsConsole
from ..events import (
    DRAW,
    EXIT,
    KEY_DOWN,
    KEY_PRESSED,
    KEY_UP,
    MOUSE_DOWN,
    MOUSE_DRAGGED,
    MOUSE_MOVED,
    MOUSE_PRESSED,
    MOUSE_UP,
    SETUP,
    UPDATE,
    WINDOW_RESIZED,
    button_name,
)
from ..exceptions import SketchRuntimeError, TrackedFileError
from ..logging_config import (
    configure_logger_for_debug_trace,
    ensure_reload_trace_logger_configured,
    reload_trace_logger,
)
from ..runtime import FileWatcher, Frame, RecordingRenderer, sketch_api
from ..structure import Node, SourceVersion, categorize, diff_versions, extract, parse, statements
from . import patcher
from .environment import RuntimeEnvironment
from .executor import SketchExecutor
from .policy import FullReset, Patch, ReloadDecision, decide

logger = configure_logger_for_debug_trace(__name__)

# Error screen layout
OVERLAY_COLOR = (255, 255, 255, 128)
BAND_COLOR = (255, 255, 255, 255)
TEXT_COLOR = (0, 0, 0, 255)
BAND_HEIGHT = 35
TEXT_MARGIN = 10


class InterpreterState(Enum):
    NO_SKETCH = "no_sketch"
    RUNNING = "running"
    ERROR = "error"


def describe_error(error: BaseException) -> str:
    """One-line message shown on the error screen."""
    original = getattr(error, "original", None)
    if isinstance(error, SketchRuntimeError) and original is not None:
        error = original
    if isinstance(error, SyntaxError) and error.lineno is not None:
        return f"{type(error).__name__}: {error.msg} (line {error.lineno})"
    return f"{type(error).__name__}: {error}"


def imported_modules(tree: Node) -> List[str]:
    """Full dotted names of the modules a sketch imports at top level.

    For ``from pkg import name`` both ``pkg`` and ``pkg.name`` are listed,
    since ``name`` may itself be a submodule.
    """
    names = []
    for statement in statements(tree):
        if statement.tag == "Import":
            names.extend(extract([statement], "Import/names/alias/name/@Identifier"))
        elif statement.tag == "ImportFrom":
            module = extract([statement], "ImportFrom/module/@Identifier")
            if not module:
                continue
            names.append(module[0])
            for alias in extract([statement], "ImportFrom/names/alias/name/@Identifier"):
                if alias != "*":
                    names.append(f"{module[0]}.{alias}")
    return names


class ReloadOrchestrator:
    """
    Drives a sketch through loads, reloads and render loop callbacks.

    ::: This is-in-layer Service-Layer.
    ::: This is a orchestrator.
    ::: This is stateful.
    ::: This depends-on `livesketch.reload.patcher`.

    Front-ends call the ``on_*`` hooks from their render loop; all of them
    run on one thread, so a reload always completes between two frames.

    Attributes:
        state: Current InterpreterState
        version: Active SourceVersion (None before the first successful load)
        env: Active RuntimeEnvironment
        error: Error that moved the interpreter to ERROR
        last_frame: Frame captured before the last full reset or failure
        last_decision: Decision taken by the last reload
    """

    def __init__(
        self,
        renderer: Optional[RecordingRenderer] = None,
        config: Optional[SketchConfig] = None,
        executor: Optional[SketchExecutor] = None,
        console: Optional[DiagnosticsConsole] = None,
        watcher: Optional[FileWatcher] = None,
    ):
        self.config = config or SketchConfig()
        self.renderer = renderer or RecordingRenderer(self.config.width, self.config.height)
        self.executor = executor or SketchExecutor()
        self.console = console or DiagnosticsConsole(verbose=self.config.verbose)
        self.watcher = watcher or FileWatcher()
        ensure_reload_trace_logger_configured()

        self.state = InterpreterState.NO_SKETCH
        self.version: Optional[SourceVersion] = None
        self.env: Optional[RuntimeEnvironment] = None
        self.error: Optional[BaseException] = None
        self.last_frame: Optional[Frame] = None
        self.last_decision: Optional[ReloadDecision] = None

        self.main_path: Optional[Path] = None
        self.filename = "<sketch>"
        self.dependencies: Dict[Path, str] = {}

        self.frame = 0
        self.reload_count = 0
        self._key_held = False
        self._mouse: Optional[Tuple[int, int, str]] = None
        self._before_hooks: Dict[str, List[Callable[[], None]]] = {}
        self._after_hooks: Dict[str, List[Callable[[], None]]] = {}

    # =========================================================================
    # Loading
    # =========================================================================

    def load(self, path_or_text: Union[str, Path]) -> None:
        """
        Establish the first version of a sketch (always a full reset).

        A Path, or a string naming an existing file, is read and tracked for
        changes; its directory is made importable. Any other string is
        sketch source.

        Raises:
            TrackedFileError: If the sketch file cannot be read
        """
        path = self._as_path(path_or_text)
        if path is not None:
            self.main_path = path.resolve()
            self.filename = str(self.main_path)
            self.watcher.track(self.main_path)
            sketch_dir = str(self.main_path.parent)
            if sketch_dir not in sys.path:
                sys.path.insert(0, sketch_dir)
            try:
                text = self._read(self.main_path)
            except UnicodeDecodeError as e:
                self._fail(e, "read")
                return
        else:
            text = str(path_or_text)

        self.version = None
        self._apply(text, forced=True, run_setup=False)

    def reload(self, text: str, forced: bool = False) -> Optional[ReloadDecision]:
        """
        Apply new sketch text to the running sketch.

        Outside RUNNING the reload is always a full reset. Returns the
        decision taken, or None if the text failed to parse or apply.
        """
        return self._apply(text, forced=forced, run_setup=True)

    def check_for_changes(self) -> bool:
        """
        Poll tracked files and reload when any changed.

        A changed dependency module is reloaded first, then the main sketch is
        re-applied so names it imported from the module are rebound.

        Returns:
            True if a change was detected

        Raises:
            TrackedFileError: If a tracked file went missing
        """
        changed = self.watcher.poll()
        if not changed:
            return False

        for path in changed:
            module_name = self.dependencies.get(path)
            if module_name is None:
                continue
            self.console.info(f"Updating {path} in place...")
            if not self._reload_module(module_name):
                return True

        if self.main_path is None:
            return True
        if self.main_path in changed:
            self.console.info(f"Updating {self.main_path} in place...")
        try:
            text = self._read(self.main_path)
        except UnicodeDecodeError as e:
            self._fail(e, "read")
            return True
        self.console.info(f"Reading {self.main_path} ({len(text.encode('utf-8'))}b)")
        self.reload(text)
        return True

    def _apply(self, text: str, forced: bool, run_setup: bool) -> Optional[ReloadDecision]:
        start_time = time.perf_counter()
        self.reload_count += 1

        if self.state is InterpreterState.RUNNING:
            self.last_frame = self.renderer.grab_frame()

        try:
            new = parse(text, self.filename)
        except SyntaxError as e:
            self._fail(e, "parse", capture=False)
            return None

        old = self.version
        if forced or self.state is not InterpreterState.RUNNING:
            old = None

        delta = None
        if old is not None:
            delta = categorize(
                diff_versions(old, new),
                old.structural_tree,
                new.structural_tree,
                self.config.event_names,
            )
        if old is None and self.state is InterpreterState.ERROR:
            decision = FullReset("recovering from error")
        else:
            decision = decide(old, new, delta, self.config.init_event, self.config.event_names)
        self.last_decision = decision

        try:
            if isinstance(decision, Patch):
                patcher.apply(
                    self.env, decision.delta, new, self.executor,
                    self.config.event_names, self.config.globalize, self.config.sigil,
                )
            else:
                self._reset(new, run_setup)
        except SketchRuntimeError as e:
            # the failed version still replaces the old one for the next diff
            self.version = new
            self._fail(e, "reload", capture=False)
            return None

        self.version = new
        self.state = InterpreterState.RUNNING
        self.error = None
        self._track_dependencies(new)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        kind = "patch" if isinstance(decision, Patch) else f"full reset ({decision.reason})"
        reload_trace_logger.debug(f"Reload #{self.reload_count} of {self.filename}: {kind} in {elapsed_ms:.1f}ms")
        if isinstance(decision, Patch):
            logger.info(f"Patched {self.filename}: {decision.delta.summary()}")
        else:
            logger.info(f"Reset {self.filename}: {decision.reason}")
        return decision

    def _reset(self, new: SourceVersion, run_setup: bool) -> None:
        if self.env is not None:
            self.env.dispose()
        self.env = RuntimeEnvironment.create(sketch_api(self.renderer), self.config.state_name)
        self._key_held = False
        self._mouse = None
        patcher.install(
            self.env, new, self.executor,
            self.config.event_names, self.config.globalize, self.config.sigil,
        )
        if run_setup:
            handler = self.env.handler(SETUP)
            if handler is not None:
                try:
                    handler()
                except Exception as e:
                    raise SketchRuntimeError(f"{type(e).__name__}: {e}", e) from e

    def _reload_module(self, module_name: str) -> bool:
        module = sys.modules.get(module_name)
        if module is None:
            return True
        try:
            importlib.reload(module)
        except Exception as e:
            self._fail(e, f"reloading {module_name}")
            return False
        logger.debug(f"Reloaded module {module_name}")
        return True

    def _track_dependencies(self, version: SourceVersion) -> None:
        if self.main_path is None:
            return
        sketch_dir = self.main_path.parent
        for name in imported_modules(version.structural_tree):
            module = sys.modules.get(name)
            module_file = getattr(module, "__file__", None)
            if not module_file:
                continue
            path = Path(module_file).resolve()
            if path == self.main_path or path in self.dependencies:
                continue
            if sketch_dir in path.parents:
                self.watcher.track(path)
                self.dependencies[path] = name

    # =========================================================================
    # Errors
    # =========================================================================

    def _fail(self, error: BaseException, context: str, capture: bool = True) -> None:
        # reloads capture the last good frame before touching the environment
        if capture and self.state is InterpreterState.RUNNING:
            self.last_frame = self.renderer.grab_frame()
        self.state = InterpreterState.ERROR
        self.error = error
        self._key_held = False
        self._mouse = None
        logger.warning(f"{context} failed: {describe_error(error)}")
        self.console.report_error(error, context)

    @property
    def error_message(self) -> str:
        return describe_error(self.error) if self.error is not None else ""

    def _draw_error(self) -> None:
        renderer = self.renderer
        if self.last_frame is not None:
            renderer.draw_frame(self.last_frame)
        renderer.fill(*OVERLAY_COLOR)
        renderer.rect(0, 0, renderer.width, renderer.height)
        renderer.fill(*BAND_COLOR)
        renderer.rect(0, renderer.height // 2 - 25, renderer.width, BAND_HEIGHT)
        renderer.fill(*TEXT_COLOR)
        renderer.text(self.error_message, TEXT_MARGIN, renderer.height // 2 - 10)

    # =========================================================================
    # Render loop hooks
    # =========================================================================

    def before_event(self, event: str, hook: Callable[[], None]) -> None:
        """
        Run ``hook`` before the sketch's handler on every dispatch of ``event``.

        Hooks belong to the orchestrator, not the sketch, so they survive
        reloads. They take no arguments and run even when the sketch does not
        define the event; a hook that raises moves the interpreter to ERROR.

        Raises:
            ValueError: If ``event`` is not a known event name
        """
        self._add_hook(self._before_hooks, event, hook)

    def after_event(self, event: str, hook: Callable[[], None]) -> None:
        """Run ``hook`` after the sketch's handler for ``event`` returned normally."""
        self._add_hook(self._after_hooks, event, hook)

    def _add_hook(self, hooks: Dict[str, List[Callable[[], None]]], event: str, hook: Callable[[], None]) -> None:
        if event not in self.config.event_names:
            raise ValueError(f"Unknown event {event!r}")
        hooks.setdefault(event, []).append(hook)

    def _dispatch(self, event: str, *args) -> bool:
        if self.state is not InterpreterState.RUNNING:
            return False
        handler = self.env.handler(event)
        try:
            for hook in self._before_hooks.get(event, ()):
                hook()
            if handler is not None:
                handler(*args)
            for hook in self._after_hooks.get(event, ()):
                hook()
        except Exception as e:
            self._fail(e, event)
            return False
        return handler is not None

    def on_setup(self) -> None:
        self._dispatch(SETUP)

    def on_update(self) -> None:
        """Count the frame, poll for changes on cadence, then run ``update``."""
        self.frame += 1
        if self.frame % self.config.reload_interval_frames == 0:
            self.check_for_changes()
        self._dispatch(UPDATE)

    def on_draw(self) -> None:
        if self.state is InterpreterState.ERROR:
            self._draw_error()
            return
        self._dispatch(DRAW)
        # a held button keeps firing mouse_pressed once per drawn frame
        if self._mouse is not None:
            self._dispatch(MOUSE_PRESSED, *self._mouse)

    def on_exit(self) -> None:
        self._dispatch(EXIT)

    def on_key_down(self, key: int) -> None:
        # front-ends repeat key presses while a key is held
        if self.state is not InterpreterState.RUNNING:
            return
        if self._key_held:
            self._dispatch(KEY_PRESSED, key)
        else:
            self._key_held = True
            self._dispatch(KEY_DOWN, key)

    def on_key_up(self, key: int) -> None:
        if self.state is not InterpreterState.RUNNING:
            return
        self._key_held = False
        self._dispatch(KEY_UP, key)

    def on_mouse_moved(self, x: int, y: int) -> None:
        self._dispatch(MOUSE_MOVED, x, y)

    def on_mouse_down(self, x: int, y: int, button: int) -> None:
        if self.state is not InterpreterState.RUNNING:
            return
        self._mouse = (x, y, button_name(button))
        self._dispatch(MOUSE_DOWN, *self._mouse)

    def on_mouse_dragged(self, x: int, y: int, button: int) -> None:
        if self.state is not InterpreterState.RUNNING:
            return
        self._mouse = (x, y, button_name(button))
        self._dispatch(MOUSE_DRAGGED, *self._mouse)

    def on_mouse_up(self, x: int, y: int, button: int) -> None:
        if self.state is not InterpreterState.RUNNING:
            return
        self._mouse = None
        self._dispatch(MOUSE_UP, x, y, button_name(button))

    def on_window_resized(self, width: int, height: int) -> None:
        self.renderer.resize(width, height)
        self._dispatch(WINDOW_RESIZED, width, height)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _as_path(path_or_text: Union[str, Path]) -> Optional[Path]:
        if isinstance(path_or_text, Path):
            return path_or_text
        if "\n" in path_or_text or len(path_or_text) > 4096:
            return None
        try:
            candidate = Path(path_or_text)
            return candidate if candidate.is_file() else None
        except (OSError, ValueError):
            return None

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise TrackedFileError(str(path), e.strerror or str(e)) from e
