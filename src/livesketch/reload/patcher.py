"""
Environment patcher.

Applies a reload decision to a RuntimeEnvironment:

- install(): full reset path, executes a whole version into a fresh environment
- apply():   patch path, deletes removed constructs then re-runs the definition
             statements of the new version so every retained or added
             construct is re-established under its current name

Both finish by synchronizing the environment's name sets with what the new
version declares, so no stale names survive a successful reload.
"""

from typing import AbstractSet

from ..events import DRAW, EVENT_NAMES
from ..exceptions import PatchError, SketchRuntimeError
from ..logging_config import configure_logger_for_debug_trace
from ..structure import CategorizedDelta, SourceVersion, declarations, is_bare
from .environment import RuntimeEnvironment
from .executor import SketchExecutor
from .globalizer import globalize_version

logger = configure_logger_for_debug_trace(__name__)


def executable_text(version: SourceVersion, globalize: bool, sigil: str) -> str:
    """Text actually executed for a version (globalized unless disabled)."""
    if not globalize:
        return version.text
    return globalize_version(version, sigil)


def install(
    env: RuntimeEnvironment,
    version: SourceVersion,
    executor: SketchExecutor,
    event_names: AbstractSet[str] = EVENT_NAMES,
    globalize: bool = True,
    sigil: str = "_g.",
) -> None:
    """
    Execute a whole version into ``env`` (full reset path).

    A bare sketch (no event functions) is not run here; it is installed as a
    draw handler that runs the whole script every frame.

    Raises:
        SketchRuntimeError: If executing the sketch raises
    """
    if is_bare(version.structural_tree, event_names):
        _install_bare(env, version, executor)
        return

    code = executable_text(version, globalize, sigil)
    result = executor.execute(code, env.namespace, version.filename)
    if not result.success:
        raise SketchRuntimeError(result.message, result.error) from result.error

    _synchronize(env, version, event_names, SketchRuntimeError)
    logger.debug(
        f"Installed {version.filename}: events={sorted(env.events)} methods={sorted(env.methods)} "
        f"({result.execution_time_ms:.1f}ms)"
    )


def apply(
    env: RuntimeEnvironment,
    delta: CategorizedDelta,
    version: SourceVersion,
    executor: SketchExecutor,
    event_names: AbstractSet[str] = EVENT_NAMES,
    globalize: bool = True,
    sigil: str = "_g.",
) -> None:
    """
    Patch ``env`` in place with an incremental delta.

    Removed events, methods, classes and modules are deleted first (deleting a
    name that is not defined is a no-op), then the definition statements of
    the new version are re-executed. Top-level assignments are not re-run, so
    sketch state is kept.

    Raises:
        PatchError: If re-executing the definitions raises. Deletions already
            applied are not rolled back.
    """
    for name in delta.events.removed:
        env.clear_handler(name)
    for name in delta.methods.removed:
        env.undefine_method(name)
    for name in delta.classes.removed:
        env.remove_class(name)
    for name in delta.modules.removed:
        env.remove_module(name)

    code = executable_text(version, globalize, sigil)
    result = executor.execute(code, env.namespace, version.filename, definitions_only=True)
    if not result.success:
        raise PatchError(result.message, result.error) from result.error

    _synchronize(env, version, event_names, PatchError)
    logger.debug(
        f"Patched {version.filename} ({delta.summary()}): "
        f"{result.statements_run} definitions in {result.execution_time_ms:.1f}ms"
    )


def _synchronize(env, version, event_names, error_class) -> None:
    declared = declarations(version.structural_tree, event_names)
    # names removed from the source but left in the namespace by a previous run
    for name in env.declarations().methods - declared.methods:
        env.namespace.pop(name, None)
    try:
        env.synchronize(declared)
    except KeyError as e:
        raise error_class(f"Event function {e.args[0]!r} was not defined by the sketch") from e
    env.bare = False


def _install_bare(env: RuntimeEnvironment, version: SourceVersion, executor: SketchExecutor) -> None:
    text = version.text
    filename = version.filename

    def draw():
        result = executor.execute(text, env.namespace, filename)
        if not result.success:
            raise result.error

    env.synchronize(declarations(version.structural_tree, frozenset()))
    env.install_handler(DRAW, draw)
    env.bare = True
    logger.debug(f"Installed {filename} in reduced mode")
