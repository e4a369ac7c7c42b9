"""
Runtime environment of a running sketch.

The environment is the live state the reload engine patches: the namespace
sketch code executes in, the table of installed event handlers and the names
currently defined in each category. It is owned by the orchestrator and only
mutated by the patcher.
"""

import builtins
import inspect
from types import SimpleNamespace
from typing import Any, Callable, Dict, Mapping, Optional, Set

from ..structure import Declarations

SKETCH_MODULE_NAME = "__sketch__"


class Handler:
    """An installed event handler and the positional arguments it accepts."""

    __slots__ = ("function", "arity")

    def __init__(self, function: Callable, arity: Optional[int]):
        self.function = function
        self.arity = arity

    @classmethod
    def wrap(cls, function: Callable) -> "Handler":
        return cls(function, _positional_arity(function))

    def __call__(self, *args):
        # front-ends pass every event argument; handlers may take fewer
        if self.arity is not None:
            args = args[:self.arity]
        return self.function(*args)


def _positional_arity(function: Callable) -> Optional[int]:
    try:
        signature = inspect.signature(function)
    except (TypeError, ValueError):
        return None
    count = 0
    for parameter in signature.parameters.values():
        if parameter.kind == inspect.Parameter.VAR_POSITIONAL:
            return None
        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


class RuntimeEnvironment:
    """
    Live, mutable state of a running sketch.

    ::: This is-in-layer Domain-Layer.
    ::: This is a aggregate.
    ::: This is stateful.

    Attributes:
        namespace: Globals the sketch code executes in
        handlers: Event name -> installed handler
        events, methods, classes, modules, globals: Names currently defined
        state: Persistent storage for globalized top-level variables
    """

    def __init__(self, namespace: Dict[str, Any], state_name: str):
        self.namespace = namespace
        self.state_name = state_name
        self.handlers: Dict[str, Handler] = {}
        self.events: Set[str] = set()
        self.methods: Set[str] = set()
        self.classes: Set[str] = set()
        self.modules: Set[str] = set()
        self.globals: Set[str] = set()
        self.bare = False

    @classmethod
    def create(cls, api: Optional[Mapping[str, Any]] = None, state_name: str = "_g") -> "RuntimeEnvironment":
        """Build a fresh environment whose namespace exposes ``api``."""
        namespace: Dict[str, Any] = {
            "__name__": SKETCH_MODULE_NAME,
            "__builtins__": builtins,
        }
        if api:
            namespace.update(api)
        namespace[state_name] = SimpleNamespace()
        return cls(namespace, state_name)

    @property
    def state(self) -> SimpleNamespace:
        return self.namespace[self.state_name]

    def handler(self, event: str) -> Optional[Handler]:
        return self.handlers.get(event)

    def install_handler(self, event: str, function: Callable) -> None:
        self.handlers[event] = Handler.wrap(function)
        self.events.add(event)

    def clear_handler(self, event: str) -> None:
        """Remove an installed handler; clearing a missing handler is a no-op."""
        self.handlers.pop(event, None)
        self.events.discard(event)
        self.namespace.pop(event, None)

    def undefine_method(self, name: str) -> None:
        self.namespace.pop(name, None)
        self.methods.discard(name)

    def remove_class(self, name: str) -> None:
        self.namespace.pop(name, None)
        self.classes.discard(name)

    def remove_module(self, name: str) -> None:
        self.namespace.pop(name, None)
        self.modules.discard(name)

    def synchronize(self, declared: Declarations) -> None:
        """Make the name sets equal ``declared`` and install its event handlers.

        Raises:
            KeyError: If a declared event function is missing from the namespace
        """
        for event in list(self.handlers):
            if event not in declared.events:
                self.handlers.pop(event)
        for event in declared.events:
            self.install_handler(event, self.namespace[event])
        self.events = set(declared.events)
        self.methods = set(declared.methods)
        self.classes = set(declared.classes)
        self.modules = set(declared.modules)
        self.globals = set(declared.globals)

    def declarations(self) -> Declarations:
        """Snapshot of the names currently defined."""
        return Declarations(
            events=frozenset(self.events),
            methods=frozenset(self.methods),
            classes=frozenset(self.classes),
            modules=frozenset(self.modules),
            globals=frozenset(self.globals),
        )

    def dispose(self) -> None:
        """Drop everything the environment holds."""
        self.handlers.clear()
        self.namespace.clear()
        for names in (self.events, self.methods, self.classes, self.modules, self.globals):
            names.clear()
