"""
Named constructs of a sketch and their changes.

Projects trees and structural deltas onto the categories the reload engine
can swap independently: event functions, other functions (methods), classes,
module bindings (imports), plus top-level globals.
"""

from dataclasses import dataclass, field
from typing import AbstractSet, FrozenSet, Iterable, List

from .differ import StructuralDelta, assigned_names, delta_roots
from .nodes import Node, statements
from .paths import extract

FUNCTION_NAME_PATH = "FunctionDef|AsyncFunctionDef/name/@Identifier"
CLASS_NAME_PATH = "ClassDef/name/@Identifier"
IMPORT_ALIAS_PATH = "Import|ImportFrom/names/alias"


@dataclass(frozen=True)
class NameChanges:
    """Names removed and added in one category.

    ::: This is-in-layer Domain-Layer.
    ::: This is a value-object.
    ::: This is stateless.
    """
    removed: FrozenSet[str] = frozenset()
    added: FrozenSet[str] = frozenset()

    @property
    def changed(self) -> FrozenSet[str]:
        return self.removed | self.added

    def __bool__(self) -> bool:
        return bool(self.removed or self.added)


@dataclass(frozen=True)
class CategorizedDelta:
    """A structural delta projected onto named categories.

    ::: This is-in-layer Domain-Layer.
    ::: This is a value-object.
    ::: This is stateless.
    """
    events: NameChanges = field(default_factory=NameChanges)
    methods: NameChanges = field(default_factory=NameChanges)
    classes: NameChanges = field(default_factory=NameChanges)
    modules: NameChanges = field(default_factory=NameChanges)
    globals: NameChanges = field(default_factory=NameChanges)

    @property
    def is_empty(self) -> bool:
        return not (self.events or self.methods or self.classes or self.modules or self.globals)

    def summary(self) -> str:
        parts = []
        for category in ("events", "methods", "classes", "modules", "globals"):
            changes = getattr(self, category)
            if changes:
                parts.append(
                    f"{category}: -{sorted(changes.removed)} +{sorted(changes.added)}"
                )
        return "; ".join(parts) if parts else "no named changes"


@dataclass(frozen=True)
class Declarations:
    """Everything a sketch tree declares at top level."""
    events: FrozenSet[str] = frozenset()
    methods: FrozenSet[str] = frozenset()
    classes: FrozenSet[str] = frozenset()
    modules: FrozenSet[str] = frozenset()
    globals: FrozenSet[str] = frozenset()


def function_names(roots: Iterable[Node]) -> List[str]:
    return extract(roots, FUNCTION_NAME_PATH)


def class_names(roots: Iterable[Node]) -> List[str]:
    return extract(roots, CLASS_NAME_PATH)


def module_names(roots: Iterable[Node]) -> List[str]:
    """Names bound by ``import`` and ``from ... import`` statements.

    ``import a.b`` binds ``a``; ``as`` clauses bind the alias; star imports
    bind nothing nameable.
    """
    names = []
    for alias in extract(roots, IMPORT_ALIAS_PATH):
        asname = alias.child("asname")
        if asname is not None and asname.children:
            names.append(asname.children[0].value)
            continue
        name = alias.child("name").children[0].value
        if name != "*":
            names.append(name.split(".")[0])
    return names


def _split_functions(names: Iterable[str], event_names: AbstractSet[str]):
    names = set(names)
    return frozenset(names & event_names), frozenset(names - event_names)


def declarations(tree: Node, event_names: AbstractSet[str]) -> Declarations:
    """Top-level declarations of a whole ``Module`` tree."""
    roots = statements(tree)
    events, methods = _split_functions(function_names(roots), event_names)
    return Declarations(
        events=events,
        methods=methods,
        classes=frozenset(class_names(roots)),
        modules=frozenset(module_names(roots)),
        globals=frozenset(assigned_names(roots)),
    )


def categorize(
    delta: StructuralDelta,
    old_tree: Node,
    new_tree: Node,
    event_names: AbstractSet[str],
) -> CategorizedDelta:
    """
    Project a structural delta onto named categories.

    Only top-level statements of each tree that appear in the matching delta
    side are inspected, so edits inside a function body report that function
    as changed rather than the locals it assigns.

    Args:
        delta: Multiset difference of old_tree and new_tree
        old_tree: Normalized tree of the running version
        new_tree: Normalized tree of the incoming version
        event_names: Closed set of recognised event function names

    Returns:
        CategorizedDelta
    """
    removed = delta_roots(delta.removed, old_tree)
    added = delta_roots(delta.added, new_tree)

    removed_events, removed_methods = _split_functions(function_names(removed), event_names)
    added_events, added_methods = _split_functions(function_names(added), event_names)

    return CategorizedDelta(
        events=NameChanges(removed_events, added_events),
        methods=NameChanges(removed_methods, added_methods),
        classes=NameChanges(frozenset(class_names(removed)), frozenset(class_names(added))),
        modules=NameChanges(frozenset(module_names(removed)), frozenset(module_names(added))),
        globals=NameChanges(frozenset(assigned_names(removed)), frozenset(assigned_names(added))),
    )


def is_bare(tree: Node, event_names: AbstractSet[str]) -> bool:
    """True if the sketch defines none of the recognised event functions.

    Such a sketch runs in reduced mode: the whole script is the draw event.
    An empty sketch is not bare.
    """
    roots = statements(tree)
    if not roots:
        return False
    return not (set(function_names(roots)) & set(event_names))
