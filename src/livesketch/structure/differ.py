"""
Tree differ.

Computes what changed between two structural trees as a multiset difference
of their subtrees. This is not a minimal tree edit script: it is order
insensitive and needs no positional alignment, which is all the reload policy
needs to tell that a named construct appeared, changed or disappeared.

    old = {A, B, B, C}      new = {A, B, D}
    removed = old - new = {B, C}
    added   = new - old = {D}
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List

from ..exceptions import GrammarMismatchError
from .nodes import Node, statements
from .parser import SourceVersion

# Constructs that open a new scope; assignments inside them are not globals
SCOPE_CHANGERS = frozenset({
    "FunctionDef", "AsyncFunctionDef", "ClassDef", "Lambda",
    "ListComp", "SetComp", "DictComp", "GeneratorExp",
})


@dataclass(frozen=True)
class StructuralDelta:
    """Subtrees removed from and added to a tree.

    ::: This is-in-layer Domain-Layer.
    ::: This is a value-object.
    ::: This is stateless.
    """
    removed: Counter = field(default_factory=Counter)
    added: Counter = field(default_factory=Counter)

    @property
    def is_empty(self) -> bool:
        return not self.removed and not self.added


def flatten(tree: Node) -> Counter:
    """Multiset of every subtree of ``tree`` (the tree itself included)."""
    return Counter(tree.walk())


def diff(old: Node, new: Node) -> StructuralDelta:
    """
    Multiset difference of the subtrees of two trees.

    A subtree present k times in ``old`` and m times in ``new`` contributes
    max(k - m, 0) to ``removed`` and max(m - k, 0) to ``added``.
    """
    old_subtrees = flatten(old)
    new_subtrees = flatten(new)
    return StructuralDelta(
        removed=old_subtrees - new_subtrees,
        added=new_subtrees - old_subtrees,
    )


def diff_versions(old: SourceVersion, new: SourceVersion) -> StructuralDelta:
    """Diff the normalized trees of two source versions.

    Raises:
        GrammarMismatchError: If the versions were parsed by different grammars
    """
    if old.grammar != new.grammar:
        raise GrammarMismatchError(
            f"Cannot diff {old.filename} parsed by {old.grammar} against {new.grammar}"
        )
    return diff(old.structural_tree, new.structural_tree)


def delta_roots(side: Counter, tree: Node) -> List[Node]:
    """
    Top-level statements of ``tree`` that appear in one side of a delta.

    When a statement occurs several times only as many occurrences as the
    delta counts are returned.
    """
    remaining = Counter(side)
    roots = []
    for statement in statements(tree):
        if remaining[statement] > 0:
            remaining[statement] -= 1
            roots.append(statement)
    return roots


def assigned_names(nodes: Iterable[Node]) -> List[str]:
    """
    Names that are targets of assignments outside any nested scope.

    Walks each node depth first, never entering function, class, lambda or
    comprehension scopes, and collects ``Name`` targets of ``Assign`` and
    ``AnnAssign`` (with a value), unpacking tuple, list and starred targets.

    Returns:
        Names in first-seen order, without duplicates
    """
    names: List[str] = []
    for node in nodes:
        _collect_assigns(node, names)
    return list(dict.fromkeys(names))


def _collect_assigns(node: Node, names: List[str]) -> None:
    if node.tag in SCOPE_CHANGERS:
        return
    if node.tag == "Assign":
        for target in node.child("targets").children:
            _collect_targets(target, names)
    elif node.tag == "AnnAssign":
        if node.child("value").children:
            _collect_targets(node.child("target").children[0], names)
    for child in node.children:
        _collect_assigns(child, names)


def _collect_targets(target: Node, names: List[str]) -> None:
    if target.tag == "Name":
        names.append(name_of(target))
    elif target.tag in ("Tuple", "List"):
        for element in target.child("elts").children:
            _collect_targets(element, names)
    elif target.tag == "Starred":
        _collect_targets(target.child("value").children[0], names)


def name_of(name_node: Node) -> str:
    """Identifier text of a ``Name`` node."""
    return name_node.child("id").children[0].value
