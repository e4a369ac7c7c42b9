"""
Identifier globalizer.

Rewrites every use of a top-level sketch variable into an attribute of the
persistent sketch state, so event functions can rebind sketch state without
``global`` statements and the state outlives incremental reloads:

    counter = 0                     _g.counter = 0

    def draw():                     def draw():
        counter += 1                    _g.counter += 1

The rewrite is a pure text transform: positions come from the positioned tree
and insertions are applied to a copy of the text, shifting later columns on
the same line by the length of earlier insertions.
"""

import bisect
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..config import DEFAULT_SIGIL
from ..structure import Node, SourceVersion, assigned_names, parse, split_lines, statements
from ..structure.differ import name_of

# Scopes whose parameters can shadow a sketch global
_PARAMETER_SCOPES = frozenset({"FunctionDef", "AsyncFunctionDef", "Lambda"})
_NESTED_SCOPES = _PARAMETER_SCOPES | {"ClassDef"}
_COMPREHENSIONS = frozenset({"ListComp", "SetComp", "DictComp", "GeneratorExp"})

# Node tag -> field holding the name it binds
_CAPTURES = {
    "ExceptHandler": "name",
    "MatchAs": "name",
    "MatchStar": "name",
    "MatchMapping": "rest",
}


@dataclass(frozen=True, order=True)
class Insertion:
    """Text to insert before ``column`` (0-based, characters) of ``line`` (1-based)."""
    line: int
    column: int
    text: str


def apply_insertions(text: str, insertions: Iterable[Insertion]) -> str:
    """
    Apply insertions to ``text`` and return the new text.

    Insertion columns refer to the original text. Insertions may come in any
    order: for each line the already applied columns are kept sorted, and an
    insertion is shifted right by the length of every applied insertion at a
    lower column.
    """
    lines = split_lines(text)
    applied: Dict[int, List[Tuple[int, int]]] = {}

    for insertion in insertions:
        index = insertion.line - 1
        if not 0 <= index < len(lines):
            raise ValueError(f"Insertion line {insertion.line} is outside the text")
        line_applied = applied.setdefault(index, [])
        offset = sum(length for column, length in line_applied if column < insertion.column)
        at = insertion.column + offset
        line = lines[index]
        lines[index] = line[:at] + insertion.text + line[at:]
        bisect.insort(line_applied, (insertion.column, len(insertion.text)))

    return "".join(lines)


def plan_insertions(
    version: SourceVersion,
    names: Optional[Iterable[str]] = None,
    sigil: str = DEFAULT_SIGIL,
) -> List[Insertion]:
    """
    Insertions that globalize ``names`` in a parsed version.

    Every ``Name`` occurrence of a globalized identifier gets the sigil, except
    where the name refers to something else:

    - inside a function or lambda with a parameter of the same name
    - inside a comprehension that uses it as a loop variable
    - inside any scope that binds it with ``except ... as``, an assignment
      expression or a ``match`` capture, which cannot target attributes.
      A module that binds a name that way does not globalize it at all.

    Args:
        version: Parsed sketch (its positioned tree is used)
        names: Identifiers to globalize; defaults to the top-level assignment targets
        sigil: Text inserted before each occurrence

    Returns:
        Insertions in source order
    """
    tree = version.positioned_tree
    if names is None:
        names = assigned_names(statements(tree))
    # names the module also binds as plain names are never globalized
    wanted = set(names) - plain_bindings(statements(tree))
    if not wanted:
        return []

    insertions: List[Insertion] = []
    _plan(tree, wanted, sigil, insertions)
    return sorted(insertions)


def plain_bindings(nodes: Iterable[Node]) -> Set[str]:
    """
    Names a scope binds in ways that cannot target an attribute.

    These are ``except ... as name`` clauses, assignment expression targets
    and ``match`` captures. The walk stays in the scope of ``nodes``: nested
    functions, lambdas and classes are skipped, while comprehensions are
    entered since their assignment expressions bind in the enclosing scope.
    """
    names: Set[str] = set()
    stack = list(nodes)
    while stack:
        node = stack.pop()
        if node.tag in _NESTED_SCOPES:
            continue
        if node.tag == "NamedExpr":
            names.update(_target_names(node.child("target").children[0]))
        elif node.tag in _CAPTURES:
            identifier = node.child(_CAPTURES[node.tag])
            if identifier is not None and identifier.children:
                names.add(identifier.children[0].value)
        stack.extend(node.children)
    return names


def _target_names(target: Node) -> List[str]:
    if target.tag == "Name":
        return [name_of(target)]
    if target.tag in ("Tuple", "List"):
        return [name for element in target.child("elts").children for name in _target_names(element)]
    if target.tag == "Starred":
        return _target_names(target.child("value").children[0])
    return []


def _plan(node: Node, wanted: Set[str], sigil: str, insertions: List[Insertion]) -> None:
    if not wanted:
        return
    if node.tag in _PARAMETER_SCOPES:
        shadowed = (_parameter_names(node) | plain_bindings(node.child("body").children)) & wanted
        if shadowed:
            wanted = wanted - shadowed
            if not wanted:
                return
    if node.tag == "ClassDef":
        _plan_class(node, wanted, sigil, insertions)
        return
    if node.tag in _COMPREHENSIONS:
        _plan_comprehension(node, wanted, sigil, insertions)
        return
    if node.tag == "NamedExpr":
        # the target stays a plain name; only the value is rewritten
        _plan(node.child("value"), wanted, sigil, insertions)
        return
    if node.tag == "Name":
        if name_of(node) in wanted and node.pos is not None:
            line, column = node.pos
            insertions.append(Insertion(line, column, sigil))
        return
    for child in node.children:
        _plan(child, wanted, sigil, insertions)


def _parameter_names(scope: Node) -> Set[str]:
    args_field = scope.child("args")
    if args_field is None or not args_field.children:
        return set()
    arguments = args_field.children[0]
    names = set()
    for field_name in ("posonlyargs", "args", "vararg", "kwonlyargs", "kwarg"):
        field_node = arguments.child(field_name)
        if field_node is None:
            continue
        for arg in field_node.children:
            names.add(arg.child("arg").children[0].value)
    return names


def _plan_class(node: Node, wanted: Set[str], sigil: str, insertions: List[Insertion]) -> None:
    # names bound in the class body are class attributes there, but methods
    # still see the sketch globals
    body = node.child("body")
    class_level = (set(assigned_names(body.children)) | plain_bindings(body.children)) & wanted
    inner = wanted - class_level
    for child in node.children:
        if child is not body:
            _plan(child, wanted, sigil, insertions)
            continue
        for statement in child.children:
            scope = wanted if statement.tag in _PARAMETER_SCOPES else inner
            _plan(statement, scope, sigil, insertions)


def _plan_comprehension(node: Node, wanted: Set[str], sigil: str, insertions: List[Insertion]) -> None:
    # comprehension targets are local to the comprehension; only the first
    # iterable is evaluated in the enclosing scope
    generators = node.child("generators").children
    targets: Set[str] = set()
    for generator in generators:
        targets.update(_target_names(generator.child("target").children[0]))
    inner = wanted - targets
    for child in node.children:
        if child.tag != "generators":
            _plan(child, inner, sigil, insertions)
            continue
        for index, generator in enumerate(child.children):
            for field_node in generator.children:
                outer = index == 0 and field_node.tag == "iter"
                _plan(field_node, wanted if outer else inner, sigil, insertions)


def globalize(text: str, sigil: str = DEFAULT_SIGIL, filename: str = "<sketch>") -> str:
    """
    Globalize the top-level variables of sketch source.

    Text without top-level assignments is returned unchanged.

    Raises:
        SyntaxError: If the text does not parse
    """
    version = parse(text, filename)
    return globalize_version(version, sigil)


def globalize_version(version: SourceVersion, sigil: str = DEFAULT_SIGIL) -> str:
    """Globalize an already parsed version."""
    insertions = plan_insertions(version, sigil=sigil)
    if not insertions:
        return version.text
    return apply_insertions(version.text, insertions)
