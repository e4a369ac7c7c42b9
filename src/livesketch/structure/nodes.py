"""
Structural tree nodes.

Python's ``ast`` is converted into a uniform tree of hashable ``Node`` values so
that whole subtrees can be counted, compared and searched generically:

    def draw():                 Node("FunctionDef", (
        circle(50, 50, 10)          Node("name", (Node("Identifier", value="draw"),)),
                                    Node("args", (...)),
                                    Node("body", (Node("Expr", ...),)),
                                    ...))

Every ``ast`` node becomes a node tagged with its class name whose children are
one node per field, tagged with the field name. String fields become
``Identifier`` leaves and literal values become ``Constant`` leaves.

Equality and hashing ignore ``pos``, so a positioned tree and its stripped
copy compare equal.
"""

import ast
import re
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Tuple

IDENTIFIER = "Identifier"
CONSTANT = "Constant"

# Fields that carry no structure worth comparing
_SKIPPED_FIELDS = frozenset({"ctx", "type_comment", "kind"})

_LINE_RE = re.compile(r"[^\r\n]*(?:\r\n|\r|\n)|[^\r\n]+\Z")

Position = Tuple[int, int]


def split_lines(text: str) -> List[str]:
    """Split text into lines (keeping line endings) the way the tokenizer does.

    Only ``\\r\\n``, ``\\r`` and ``\\n`` end a line; ``str.splitlines`` would also
    split on form feeds and unicode separators, which Python source allows
    inside lines.
    """
    return _LINE_RE.findall(text)


@dataclass(frozen=True)
class Node:
    """One syntactic construct of a structural tree.

    ::: This is-in-layer Domain-Layer.
    ::: This is a value-object.
    ::: This is stateless.
    """
    tag: str
    children: Tuple["Node", ...] = ()
    value: Any = None
    pos: Optional[Position] = field(default=None, compare=False)
    _hash: int = field(default=0, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_hash", hash((self.tag, self.children, self.value)))

    def __hash__(self) -> int:
        return self._hash

    @property
    def is_leaf(self) -> bool:
        return self.tag in (IDENTIFIER, CONSTANT)

    def child(self, tag: str) -> Optional["Node"]:
        """First direct child with the given tag."""
        for node in self.children:
            if node.tag == tag:
                return node
        return None

    def walk(self) -> Iterator["Node"]:
        """Yield this node and every descendant, depth first, pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def strip(self) -> "Node":
        """Copy of this tree with every position removed."""
        if self.pos is None and not self.children:
            return self
        return Node(self.tag, tuple(c.strip() for c in self.children), self.value)


def statements(tree: Node) -> Tuple[Node, ...]:
    """Top-level statements of a ``Module`` tree."""
    body = tree.child("body")
    return body.children if body is not None else ()


def constant_value(value: Any) -> Tuple[str, Any]:
    """Leaf payload for a literal; the type name keeps ``1``, ``1.0`` and ``True`` apart."""
    return (type(value).__name__, value)


class TreeBuilder:
    """Converts an ``ast`` tree into a positioned structural tree.

    ``ast`` reports columns as UTF-8 byte offsets; positions in the built tree
    are character columns into ``split_lines(text)``.
    """

    def __init__(self, text: str):
        self._lines = split_lines(text)

    def build(self, node: ast.AST) -> Node:
        pos = self._position(node)
        children = []
        for name, value in ast.iter_fields(node):
            if name in _SKIPPED_FIELDS:
                continue
            if isinstance(node, ast.Constant) and name == "value":
                children.append(Node(name, (Node(CONSTANT, value=constant_value(value), pos=pos),)))
                continue
            children.append(Node(name, self._field(value, pos), pos=pos))
        return Node(type(node).__name__, tuple(children), pos=pos)

    def _field(self, value: Any, pos: Optional[Position]) -> Tuple[Node, ...]:
        if value is None:
            return ()
        if isinstance(value, list):
            result: List[Node] = []
            for item in value:
                result.extend(self._field(item, pos))
            return tuple(result)
        if isinstance(value, ast.AST):
            return (self.build(value),)
        if isinstance(value, str):
            return (Node(IDENTIFIER, value=value, pos=pos),)
        return (Node(CONSTANT, value=constant_value(value), pos=pos),)

    def _position(self, node: ast.AST) -> Optional[Position]:
        lineno = getattr(node, "lineno", None)
        col = getattr(node, "col_offset", None)
        if lineno is None or col is None:
            return None
        return (lineno, self._char_column(lineno, col))

    def _char_column(self, lineno: int, byte_col: int) -> int:
        if lineno - 1 >= len(self._lines):
            return byte_col
        line = self._lines[lineno - 1]
        if line.isascii():
            return byte_col
        return len(line.encode("utf-8")[:byte_col].decode("utf-8", errors="replace"))
