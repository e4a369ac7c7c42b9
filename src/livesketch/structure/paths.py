"""
Structural path expressions - Lark-based parser and matcher.

A path expression selects nodes of a structural tree by their tag sequence,
for example ``ClassDef/name/@Identifier`` selects the names of class
definitions. Supported steps:

    Tag         node whose tag is ``Tag``
    TagA|TagB   node whose tag is one of the alternatives
    *           any node
    **          zero or more levels of any nodes
    @Tag        leaf tagged ``Tag``; yields its value (final step only)

The first step is matched against the root node itself.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from lark import Lark, Transformer
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from ..exceptions import PathSyntaxError
from .nodes import Node

TAGS = "tags"
WILDCARD = "wildcard"
DESCENDANT = "descendant"
LEAF = "leaf"


@dataclass(frozen=True)
class Step:
    """One step of a compiled path."""
    kind: str
    names: Tuple[str, ...] = ()

    def accepts(self, node: Node) -> bool:
        if self.kind == WILDCARD:
            return True
        if self.kind == LEAF:
            return node.is_leaf and node.tag in self.names
        return node.tag in self.names


class _PathTransformer(Transformer):
    """Turns a path parse tree into a tuple of Steps."""

    def start(self, steps):
        return tuple(steps)

    def descendant(self, _):
        return Step(DESCENDANT)

    def wildcard(self, _):
        return Step(WILDCARD)

    def leaf(self, tokens):
        return Step(LEAF, (str(tokens[0]),))

    def tags(self, tokens):
        return Step(TAGS, tuple(str(t) for t in tokens))


_parser: Optional[Lark] = None


def _get_parser() -> Lark:
    """Lazily build the path grammar parser (shared by all patterns)."""
    global _parser
    if _parser is None:
        grammar_path = Path(__file__).parent / "path.lark"
        with open(grammar_path, "r", encoding="utf-8") as f:
            grammar = f.read()
        _parser = Lark(grammar, start="start", parser="lalr")
    return _parser


class PathPattern:
    """
    A compiled structural path expression.

    ::: This is-in-layer Domain-Layer.
    ::: This is a value-object.
    ::: This is stateless.

    Usage:
        pattern = compile_path("ClassDef/name/@Identifier")
        names = list(pattern.match(statement))
    """

    def __init__(self, expression: str, steps: Tuple[Step, ...]):
        self.expression = expression
        self.steps = steps

    def __repr__(self) -> str:
        return f"PathPattern({self.expression!r})"

    def match(self, node: Node) -> Iterator[Any]:
        """Yield every match rooted at ``node``.

        Leaf steps yield leaf values, every other final step yields nodes.
        """
        return self._match(node, 0)

    def _match(self, node: Node, index: int) -> Iterator[Any]:
        step = self.steps[index]
        last = index == len(self.steps) - 1

        if step.kind == DESCENDANT:
            if last:
                yield from node.walk()
                return
            yield from self._match(node, index + 1)
            for child in node.children:
                yield from self._match(child, index)
            return

        if not step.accepts(node):
            return
        if last:
            yield node.value if step.kind == LEAF else node
            return
        for child in node.children:
            yield from self._match(child, index + 1)


@lru_cache(maxsize=128)
def compile_path(expression: str) -> PathPattern:
    """
    Compile a path expression.

    Args:
        expression: Path expression such as ``FunctionDef/name/@Identifier``

    Returns:
        PathPattern (cached per expression)

    Raises:
        PathSyntaxError: If the expression is malformed
    """
    if not expression or not expression.strip():
        raise PathSyntaxError("Empty path expression", expression)

    try:
        tree = _get_parser().parse(expression)
    except UnexpectedToken as e:
        if e.token.type == "$END":
            raise PathSyntaxError("Unexpected end of expression", expression) from e
        raise PathSyntaxError(f"Unexpected token {str(e.token)!r}", expression, e.column) from e
    except UnexpectedCharacters as e:
        raise PathSyntaxError(f"Unexpected character {e.char!r}", expression, e.column) from e
    except UnexpectedEOF as e:
        raise PathSyntaxError("Unexpected end of expression", expression) from e
    except UnexpectedInput as e:
        raise PathSyntaxError(str(e), expression, getattr(e, "column", None)) from e

    steps = _PathTransformer().transform(tree)
    for step in steps[:-1]:
        if step.kind == LEAF:
            raise PathSyntaxError(f"Leaf step '@{step.names[0]}' must be the last step", expression)
    return PathPattern(expression, steps)


def extract(nodes: Iterable[Node], expression: str) -> List[Any]:
    """
    Extract the matches of a path expression from each of ``nodes``, in order.

    Args:
        nodes: Root nodes the path is anchored at (e.g. delta roots)
        expression: Path expression

    Returns:
        Leaf values (for ``@`` paths) or matched nodes
    """
    pattern = compile_path(expression)
    result: List[Any] = []
    for node in nodes:
        result.extend(pattern.match(node))
    return result
