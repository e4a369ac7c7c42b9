"""
Structural parser.

Turns sketch source text into a ``SourceVersion`` holding both views of its
structural tree: the positioned tree (for mapping nodes back to source spans)
and the normalized tree (for structural comparison).
"""

import ast
import sys
from dataclasses import dataclass

from .nodes import Node, TreeBuilder

GRAMMAR = f"python{sys.version_info[0]}.{sys.version_info[1]}"


@dataclass(frozen=True)
class SourceVersion:
    """One parsed version of a sketch.

    ::: This is-in-layer Domain-Layer.
    ::: This is a value-object.
    ::: This is stateless.
    """
    text: str
    structural_tree: Node
    positioned_tree: Node
    grammar: str = GRAMMAR
    filename: str = "<sketch>"


def parse(text: str, filename: str = "<sketch>") -> SourceVersion:
    """
    Parse sketch source into a SourceVersion.

    Args:
        text: Sketch source code
        filename: Name reported in syntax errors

    Returns:
        SourceVersion with positioned and normalized trees

    Raises:
        SyntaxError: If the text does not parse
    """
    try:
        module = ast.parse(text, filename=filename, mode="exec")
    except ValueError as e:
        # null bytes are a ValueError before Python 3.12
        raise SyntaxError(str(e)) from e
    positioned = TreeBuilder(text).build(module)
    return SourceVersion(
        text=text,
        structural_tree=positioned.strip(),
        positioned_tree=positioned,
        grammar=GRAMMAR,
        filename=filename,
    )


def is_valid(text: str) -> bool:
    """True if the text parses."""
    try:
        ast.parse(text)
    except (SyntaxError, ValueError):
        return False
    return True
