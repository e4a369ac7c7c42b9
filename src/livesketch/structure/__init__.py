"""
Structural view of sketch source: parsing, tree differencing and the named
declarations the reload engine swaps.
"""

from .nodes import Node, split_lines, statements
from .parser import GRAMMAR, SourceVersion, is_valid, parse
from .paths import PathPattern, compile_path, extract
from .differ import (
    StructuralDelta,
    assigned_names,
    delta_roots,
    diff,
    diff_versions,
    flatten,
)
from .declarations import (
    CategorizedDelta,
    Declarations,
    NameChanges,
    categorize,
    declarations,
    is_bare,
)

__all__ = [
    "Node",
    "split_lines",
    "statements",
    "GRAMMAR",
    "SourceVersion",
    "is_valid",
    "parse",
    "PathPattern",
    "compile_path",
    "extract",
    "StructuralDelta",
    "assigned_names",
    "delta_roots",
    "diff",
    "diff_versions",
    "flatten",
    "CategorizedDelta",
    "Declarations",
    "NameChanges",
    "categorize",
    "declarations",
    "is_bare",
]
