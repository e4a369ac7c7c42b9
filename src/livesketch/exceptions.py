"""
livesketch Exception Hierarchy

Contains the exception classes raised by the reload engine. Parse failures of
sketch text are reported with Python's builtin SyntaxError.
"""

from typing import Optional


class LiveSketchError(Exception):
    """
    Base exception for all livesketch operations.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class GrammarMismatchError(LiveSketchError):
    """
    Raised when two source versions produced by different grammars are diffed.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class PathSyntaxError(LiveSketchError):
    """
    Raised when a structural path expression cannot be parsed.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """

    def __init__(self, message: str, expression: str, column: Optional[int] = None):
        self.expression = expression
        self.column = column
        if column is not None:
            message = f"{message} at column {column} in {expression!r}"
        else:
            message = f"{message} in {expression!r}"
        super().__init__(message)


class SketchRuntimeError(LiveSketchError):
    """
    Raised when executing valid sketch code fails.

    ::: This is-in-layer Service-Layer.
    ::: This is a exception.
    ::: This is stateless.

    The exception raised by user code is kept as ``__cause__`` and as
    ``original`` so diagnostics can print its class and traceback.
    """

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original


class PatchError(SketchRuntimeError):
    """
    Raised when re-executing definitions during an incremental patch fails.

    ::: This is-in-layer Service-Layer.
    ::: This is a exception.
    ::: This is stateless.

    Deletions applied before the failure are left in place.
    """
    pass


class TrackedFileError(LiveSketchError, OSError):
    """
    Raised when a tracked sketch file is missing or inaccessible.

    ::: This is-in-layer Infrastructure-Layer.
    ::: This is a exception.
    ::: This is stateless.

    This is fatal: the file is the source of truth for the running sketch.
    """

    def __init__(self, path, reason: str = ""):
        self.path = path
        message = f"Could not access `{path}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


__all__ = [
    "LiveSketchError",
    "GrammarMismatchError",
    "PathSyntaxError",
    "SketchRuntimeError",
    "PatchError",
    "TrackedFileError",
]
