"""
Sketch Executor - runs sketch code against a live namespace.

Sketch code is the user's own program, so it runs with full builtins. The
executor only compiles, optionally keeps the definition statements, runs the
code and reports the outcome as an ExecutionResult instead of raising.
"""

import ast
import linecache
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..structure import split_lines

# Statements re-run by an incremental patch
DEFINITION_STATEMENTS = (
    ast.FunctionDef,
    ast.AsyncFunctionDef,
    ast.ClassDef,
    ast.Import,
    ast.ImportFrom,
)


@dataclass
class ExecutionResult:
    """Result of executing sketch code."""
    success: bool
    error: Optional[BaseException] = None
    error_type: Optional[str] = None
    execution_time_ms: float = 0.0
    statements_run: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.error is None:
            return ""
        return f"{self.error_type}: {self.error}"


class SketchExecutor:
    """
    Executes sketch code in a namespace.

    ::: This is-in-layer Service-Layer.
    ::: This is a executor.
    ::: This is stateless.

    Usage:
        executor = SketchExecutor()
        result = executor.execute(code, env.namespace, "sketch.py")
        if not result.success:
            raise SketchRuntimeError(result.message, result.error)
    """

    def execute(
        self,
        code: str,
        namespace: Dict[str, Any],
        filename: str = "<sketch>",
        definitions_only: bool = False,
    ) -> ExecutionResult:
        """
        Execute code in ``namespace``.

        Args:
            code: Python source to run
            namespace: Globals of the execution (mutated)
            filename: Name shown in tracebacks
            definitions_only: Run only def/class/import statements

        Returns:
            ExecutionResult with success status and the raised exception, if any
        """
        start_time = time.perf_counter()

        try:
            module = ast.parse(code, filename=filename, mode="exec")
        except (SyntaxError, ValueError) as e:
            return ExecutionResult(
                success=False,
                error=e,
                error_type=type(e).__name__,
                execution_time_ms=(time.perf_counter() - start_time) * 1000,
            )

        if definitions_only:
            module.body = [s for s in module.body if isinstance(s, DEFINITION_STATEMENTS)]

        self._register_source(code, filename)

        try:
            compiled = compile(module, filename, "exec")
            exec(compiled, namespace)
        except Exception as e:
            return ExecutionResult(
                success=False,
                error=e,
                error_type=type(e).__name__,
                execution_time_ms=(time.perf_counter() - start_time) * 1000,
                statements_run=len(module.body),
            )

        return ExecutionResult(
            success=True,
            execution_time_ms=(time.perf_counter() - start_time) * 1000,
            statements_run=len(module.body),
        )

    @staticmethod
    def _register_source(code: str, filename: str) -> None:
        # tracebacks read source lines through linecache; the executed text
        # may differ from the file on disk (globalized)
        lines = split_lines(code)
        if lines and not lines[-1].endswith(("\n", "\r")):
            lines[-1] += "\n"
        linecache.cache[filename] = (len(code), None, lines, filename)
