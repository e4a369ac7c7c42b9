"""
Diagnostics console.

Operator-facing output of the reload engine: status lines while verbose and
error reports (class name, message and call stack when one exists).

::: This is-in-layer UI-Layer.
::: This is-in-component Diagnostics.
::: This depends-on rich.
"""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from rich.traceback import Traceback


class DiagnosticsConsole:
    """Rich console output for the reload engine.

    ::: This is-in-layer Presentation-Layer.
    ::: This is a adapter.
    ::: This is stateful.
    ::: This depends-on `rich.console.Console`.
    """

    def __init__(self, verbose: bool = False, console: Optional[Console] = None):
        """Initialize diagnostics console.

        Args:
            verbose: Print status lines and tracebacks
            console: Console to print to (stderr by default)
        """
        self.verbose = verbose
        self.console = console or Console(stderr=True)
        self.errors_count = 0

    def info(self, message: str) -> None:
        """Status line, printed only when verbose."""
        if self.verbose:
            self.console.print(Text(message, style="dim"))

    def warning(self, message: str) -> None:
        self.console.print(Text(message, style="yellow"))

    def report_error(self, error: BaseException, context: str = "") -> None:
        """Print an error with its class name, message and traceback."""
        self.errors_count += 1
        title = type(error).__name__
        if context:
            title = f"{title} ({context})"
        self.console.print(Panel(Text(str(error), style="bold red"), title=title, border_style="red"))

        cause = getattr(error, "original", None) or error.__cause__ or error
        if self.verbose and cause.__traceback__ is not None:
            self.console.print(Traceback.from_exception(type(cause), cause, cause.__traceback__))

    def fatal(self, message: str) -> None:
        self.console.print(Text(message, style="bold red"))
