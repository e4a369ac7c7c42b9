"""
Reload engine: policy, patcher, globalizer and the orchestrator driving them.
"""

from .environment import Handler, RuntimeEnvironment
from .executor import ExecutionResult, SketchExecutor
from .globalizer import Insertion, apply_insertions, globalize, globalize_version, plan_insertions
from .orchestrator import InterpreterState, ReloadOrchestrator, describe_error
from .patcher import apply, install
from .policy import FullReset, Patch, ReloadDecision, decide

__all__ = [
    "Handler",
    "RuntimeEnvironment",
    "ExecutionResult",
    "SketchExecutor",
    "Insertion",
    "apply_insertions",
    "globalize",
    "globalize_version",
    "plan_insertions",
    "InterpreterState",
    "ReloadOrchestrator",
    "describe_error",
    "apply",
    "install",
    "FullReset",
    "Patch",
    "ReloadDecision",
    "decide",
]
