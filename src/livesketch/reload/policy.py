"""
Reload policy.

Decides whether an incoming sketch version can be patched into the running
environment or needs a full reset. The policy is coarse on purpose: it only
ever patches named constructs whose definitions swap independently (events,
methods, classes, modules) and never patches global state.
"""

from dataclasses import dataclass
from typing import AbstractSet, Optional, Union

from ..events import EVENT_NAMES, SETUP
from ..structure import CategorizedDelta, SourceVersion, is_bare


@dataclass(frozen=True)
class Patch:
    """Swap the changed named constructs in place."""
    delta: CategorizedDelta


@dataclass(frozen=True)
class FullReset:
    """Discard the environment and rebuild it from the new version."""
    reason: str


ReloadDecision = Union[Patch, FullReset]


def decide(
    old: Optional[SourceVersion],
    new: SourceVersion,
    delta: Optional[CategorizedDelta],
    init_event: str = SETUP,
    event_names: AbstractSet[str] = EVENT_NAMES,
) -> ReloadDecision:
    """
    Decide how to apply ``new`` on top of ``old``.

    Rules, first match wins:
        1. no previous version                     -> FullReset
        2. either version runs in reduced mode     -> FullReset
        3. the init event (setup) changed          -> FullReset
        4. a top-level global appeared/changed/left -> FullReset
        5. otherwise                               -> Patch

    Args:
        old: Running version, or None on first load
        new: Incoming version (already known to parse)
        delta: Categorized delta from old to new (ignored when old is None)
        init_event: Event whose edits invalidate held state
        event_names: Recognised event function names

    Returns:
        Patch or FullReset
    """
    if old is None or delta is None:
        return FullReset("first load")

    if is_bare(old.structural_tree, event_names) or is_bare(new.structural_tree, event_names):
        return FullReset("reduced mode sketch")

    if init_event in delta.events.changed or init_event in delta.methods.changed:
        return FullReset(f"{init_event} changed")

    if delta.globals:
        return FullReset(f"globals changed: {', '.join(sorted(delta.globals.changed))}")

    return Patch(delta)
