"""Tests for the reload policy."""

import pytest

from livesketch.events import EVENT_NAMES
from livesketch.reload.policy import FullReset, Patch, decide
from livesketch.structure import CategorizedDelta, NameChanges, categorize, diff_versions, parse


SKETCH = """\
def setup():
    background(0)

def draw():
    circle(50, 50, 10)
"""


def decide_texts(old_text, new_text, **kwargs):
    old = parse(old_text)
    new = parse(new_text)
    delta = categorize(diff_versions(old, new), old.structural_tree, new.structural_tree, EVENT_NAMES)
    return decide(old, new, delta, **kwargs)


class TestDecide:
    def test_first_load_is_full_reset(self):
        decision = decide(None, parse(SKETCH), None)
        assert decision == FullReset("first load")

    def test_draw_body_change_patches(self):
        decision = decide_texts(SKETCH, SKETCH.replace("circle(50, 50, 10)", "circle(80, 80, 10)"))
        assert isinstance(decision, Patch)
        assert decision.delta.events.changed == {"draw"}

    def test_new_global_forces_reset(self):
        decision = decide_texts(SKETCH, "counter = 0\n" + SKETCH)
        assert decision == FullReset("globals changed: counter")

    def test_removed_global_forces_reset(self):
        decision = decide_texts("counter = 0\n" + SKETCH, SKETCH)
        assert isinstance(decision, FullReset)

    def test_setup_change_forces_reset(self):
        decision = decide_texts(SKETCH, SKETCH.replace("background(0)", "background(255)"))
        assert decision == FullReset("setup changed")

    def test_custom_init_event(self):
        new = SKETCH.replace("circle(50, 50, 10)", "circle(1, 1, 1)")
        assert decide_texts(SKETCH, new, init_event="draw") == FullReset("draw changed")

    def test_reduced_mode_forces_reset(self):
        decision = decide_texts("circle(1, 2, 3)\n", "circle(4, 5, 6)\n")
        assert decision == FullReset("reduced mode sketch")

    def test_switching_to_reduced_mode_forces_reset(self):
        decision = decide_texts(SKETCH, "circle(4, 5, 6)\n")
        assert decision == FullReset("reduced mode sketch")

    def test_added_method_patches(self):
        decision = decide_texts(SKETCH, SKETCH + "\ndef helper():\n    return 1\n")
        assert isinstance(decision, Patch)
        assert decision.delta.methods.added == {"helper"}

    def test_unchanged_text_patches(self):
        assert isinstance(decide_texts(SKETCH, SKETCH), Patch)

    @pytest.mark.parametrize("other", [
        CategorizedDelta(),
        CategorizedDelta(events=NameChanges(frozenset({"draw"}), frozenset({"draw"}))),
        CategorizedDelta(methods=NameChanges(added=frozenset({"helper"}))),
        CategorizedDelta(classes=NameChanges(removed=frozenset({"Ball"}))),
    ])
    def test_globals_always_force_reset(self, other):
        delta = CategorizedDelta(
            events=other.events,
            methods=other.methods,
            classes=other.classes,
            modules=other.modules,
            globals=NameChanges(added=frozenset({"x"})),
        )
        sketch = parse(SKETCH)
        assert isinstance(decide(sketch, sketch, delta), FullReset)
