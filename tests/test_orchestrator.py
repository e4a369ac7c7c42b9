"""Tests for the reload orchestrator and its state machine."""

import pytest

from livesketch.config import SketchConfig
from livesketch.exceptions import TrackedFileError
from livesketch.reload import FullReset, InterpreterState, Patch, ReloadOrchestrator
from livesketch.reload.orchestrator import describe_error, imported_modules
from livesketch.runtime import DrawCommand
from livesketch.structure import parse


SKETCH = """\
def setup():
    background(0)

def draw():
    circle(50, 50, 10)
"""

ERROR_SCREEN = ["fill", "rect", "fill", "rect", "fill", "text"]


def circles(frame):
    return [command.args for command in frame.commands if command.name == "circle"]


# ============================================================
# Loading and the state machine
# ============================================================

class TestLoad:
    def test_first_load(self, orchestrator):
        assert orchestrator.state is InterpreterState.NO_SKETCH
        orchestrator.load("def draw():\n    circle(50, 50, 10)\n")
        assert orchestrator.state is InterpreterState.RUNNING
        assert orchestrator.env.events == {"draw"}
        assert orchestrator.last_decision == FullReset("first load")

    def test_first_load_draws(self, orchestrator, render):
        orchestrator.load(SKETCH)
        orchestrator.on_setup()
        frame = render()
        assert circles(frame) == [(50, 50, 10)]

    def test_load_does_not_run_setup(self, orchestrator, renderer):
        orchestrator.load(SKETCH)
        assert renderer.current == []
        orchestrator.on_setup()
        assert renderer.current == [DrawCommand("background", (0,))]

    def test_load_syntax_error(self, orchestrator, render):
        orchestrator.load("def draw(:\n    pass\n")
        assert orchestrator.state is InterpreterState.ERROR
        assert isinstance(orchestrator.error, SyntaxError)
        assert render().names() == ERROR_SCREEN

    def test_load_runtime_error(self, orchestrator, console_output):
        orchestrator.load("def draw():\n    pass\n1 / 0\n")
        assert orchestrator.state is InterpreterState.ERROR
        assert orchestrator.error_message.startswith("ZeroDivisionError")
        assert "ZeroDivisionError" in console_output.getvalue()

    def test_load_file(self, orchestrator, sketch_files):
        path = sketch_files.write("sketch.py", SKETCH)
        orchestrator.load(path)
        assert orchestrator.state is InterpreterState.RUNNING
        assert orchestrator.main_path == path.resolve()
        assert path.resolve() in orchestrator.watcher

    def test_load_file_by_name(self, orchestrator, sketch_files):
        path = sketch_files.write("sketch.py", SKETCH)
        orchestrator.load(str(path))
        assert orchestrator.main_path == path.resolve()

    def test_load_missing_file(self, orchestrator, tmp_path):
        with pytest.raises(TrackedFileError):
            orchestrator.load(tmp_path / "missing.py")

    def test_except_name_sees_caught_exception(self, orchestrator):
        orchestrator.load(
            "e = None\n"
            "msg = ''\n"
            "try:\n"
            "    1 / 0\n"
            "except ZeroDivisionError as e:\n"
            "    msg = str(e)\n"
            "def draw():\n"
            "    pass\n"
        )
        assert orchestrator.state is InterpreterState.RUNNING
        assert orchestrator.env.state.msg == "division by zero"

    def test_walrus_rebinds_global(self, orchestrator):
        orchestrator.load("n = 0\nif (n := 5) > 1:\n    result = n\ndef draw():\n    pass\n")
        assert orchestrator.env.state.result == 5
        assert orchestrator.env.namespace["n"] == 5

    def test_comprehension_does_not_touch_state(self, orchestrator):
        orchestrator.load("x = 100\nsquares = [x * x for x in range(3)]\ndef draw():\n    pass\n")
        assert orchestrator.env.state.x == 100
        assert orchestrator.env.state.squares == [0, 1, 4]


class TestReload:
    def test_draw_body_change_is_patched(self, orchestrator, render):
        orchestrator.load(SKETCH)
        env = orchestrator.env
        decision = orchestrator.reload(SKETCH.replace("circle(50, 50, 10)", "circle(80, 80, 10)"))
        assert isinstance(decision, Patch)
        assert orchestrator.env is env
        assert orchestrator.env.methods == set()
        assert orchestrator.env.globals == set()
        assert circles(render()) == [(80, 80, 10)]

    def test_new_global_is_full_reset(self, orchestrator):
        orchestrator.load(SKETCH)
        env = orchestrator.env
        decision = orchestrator.reload("counter = 0\n" + SKETCH)
        assert decision == FullReset("globals changed: counter")
        assert orchestrator.env is not env
        assert orchestrator.env.state.counter == 0

    def test_setup_change_is_full_reset(self, orchestrator, renderer):
        orchestrator.load(SKETCH)
        renderer.begin_frame()
        decision = orchestrator.reload(SKETCH.replace("background(0)", "background(7)"))
        assert decision == FullReset("setup changed")
        assert DrawCommand("background", (7,)) in renderer.current

    def test_syntax_error_keeps_last_good_frame(self, orchestrator, render):
        orchestrator.load(SKETCH)
        good = render()
        assert orchestrator.reload("def draw(:\n") is None
        assert orchestrator.state is InterpreterState.ERROR
        assert orchestrator.last_frame == good
        frame = render()
        assert frame.commands[0] == DrawCommand("image", (good,))
        assert frame.names()[1:] == ERROR_SCREEN

    def test_error_screen_layout(self, orchestrator, render):
        orchestrator.load("def draw(:\n")
        frame = render()
        assert frame.commands[0] == DrawCommand("fill", (255, 255, 255, 128))
        assert frame.commands[1] == DrawCommand("rect", (0, 0, 200, 100))
        assert frame.commands[3] == DrawCommand("rect", (0, 25, 200, 35))
        text = frame.commands[5]
        assert text.args[0].startswith("SyntaxError")
        assert text.args[1:] == (10, 40)

    def test_recovery_is_full_reset(self, orchestrator, render):
        orchestrator.load(SKETCH)
        orchestrator.reload("def draw(:\n")
        decision = orchestrator.reload(SKETCH.replace("50, 50", "60, 60"))
        assert decision == FullReset("recovering from error")
        assert orchestrator.state is InterpreterState.RUNNING
        assert orchestrator.error is None
        assert circles(render()) == [(60, 60, 10)]

    def test_patch_keeps_state(self, orchestrator):
        text = "count = 0\n\ndef update():\n    count += 1\n\ndef draw():\n    circle(count, 0, 1)\n"
        orchestrator.load(text)
        orchestrator.on_update()
        orchestrator.on_update()
        decision = orchestrator.reload(text.replace("circle(count, 0, 1)", "circle(count, 0, 2)"))
        assert isinstance(decision, Patch)
        assert orchestrator.env.state.count == 2

    def test_patch_failure_moves_to_error(self, orchestrator):
        orchestrator.load(SKETCH)
        orchestrator.reload(SKETCH + "\nclass Ball(missing_base):\n    pass\n")
        assert orchestrator.state is InterpreterState.ERROR
        assert orchestrator.error_message == "NameError: name 'missing_base' is not defined"

    def test_forced_reload(self, orchestrator):
        orchestrator.load(SKETCH)
        assert isinstance(orchestrator.reload(SKETCH, forced=True), FullReset)


class TestHandlers:
    def test_runtime_error_in_draw(self, orchestrator, render):
        orchestrator.load("def draw():\n    circle(1, 1, 1)\n    1 / 0\n")
        frame = render()
        assert orchestrator.state is InterpreterState.ERROR
        assert circles(frame) == [(1, 1, 1)]
        assert render().names()[1:] == ERROR_SCREEN

    def test_handlers_do_not_run_outside_running(self, orchestrator, renderer):
        orchestrator.on_setup()
        orchestrator.on_draw()
        orchestrator.on_key_down(65)
        assert renderer.current == []

    def test_key_repeat(self, orchestrator):
        orchestrator.load(
            "log = []\n"
            "def key_down(key):\n    log.append(('down', key))\n"
            "def key_pressed(key):\n    log.append(('pressed', key))\n"
            "def key_up(key):\n    log.append(('up', key))\n"
        )
        for key in (65, 65, 65):
            orchestrator.on_key_down(key)
        orchestrator.on_key_up(65)
        orchestrator.on_key_down(66)
        assert orchestrator.env.state.log == [
            ("down", 65), ("pressed", 65), ("pressed", 65), ("up", 65), ("down", 66),
        ]

    def test_held_mouse_button_fires_every_frame(self, orchestrator, render):
        orchestrator.load(
            "log = []\n"
            "def mouse_down(x, y, button):\n    log.append(('down', x, y, button))\n"
            "def mouse_pressed(x, y, button):\n    log.append(('pressed', x, y, button))\n"
            "def mouse_dragged(x, y, button):\n    log.append(('dragged', x, y, button))\n"
            "def mouse_up(x, y, button):\n    log.append(('up', x, y, button))\n"
        )
        orchestrator.on_mouse_down(1, 2, 0)
        render()
        orchestrator.on_mouse_dragged(3, 4, 0)
        render()
        orchestrator.on_mouse_up(3, 4, 0)
        render()
        assert orchestrator.env.state.log == [
            ("down", 1, 2, "left"),
            ("pressed", 1, 2, "left"),
            ("dragged", 3, 4, "left"),
            ("pressed", 3, 4, "left"),
            ("up", 3, 4, "left"),
        ]

    def test_handlers_receive_only_declared_arguments(self, orchestrator):
        orchestrator.load("log = []\ndef mouse_down():\n    log.append('down')\n")
        orchestrator.on_mouse_down(1, 2, 2)
        assert orchestrator.env.state.log == ["down"]

    def test_window_resized(self, orchestrator, renderer):
        orchestrator.load("size = None\ndef window_resized(w, h):\n    size = (w, h, width())\n")
        orchestrator.on_window_resized(300, 150)
        assert orchestrator.env.state.size == (300, 150, 300)
        assert renderer.height == 150

    def test_exit(self, orchestrator):
        orchestrator.load("done = False\ndef exit():\n    done = True\n")
        orchestrator.on_exit()
        assert orchestrator.env.state.done is True

    def test_bare_sketch(self, orchestrator, render):
        orchestrator.load("circle(10, 10, 10)\n")
        assert orchestrator.env.bare
        assert circles(render()) == [(10, 10, 10)]
        decision = orchestrator.reload("circle(20, 20, 20)\n")
        assert decision == FullReset("reduced mode sketch")
        assert circles(render()) == [(20, 20, 20)]

    def test_unknown_mouse_button_is_named_by_index(self, orchestrator, render):
        orchestrator.load("log = []\ndef mouse_down(x, y, button):\n    log.append(button)\n")
        orchestrator.on_mouse_down(1, 2, 3)
        orchestrator.on_mouse_up(1, 2, 4)
        render()
        assert orchestrator.state is InterpreterState.RUNNING
        assert orchestrator.env.state.log == ["button3"]


class TestEventHooks:
    def test_hooks_run_around_handler(self, orchestrator, render):
        calls = []
        orchestrator.load("def draw():\n    circle(1, 1, 1)\n")
        orchestrator.before_event("draw", lambda: calls.append(("before", len(orchestrator.renderer.current))))
        orchestrator.after_event("draw", lambda: calls.append(("after", len(orchestrator.renderer.current))))
        render()
        assert calls == [("before", 0), ("after", 1)]

    def test_hooks_run_without_handler(self, orchestrator):
        calls = []
        orchestrator.load(SKETCH)
        orchestrator.before_event("update", lambda: calls.append("before"))
        orchestrator.after_event("update", lambda: calls.append("after"))
        orchestrator.on_update()
        assert calls == ["before", "after"]

    def test_hooks_survive_reloads(self, orchestrator, render):
        calls = []
        orchestrator.load(SKETCH)
        orchestrator.before_event("draw", lambda: calls.append("before"))
        orchestrator.reload("counter = 0\n" + SKETCH)
        render()
        assert calls == ["before"]

    def test_failing_hook_moves_to_error(self, orchestrator, render):
        def broken():
            raise RuntimeError("hook failed")

        orchestrator.load(SKETCH)
        orchestrator.before_event("draw", broken)
        frame = render()
        assert orchestrator.state is InterpreterState.ERROR
        assert orchestrator.error_message == "RuntimeError: hook failed"
        assert circles(frame) == []

    def test_after_hook_skipped_when_handler_fails(self, orchestrator, render):
        calls = []
        orchestrator.load("def draw():\n    1 / 0\n")
        orchestrator.after_event("draw", lambda: calls.append("after"))
        render()
        assert orchestrator.state is InterpreterState.ERROR
        assert calls == []

    def test_hooks_do_not_run_outside_running(self, orchestrator, render):
        calls = []
        orchestrator.before_event("draw", lambda: calls.append("before"))
        render()
        orchestrator.load("def draw(:\n")
        render()
        assert calls == []

    def test_unknown_event(self, orchestrator):
        with pytest.raises(ValueError, match="Unknown event 'paint'"):
            orchestrator.before_event("paint", lambda: None)


# ============================================================
# File watching
# ============================================================

class TestCheckForChanges:
    def test_no_change(self, orchestrator, sketch_files):
        orchestrator.load(sketch_files.write("sketch.py", SKETCH))
        assert orchestrator.check_for_changes() is False

    def test_edit_is_picked_up_by_render_loop(self, orchestrator, sketch_files, render):
        path = sketch_files.write("sketch.py", SKETCH)
        orchestrator.load(path)
        assert circles(render()) == [(50, 50, 10)]
        sketch_files.write("sketch.py", SKETCH.replace("50, 50", "70, 70"))
        assert circles(render()) == [(70, 70, 10)]
        assert isinstance(orchestrator.last_decision, Patch)

    def test_reload_cadence(self, renderer, console, sketch_files):
        orchestrator = ReloadOrchestrator(
            renderer=renderer, config=SketchConfig.for_testing(reload_interval_frames=3), console=console,
        )
        path = sketch_files.write("sketch.py", SKETCH)
        orchestrator.load(path)
        new_text = SKETCH.replace("50, 50", "70, 70")
        sketch_files.write("sketch.py", new_text)
        orchestrator.on_update()
        orchestrator.on_update()
        assert orchestrator.version.text == SKETCH
        orchestrator.on_update()
        assert orchestrator.version.text == new_text

    def test_error_state_keeps_polling(self, orchestrator, sketch_files, render):
        path = sketch_files.write("sketch.py", SKETCH)
        orchestrator.load(path)
        sketch_files.write("sketch.py", "def draw(:\n")
        render()
        assert orchestrator.state is InterpreterState.ERROR
        sketch_files.write("sketch.py", SKETCH)
        render()
        assert orchestrator.state is InterpreterState.RUNNING

    def test_missing_file_is_fatal(self, orchestrator, sketch_files, render):
        path = sketch_files.write("sketch.py", SKETCH)
        orchestrator.load(path)
        path.unlink()
        with pytest.raises(TrackedFileError):
            render()

    def test_dependency_module_is_reloaded(self, orchestrator, sketch_files, render):
        sketch_files.write("sketch_palette.py", "SHADE = 10\n")
        path = sketch_files.write(
            "sketch.py", "from sketch_palette import SHADE\n\ndef draw():\n    background(SHADE)\n"
        )
        orchestrator.load(path)
        assert orchestrator.dependencies == {(path.parent / "sketch_palette.py").resolve(): "sketch_palette"}
        assert render().commands == (DrawCommand("background", (10,)),)

        sketch_files.write("sketch_palette.py", "SHADE = 20\n")
        assert render().commands == (DrawCommand("background", (20,)),)

    def test_broken_dependency_moves_to_error(self, orchestrator, sketch_files, render):
        sketch_files.write("sketch_colors.py", "SHADE = 10\n")
        path = sketch_files.write("sketch.py", "import sketch_colors\n\ndef draw():\n    background(sketch_colors.SHADE)\n")
        orchestrator.load(path)
        sketch_files.write("sketch_colors.py", "SHADE = (\n")
        render()
        assert orchestrator.state is InterpreterState.ERROR
        assert isinstance(orchestrator.error, SyntaxError)


class TestHelpers:
    def test_describe_error(self):
        try:
            parse("x = (\n")
        except SyntaxError as e:
            assert describe_error(e).startswith("SyntaxError: ")
            assert "(line 1)" in describe_error(e)
        assert describe_error(ValueError("bad")) == "ValueError: bad"

    def test_imported_modules(self):
        tree = parse("import os.path, math\nfrom pkg import mod\nfrom other import *\nfrom . import rel\n").structural_tree
        assert imported_modules(tree) == ["os.path", "math", "pkg", "pkg.mod", "other"]
