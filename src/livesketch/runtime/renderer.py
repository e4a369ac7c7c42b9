"""
Headless recording renderer.

Stands in for a graphics back-end: every drawing call is recorded as a
DrawCommand in the current frame, so the render loop and the reload engine
can run without a window and tests can assert on what a sketch drew.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from ..config import DEFAULT_INITIAL_HEIGHT, DEFAULT_INITIAL_WIDTH

# Finished frames kept by a renderer; older ones are dropped
DEFAULT_FRAME_HISTORY = 60


@dataclass(frozen=True)
class DrawCommand:
    """
    One recorded drawing call.

    ::: This is-in-layer Infrastructure-Layer.
    ::: This is a value-object.
    ::: This is stateless.
    """
    name: str
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class Frame:
    """A captured frame: its size and the commands that produced it."""
    width: int
    height: int
    commands: Tuple[DrawCommand, ...] = ()

    def names(self) -> List[str]:
        return [command.name for command in self.commands]


def _color(args: Tuple) -> Tuple:
    # gray, gray+alpha, rgb, rgba
    if len(args) not in (1, 2, 3, 4):
        raise TypeError(f"color takes 1 to 4 components ({len(args)} given)")
    return tuple(args)


@dataclass
class RecordingRenderer:
    """
    Renderer that records draw commands frame by frame.

    ::: This is-in-layer Infrastructure-Layer.
    ::: This is a adapter.
    ::: This is stateful.

    Only the last ``history`` finished frames are kept in ``frames``.
    """
    width: int = DEFAULT_INITIAL_WIDTH
    height: int = DEFAULT_INITIAL_HEIGHT
    history: int = DEFAULT_FRAME_HISTORY
    frames: Deque[Frame] = field(default_factory=deque)
    current: List[DrawCommand] = field(default_factory=list)
    fill_color: Optional[Tuple] = (255,)
    stroke_color: Optional[Tuple] = (0,)
    frame_count: int = 0

    def __post_init__(self):
        self.frames = deque(self.frames, maxlen=self.history)

    def _record(self, name: str, *args) -> None:
        self.current.append(DrawCommand(name, args))

    # Frame lifecycle

    def begin_frame(self) -> None:
        self.current = []

    def end_frame(self) -> Frame:
        frame = Frame(self.width, self.height, tuple(self.current))
        self.frames.append(frame)
        self.frame_count += 1
        return frame

    def grab_frame(self) -> Frame:
        """Snapshot of what is on screen: the last finished frame, or the partial one."""
        if self.current or not self.frames:
            return Frame(self.width, self.height, tuple(self.current))
        return self.frames[-1]

    def draw_frame(self, frame: Frame) -> None:
        self._record("image", frame)

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    # Primitives

    def background(self, *color) -> None:
        self._record("background", *_color(color))

    def fill(self, *color) -> None:
        self.fill_color = _color(color)
        self._record("fill", *self.fill_color)

    def no_fill(self) -> None:
        self.fill_color = None
        self._record("no_fill")

    def stroke(self, *color) -> None:
        self.stroke_color = _color(color)
        self._record("stroke", *self.stroke_color)

    def no_stroke(self) -> None:
        self.stroke_color = None
        self._record("no_stroke")

    def circle(self, x, y, radius) -> None:
        self._record("circle", x, y, radius)

    def ellipse(self, x, y, w, h) -> None:
        self._record("ellipse", x, y, w, h)

    def rect(self, x, y, w, h) -> None:
        self._record("rect", x, y, w, h)

    def line(self, x1, y1, x2, y2) -> None:
        self._record("line", x1, y1, x2, y2)

    def text(self, message, x, y) -> None:
        self._record("text", str(message), x, y)


def sketch_api(renderer: RecordingRenderer) -> Dict[str, Callable]:
    """Names injected into every sketch namespace."""
    return {
        "background": renderer.background,
        "fill": renderer.fill,
        "no_fill": renderer.no_fill,
        "stroke": renderer.stroke,
        "no_stroke": renderer.no_stroke,
        "circle": renderer.circle,
        "ellipse": renderer.ellipse,
        "rect": renderer.rect,
        "line": renderer.line,
        "text": renderer.text,
        "width": lambda: renderer.width,
        "height": lambda: renderer.height,
        "frame_count": lambda: renderer.frame_count,
    }
