"""
Recognised sketch events.

A sketch is made of top-level functions named after these events. The set is
closed: a function whose name is not listed here is an ordinary sketch method.
"""

SETUP = "setup"
UPDATE = "update"
DRAW = "draw"
EXIT = "exit"
WINDOW_RESIZED = "window_resized"
KEY_DOWN = "key_down"
KEY_PRESSED = "key_pressed"
KEY_UP = "key_up"
MOUSE_MOVED = "mouse_moved"
MOUSE_DRAGGED = "mouse_dragged"
MOUSE_DOWN = "mouse_down"
MOUSE_PRESSED = "mouse_pressed"
MOUSE_UP = "mouse_up"

EVENT_NAMES = frozenset({
    SETUP, UPDATE, DRAW, EXIT, WINDOW_RESIZED,
    KEY_DOWN, KEY_PRESSED, KEY_UP,
    MOUSE_MOVED, MOUSE_DRAGGED, MOUSE_DOWN, MOUSE_PRESSED, MOUSE_UP,
})

# Mouse buttons as delivered by front-ends
BUTTON_NAMES = {0: "left", 1: "middle", 2: "right"}


def button_name(button: int) -> str:
    """Translate a front-end button index into the name handlers receive.

    Buttons beyond the three standard ones are named by index (``"button3"``).
    """
    return BUTTON_NAMES.get(button, f"button{button}")
