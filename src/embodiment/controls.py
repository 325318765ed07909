# src/embodiment/controls.py
"""
Virtual input controls for the embodiment.

One mapping from control name to ButtonState. Writers (navigation, motion
actions, adapters via set_key) only ever touch `down`; the edge flags
`pressed` and `released` are derived here and cleared by end_frame(),
which the simulation clock calls exactly once per logical frame.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

log = logging.getLogger(__name__)

# Sink receiving every control write, typically WorldClient.set_input_key.
KeySink = Callable[[str, bool], None]

COMMON_CONTROLS: tuple[str, ...] = (
    "keyW", "keyA", "keyS", "keyD", "space", "shiftLeft", "shiftRight",
    "controlLeft", "keyC", "keyF", "keyE", "arrowUp", "arrowDown",
    "arrowLeft", "arrowRight", "touchA", "touchB", "xrLeftBtn1",
    "xrLeftBtn2", "xrRightBtn1", "xrRightBtn2",
)

# Hotbar keys pressed by use_item(slot).
ITEM_SLOT_KEYS: tuple[str, ...] = tuple(f"key{slot}" for slot in range(1, 10))

# Keys navigation owns: WASD plus the run modifier.
MOVEMENT_KEYS: tuple[str, ...] = ("keyW", "keyA", "keyS", "keyD", "shiftLeft")
RUN_MODIFIER = "shiftLeft"
CROUCH_KEY = "controlLeft"


@dataclass
class ButtonState:
    down: bool = False
    pressed: bool = False
    released: bool = False

    def is_up(self) -> bool:
        return not (self.down or self.pressed or self.released)


class ControlRegistry:
    """Named ButtonStates with single-frame press/release edge detection."""

    def __init__(
        self,
        names: Iterable[str] = COMMON_CONTROLS,
        *,
        sink: Optional[KeySink] = None,
    ) -> None:
        self._buttons: Dict[str, ButtonState] = {name: ButtonState() for name in names}
        self._sink = sink

    def set_sink(self, sink: Optional[KeySink]) -> None:
        self._sink = sink

    def set_key(self, name: str, is_down: bool) -> None:
        """
        Write the held state of a control.

        Unknown controls are created on first use. Every write is forwarded
        to the sink, changed or not; edge flags only move on a change.
        """
        state = self._buttons.get(name)
        if state is None:
            log.warning("set_key on unknown control %r; creating it", name)
            state = ButtonState()
            self._buttons[name] = state

        is_down = bool(is_down)
        if is_down and not state.down:
            state.pressed = True
            state.released = False
        elif not is_down and state.down:
            state.released = True
            state.pressed = False
        state.down = is_down

        if self._sink is not None:
            self._sink(name, is_down)

    def release(self, names: Iterable[str]) -> None:
        for name in names:
            self.set_key(name, False)

    def end_frame(self) -> None:
        """Clear pressed/released on every control."""
        for state in self._buttons.values():
            state.pressed = False
            state.released = False

    def get(self, name: str) -> Optional[ButtonState]:
        return self._buttons.get(name)

    def is_down(self, name: str) -> bool:
        state = self._buttons.get(name)
        return state.down if state is not None else False

    def names(self) -> List[str]:
        return list(self._buttons)

    def snapshot(self) -> Dict[str, ButtonState]:
        return {
            name: ButtonState(s.down, s.pressed, s.released)
            for name, s in self._buttons.items()
        }

    def reset(self) -> None:
        """Drop all held state without emitting writes."""
        for state in self._buttons.values():
            state.down = False
            state.pressed = False
            state.released = False


__all__ = [
    "ButtonState",
    "ControlRegistry",
    "KeySink",
    "COMMON_CONTROLS",
    "ITEM_SLOT_KEYS",
    "MOVEMENT_KEYS",
    "RUN_MODIFIER",
    "CROUCH_KEY",
]
