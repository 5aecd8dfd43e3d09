"""Key-token to navigation-action bindings."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .state import Action


@dataclass(frozen=True)
class KeyBinding:
    """Mapping from one or more key tokens to a single action."""

    combos: tuple[str, ...]
    action: Action


class KeyMap:
    """Small key-dispatch table with optional key normalization strategy."""

    def __init__(self, normalize: Callable[[str], str] | None = None) -> None:
        self._normalize = normalize if normalize is not None else self._identity
        self._actions: dict[str, Action] = {}

    @staticmethod
    def _identity(key: str) -> str:
        return key

    def register_binding(self, binding: KeyBinding) -> KeyMap:
        """Register one binding, overwriting existing actions for same combos."""
        for combo in binding.combos:
            self._actions[self._normalize(combo)] = binding.action
        return self

    def register_bindings(self, *bindings: KeyBinding) -> KeyMap:
        for binding in bindings:
            self.register_binding(binding)
        return self

    def action_for(self, key: str) -> Action | None:
        if not key:
            return None
        return self._actions.get(self._normalize(key))


BROWSE_BINDINGS = (
    KeyBinding(("UP", "k"), Action.UP),
    KeyBinding(("DOWN", "j"), Action.DOWN),
    KeyBinding(("PAGE_UP",), Action.PAGE_UP),
    KeyBinding(("PAGE_DOWN",), Action.PAGE_DOWN),
    KeyBinding(("HOME",), Action.HOME),
    KeyBinding(("END",), Action.END),
    KeyBinding(("RIGHT", "ENTER", "l"), Action.DESCEND),
    KeyBinding(("LEFT", "BACKSPACE", "h", "<"), Action.ASCEND),
    KeyBinding(("q", "CTRL_C"), Action.QUIT),
    KeyBinding(("?", "F1"), Action.TOGGLE_HELP),
    KeyBinding(("n",), Action.SORT_NAME),
    KeyBinding(("s",), Action.SORT_BLOCKS),
    KeyBinding(("S",), Action.SORT_SIZE),
    KeyBinding(("C",), Action.SORT_ITEMS),
    KeyBinding(("M",), Action.SORT_MTIME),
    KeyBinding(("r",), Action.REVERSE_SORT),
    KeyBinding(("t",), Action.TOGGLE_DIRS_FIRST),
    KeyBinding(("a",), Action.TOGGLE_APPARENT_SIZE),
    KeyBinding((".",), Action.TOGGLE_HIDDEN),
    KeyBinding(("%",), Action.TOGGLE_PERCENT),
    KeyBinding(("m",), Action.TOGGLE_MTIME),
    KeyBinding(("u",), Action.CYCLE_SHARED),
    KeyBinding(("y", "Y"), Action.CONFIRM),
)

SCAN_BINDINGS = (KeyBinding(("q", "CTRL_C", "ESC"), Action.QUIT),)


def browse_keymap() -> KeyMap:
    return KeyMap().register_bindings(*BROWSE_BINDINGS)


def scan_keymap() -> KeyMap:
    return KeyMap().register_bindings(*SCAN_BINDINGS)


__all__ = [
    "BROWSE_BINDINGS",
    "KeyBinding",
    "KeyMap",
    "SCAN_BINDINGS",
    "browse_keymap",
    "scan_keymap",
]
