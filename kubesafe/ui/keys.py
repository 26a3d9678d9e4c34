"""Translate prompt_toolkit key presses into the session's key names."""

from prompt_toolkit.key_binding.key_processor import KeyPress
from prompt_toolkit.keys import Keys

from kubesafe.confirm.types import PASTE_PREFIX

_NAMED = {
    Keys.ControlM: "enter",
    Keys.ControlJ: "enter",
    Keys.ControlH: "backspace",
    Keys.ControlI: "tab",
    Keys.Escape: "escape",
    Keys.ControlC: "ctrl-c",
    Keys.ControlD: "ctrl-d",
    Keys.ControlE: "ctrl-e",
    Keys.ControlU: "ctrl-u",
    Keys.ControlA: "home",
    Keys.Left: "left",
    Keys.Right: "right",
    Keys.Up: "up",
    Keys.Down: "down",
    Keys.Home: "home",
    Keys.End: "end",
    Keys.Delete: "delete",
}


def normalize_key(key_press: KeyPress) -> list[str]:
    """
    Map one key press to zero or more key names.

    Named keys become "enter", "escape", "ctrl-c" and so on; a printable
    character passes through unchanged. A bracketed paste becomes one
    ``paste:<text>`` key holding its printable characters, so pasted text
    is never read as individual keystrokes. Anything else maps to nothing.
    """
    key = key_press.key
    if key == Keys.BracketedPaste:
        text = "".join(ch for ch in key_press.data if ch.isprintable())
        return [PASTE_PREFIX + text] if text else []

    name = _NAMED.get(key)
    if name is not None:
        return [name]

    if isinstance(key, str) and len(key) == 1 and key.isprintable():
        return [key]
    return []
