"""Full-screen terminal UI."""

from kubesafe.ui.keys import normalize_key
from kubesafe.ui.loop import InteractionLoop
from kubesafe.ui.render import render_screen
from kubesafe.ui.terminal import TerminalGuard

__all__ = ["normalize_key", "InteractionLoop", "render_screen", "TerminalGuard"]
