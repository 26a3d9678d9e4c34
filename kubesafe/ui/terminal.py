"""Terminal ownership: raw key input plus the alternate screen."""

import atexit
import signal
import sys
from contextlib import AbstractContextManager

from loguru import logger
from prompt_toolkit.input import Input, create_input
from rich.console import Console
from rich.live import Live

_RELEASE_SIGNALS = tuple(
    s for s in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None)) if s is not None
)


class TerminalGuard:
    """
    Hold the terminal in raw mode on the alternate screen.

    Entering switches the input to raw mode and starts a full-screen
    ``rich`` Live display (manual refresh only). Leaving restores both.
    ``release()`` is idempotent and is also wired to ``sys.excepthook``,
    ``atexit`` and SIGTERM/SIGHUP so the terminal is restored on every exit
    path.
    """

    def __init__(self, console: Console | None = None, input: Input | None = None):
        self.console = console or Console()
        self.input = input or create_input()
        self.live = Live(
            console=self.console,
            screen=True,
            auto_refresh=False,
            redirect_stdout=False,
            redirect_stderr=False,
        )
        self._raw_mode: AbstractContextManager | None = None
        self._active = False
        self._prev_excepthook = None
        self._prev_handlers: dict[int, object] = {}

    @property
    def active(self) -> bool:
        return self._active

    def __enter__(self) -> "TerminalGuard":
        self._raw_mode = self.input.raw_mode()
        self._raw_mode.__enter__()
        try:
            self.live.start()
        except Exception:
            self._raw_mode.__exit__(None, None, None)
            raise
        self._active = True
        self._install_hooks()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False

    def release(self) -> None:
        """Restore the terminal. Safe to call any number of times."""
        if not self._active:
            return
        self._active = False
        try:
            self.live.stop()
        finally:
            if self._raw_mode is not None:
                self._raw_mode.__exit__(None, None, None)
                self._raw_mode = None
            self._remove_hooks()

    def _install_hooks(self) -> None:
        previous = self._prev_excepthook = sys.excepthook

        def excepthook(exc_type, exc, tb):
            self.release()
            previous(exc_type, exc, tb)

        sys.excepthook = excepthook
        atexit.register(self.release)

        for signum in _RELEASE_SIGNALS:
            try:
                self._prev_handlers[signum] = signal.signal(signum, self._on_signal)
            except ValueError:
                # Not the main thread
                logger.debug(f"Cannot install handler for signal {signum}")

    def _remove_hooks(self) -> None:
        if self._prev_excepthook is not None:
            sys.excepthook = self._prev_excepthook
            self._prev_excepthook = None
        atexit.unregister(self.release)
        for signum, handler in self._prev_handlers.items():
            signal.signal(signum, handler)
        self._prev_handlers.clear()

    def _on_signal(self, signum, frame) -> None:
        logger.info(f"Received signal {signum}, restoring terminal")
        self.release()
        raise SystemExit(128 + signum)

    def update(self, renderable) -> None:
        self.live.update(renderable, refresh=True)
