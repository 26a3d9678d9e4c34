"""Single-threaded interaction loop: keys in, state transitions, repaint."""

import asyncio

from loguru import logger
from prompt_toolkit.key_binding.key_processor import KeyPress
from rich.console import Console

from kubesafe.session import ShellSession
from kubesafe.ui.keys import normalize_key
from kubesafe.ui.render import render_screen
from kubesafe.ui.terminal import TerminalGuard

POLL_INTERVAL_SECONDS = 0.1

_EOF = None


class InteractionLoop:
    """
    Drive a ShellSession from the terminal.

    Each iteration waits at most 100 ms for a key, dispatches whatever
    arrived, advances the spinner, collects finished tasks and repaints.
    Translation and execution run as tasks on the same loop, so the screen
    stays live while they are outstanding.
    """

    def __init__(self, session: ShellSession, console: Console | None = None):
        self.session = session
        self.console = console or Console()

    def _dispatch(self, key_press: KeyPress) -> None:
        for key in normalize_key(key_press):
            self.session.handle_key(key)

    def _repaint(self, guard: TerminalGuard) -> None:
        guard.update(render_screen(self.session, self.console.size.height))

    async def run(self) -> None:
        keys: asyncio.Queue[KeyPress | None] = asyncio.Queue()
        session = self.session

        with TerminalGuard(self.console) as guard:
            terminal_input = guard.input

            def on_input_ready() -> None:
                for key_press in terminal_input.read_keys():
                    keys.put_nowait(key_press)
                if terminal_input.closed:
                    keys.put_nowait(_EOF)

            try:
                with terminal_input.attach(on_input_ready):
                    self._repaint(guard)
                    while not session.should_exit:
                        try:
                            key_press = await asyncio.wait_for(keys.get(), timeout=POLL_INTERVAL_SECONDS)
                        except asyncio.TimeoutError:
                            # A lone Escape is only reported once the parser gives up waiting
                            for pending in terminal_input.flush_keys():
                                self._dispatch(pending)
                        else:
                            if key_press is _EOF:
                                logger.info("Input closed, leaving shell")
                                session.should_exit = True
                            else:
                                self._dispatch(key_press)
                                while not keys.empty():
                                    queued = keys.get_nowait()
                                    if queued is _EOF:
                                        session.should_exit = True
                                        break
                                    self._dispatch(queued)

                        session.tick()
                        session.poll()
                        self._repaint(guard)
            finally:
                await session.shutdown()
