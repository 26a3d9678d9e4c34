"""Single-line input buffer with cursor and bounded history."""

from collections import deque

MAX_HISTORY = 1000


class LineEditor:
    """The operator's input line."""

    def __init__(self, max_history: int = MAX_HISTORY):
        self.text = ""
        self.cursor = 0
        self.history: deque[str] = deque(maxlen=max_history)
        self._history_index: int | None = None
        self._draft = ""

    def set(self, text: str) -> None:
        self.text = text
        self.cursor = len(text)
        self._history_index = None

    def clear(self) -> None:
        self.set("")

    def insert(self, chars: str) -> None:
        self.text = self.text[:self.cursor] + chars + self.text[self.cursor:]
        self.cursor += len(chars)

    def backspace(self) -> None:
        if self.cursor > 0:
            self.text = self.text[:self.cursor - 1] + self.text[self.cursor:]
            self.cursor -= 1

    def delete(self) -> None:
        self.text = self.text[:self.cursor] + self.text[self.cursor + 1:]

    def left(self) -> None:
        self.cursor = max(0, self.cursor - 1)

    def right(self) -> None:
        self.cursor = min(len(self.text), self.cursor + 1)

    def home(self) -> None:
        self.cursor = 0

    def end(self) -> None:
        self.cursor = len(self.text)

    def remember(self, line: str) -> None:
        """Append a submitted line to history, skipping immediate repeats."""
        if line and (not self.history or self.history[-1] != line):
            self.history.append(line)
        self._history_index = None

    def previous(self) -> None:
        if not self.history:
            return
        if self._history_index is None:
            self._draft = self.text
            self._history_index = len(self.history) - 1
        elif self._history_index > 0:
            self._history_index -= 1
        self.text = self.history[self._history_index]
        self.cursor = len(self.text)

    def next(self) -> None:
        if self._history_index is None:
            return
        if self._history_index < len(self.history) - 1:
            self._history_index += 1
            self.text = self.history[self._history_index]
        else:
            self._history_index = None
            self.text = self._draft
        self.cursor = len(self.text)
