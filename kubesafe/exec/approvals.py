"""Allowlist of commands the operator approved with "allow always"."""

from pathlib import Path

from filelock import FileLock
from loguru import logger

from kubesafe.utils.helpers import ensure_dir, write_text_atomic

_HEADER = "# kubesafe allowlist: one exact command per line\n"


def _parse_lines(text: str) -> list[str]:
    entries = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped not in entries:
            entries.append(stripped)
    return entries


class Allowlist:
    """
    Persisted set of exact command strings that skip confirmation.

    The file is plain text, one command per line; blank lines and ``#``
    comments are ignored. Matching is exact on the stripped command, never
    a pattern.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._entries: list[str] | None = None

    @property
    def _lock(self) -> FileLock:
        return FileLock(str(self.path) + ".lock", timeout=10)

    def load(self) -> list[str]:
        """Load the allowlist from disk. A missing file is an empty list."""
        if not self.path.exists():
            self._entries = []
            return []

        try:
            self._entries = _parse_lines(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            logger.warning(f"Error loading allowlist {self.path}: {e}")
            self._entries = []
        else:
            logger.debug(f"Loaded {len(self._entries)} allowlist entries from {self.path}")
        return list(self._entries)

    def entries(self) -> list[str]:
        if self._entries is None:
            self.load()
        return list(self._entries)

    def is_allowed(self, command: str) -> bool:
        return command.strip() in self.entries()

    def add(self, command: str) -> bool:
        """
        Append a command. Idempotent.

        Returns:
            True if the command was added, False if it was already present.
        """
        command = command.strip()
        if not command or "\n" in command or "\r" in command:
            raise ValueError("Allowlist entries must be a single non-empty line")

        ensure_dir(self.path.parent)
        with self._lock:
            on_disk = (
                _parse_lines(self.path.read_text(encoding="utf-8")) if self.path.exists() else []
            )
            if command in on_disk:
                self._entries = on_disk
                return False

            with open(self.path, "a", encoding="utf-8") as f:
                if f.tell() == 0:
                    f.write(_HEADER)
                f.write(command + "\n")
            self._entries = on_disk + [command]

        logger.info(f"Added to allowlist: {command}")
        return True

    def remove(self, command: str) -> bool:
        """
        Remove a command, rewriting the file atomically.

        Returns:
            True if the command was present.
        """
        command = command.strip()
        if not self.path.exists():
            return False

        with self._lock:
            lines = self.path.read_text(encoding="utf-8").splitlines()
            kept = [line for line in lines if line.strip() != command]
            if len(kept) == len(lines):
                return False
            write_text_atomic(self.path, "\n".join(kept) + "\n")
            self._entries = _parse_lines("\n".join(kept))

        logger.info(f"Removed from allowlist: {command}")
        return True
