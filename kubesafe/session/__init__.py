"""Interactive shell session state."""

from kubesafe.session.editor import LineEditor
from kubesafe.session.shell import ShellSession, TranscriptLine

__all__ = ["LineEditor", "ShellSession", "TranscriptLine"]
