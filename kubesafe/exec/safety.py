"""Command validation before execution."""

import re
import shlex
import shutil
from pathlib import Path

from kubesafe.exec.types import CommandAnalysis
from kubesafe.kubectl.types import TOOL_PREFIX

# Dangerous shell metacharacters; commands never reach a shell, but anything
# that only makes sense to one is refused outright
SHELL_METACHARS = re.compile(r'[;&|`$<>]')
CONTROL_CHARS = re.compile(r'[\r\n\x00]')


def resolve_executable(name: str) -> str | None:
    """Resolve an executable name to its full path."""
    if '/' in name:
        path = Path(name).expanduser().resolve()
        if path.exists() and path.is_file():
            return str(path)
        return None

    return shutil.which(name)


def parse_command(command: str) -> tuple[str | None, list[str]]:
    """Parse a command into executable and arguments."""
    try:
        parts = shlex.split(command)
        if not parts:
            return None, []
        return parts[0], parts[1:]
    except ValueError:
        return None, []


def analyze_command(command: str, prefix: str = TOOL_PREFIX) -> CommandAnalysis:
    """
    Check that a command is a single, plain invocation of the tool.

    Returns a CommandAnalysis; ``ok`` is False with a reason when the command
    is empty, lacks the tool prefix, contains control characters or shell
    metacharacters, or cannot be tokenised.
    """
    command = command.strip()

    if not command:
        return CommandAnalysis(ok=False, reason="Empty command")

    if CONTROL_CHARS.search(command):
        return CommandAnalysis(
            ok=False,
            reason="Control characters not allowed",
            has_dangerous_chars=True,
        )

    if not command.startswith(prefix):
        return CommandAnalysis(ok=False, reason=f"Only '{prefix.strip()}' commands can be run")

    match = SHELL_METACHARS.search(command)
    if match:
        return CommandAnalysis(
            ok=False,
            reason=f"Shell metacharacter '{match.group()}' not allowed (pipes, redirects and substitution are unsupported)",
            has_dangerous_chars=True,
        )

    executable, args = parse_command(command)
    if not executable:
        return CommandAnalysis(ok=False, reason="Could not parse command (unbalanced quotes?)")

    return CommandAnalysis(ok=True, executable=executable, args=args)
