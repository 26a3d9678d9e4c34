"""Type definitions for command execution."""

from dataclasses import dataclass, field


@dataclass
class ExecutionResult:
    """Result of running one approved command."""
    exit_code: int | None = None  # None when the process could not report one
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    stdout_truncated: bool = False
    stderr_truncated: bool = False
    timed_out: bool = False
    interrupted: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass
class CommandAnalysis:
    """Analysis of a command line before it is spawned."""
    ok: bool
    reason: str | None = None
    executable: str | None = None
    args: list[str] = field(default_factory=list)
    has_dangerous_chars: bool = False

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.args] if self.executable else []
