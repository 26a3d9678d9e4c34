"""Command validation, allowlist and execution."""

from kubesafe.exec.types import CommandAnalysis, ExecutionResult
from kubesafe.exec.safety import analyze_command, parse_command, resolve_executable
from kubesafe.exec.approvals import Allowlist
from kubesafe.exec.executor import execute_command
from kubesafe.exec.hints import FailureHint, explain_failure

__all__ = [
    "CommandAnalysis",
    "ExecutionResult",
    "analyze_command",
    "parse_command",
    "resolve_executable",
    "Allowlist",
    "execute_command",
    "FailureHint",
    "explain_failure",
]
