"""Type definitions for the audit trail."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from kubesafe.kubectl.types import EnvironmentClass, EnvironmentContext, RiskLevel
from kubesafe.utils.helpers import current_user


class UserAction(str, Enum):
    """How an attempt ended."""
    EXECUTED = "EXECUTED"
    CANCELLED = "CANCELLED"
    EDITED = "EDITED"  # The operator's edit of the proposal was executed


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuditLogEntry:
    """
    One attempted command and its outcome.

    ``id`` is None until the entry has been recorded. Entries are never
    mutated after that.
    """
    natural_language_input: str
    final_command: str
    risk_level: RiskLevel
    user_action: UserAction
    environment_name: str
    environment_class: EnvironmentClass
    cluster: str
    namespace: str | None = None
    original_command: str | None = None
    confidence: int | None = None
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    duration_ms: int | None = None
    user_id: str = field(default_factory=current_user)
    timestamp: datetime = field(default_factory=_utcnow)
    id: int | None = None

    @classmethod
    def for_context(
        cls,
        context: EnvironmentContext,
        *,
        natural_language_input: str,
        final_command: str,
        risk_level: RiskLevel,
        user_action: UserAction,
        **kwargs,
    ) -> "AuditLogEntry":
        """Build an entry with the environment fields taken from ``context``."""
        return cls(
            natural_language_input=natural_language_input,
            final_command=final_command,
            risk_level=risk_level,
            user_action=user_action,
            environment_name=context.name,
            environment_class=context.environment_class,
            cluster=context.cluster,
            namespace=context.namespace,
            **kwargs,
        )
