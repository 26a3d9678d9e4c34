"""Durable audit trail of attempted commands."""

from kubesafe.audit.types import AuditLogEntry, UserAction
from kubesafe.audit.filters import (
    AuditFilter,
    DateRange,
    EnvironmentClassFilter,
    EnvironmentFilter,
    parse_history_filter,
)
from kubesafe.audit.store import AuditLog, truncate_output

__all__ = [
    "AuditLogEntry",
    "UserAction",
    "AuditFilter",
    "DateRange",
    "EnvironmentClassFilter",
    "EnvironmentFilter",
    "parse_history_filter",
    "AuditLog",
    "truncate_output",
]
