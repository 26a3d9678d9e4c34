"""Audit query filters and the operator's history filter syntax."""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Union

from sqlalchemy import and_
from sqlalchemy.sql.elements import ColumnElement

from kubesafe.audit.models import AuditLogRow
from kubesafe.kubectl.types import EnvironmentClass

MAX_HISTORY_DAYS = 36500


def _epoch(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.astimezone()
    return int(value.timestamp())


@dataclass(frozen=True)
class DateRange:
    """Entries with start <= timestamp < end (end open when None)."""
    start: datetime
    end: datetime | None = None

    @classmethod
    def today(cls) -> "DateRange":
        """From local midnight onwards."""
        now = datetime.now().astimezone()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return cls(start=midnight)

    @classmethod
    def last_days(cls, days: int) -> "DateRange":
        if days < 1:
            raise ValueError("Number of days must be at least 1")
        if days > MAX_HISTORY_DAYS:
            raise ValueError(f"Number of days must be at most {MAX_HISTORY_DAYS}")
        try:
            start = datetime.now(timezone.utc) - timedelta(days=days)
        except OverflowError as e:
            raise ValueError(f"Number of days out of range: {days}") from e
        return cls(start=start)

    def clause(self) -> ColumnElement:
        condition = AuditLogRow.timestamp >= _epoch(self.start)
        if self.end is not None:
            condition = and_(condition, AuditLogRow.timestamp < _epoch(self.end))
        return condition

    def describe(self) -> str:
        start = self.start.astimezone().strftime("%Y-%m-%d %H:%M")
        if self.end is None:
            return f"since {start}"
        return f"{start} to {self.end.astimezone().strftime('%Y-%m-%d %H:%M')}"


@dataclass(frozen=True)
class EnvironmentFilter:
    """Entries for one exact context name."""
    name: str

    def clause(self) -> ColumnElement:
        return AuditLogRow.environment_name == self.name

    def describe(self) -> str:
        return f"context {self.name}"


@dataclass(frozen=True)
class EnvironmentClassFilter:
    """Entries for every context of one environment class."""
    environment_class: EnvironmentClass

    def clause(self) -> ColumnElement:
        return AuditLogRow.environment_class == self.environment_class.value

    def describe(self) -> str:
        return f"{self.environment_class.value} contexts"


AuditFilter = Union[DateRange, EnvironmentFilter, EnvironmentClassFilter]

_DAYS = re.compile(r"^(?:last\s+)?(\d+)\s*(?:d|days?)?$")
_CLASS_WORDS = {
    "production": EnvironmentClass.PRODUCTION,
    "staging": EnvironmentClass.STAGING,
    "development": EnvironmentClass.DEVELOPMENT,
}


def parse_history_filter(text: str) -> AuditFilter | None:
    """
    Turn operator words into a filter.

    "" => everything, "today", "week"/"last week", "7"/"7d"/"last 7 days",
    an environment class word ("production", "staging", "development"),
    otherwise an exact context name.

    Raises:
        ValueError: For a day count below 1 or above MAX_HISTORY_DAYS.
    """
    words = " ".join(text.split())
    lowered = words.lower()
    if not lowered:
        return None
    if lowered == "today":
        return DateRange.today()
    if lowered in ("week", "last week"):
        return DateRange.last_days(7)

    match = _DAYS.match(lowered)
    if match:
        return DateRange.last_days(int(match.group(1)))

    if lowered in _CLASS_WORDS:
        return EnvironmentClassFilter(_CLASS_WORDS[lowered])

    return EnvironmentFilter(words)
