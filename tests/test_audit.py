"""Tests for the audit log store, filters and history syntax."""

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from kubesafe.audit import (
    AuditLog,
    AuditLogEntry,
    DateRange,
    EnvironmentClassFilter,
    EnvironmentFilter,
    UserAction,
    parse_history_filter,
    truncate_output,
)
from kubesafe.audit.store import TRUNCATION_MARKER
from kubesafe.errors import AuditError
from kubesafe.kubectl.types import EnvironmentClass, EnvironmentContext, RiskLevel

PROD = EnvironmentContext(name="prod-eu", cluster="eu-1", namespace="shop")
DEV = EnvironmentContext(name="dev-local", cluster="kind")


def make_entry(context=PROD, action=UserAction.EXECUTED, command="kubectl get pods", **kwargs) -> AuditLogEntry:
    defaults = {"exit_code": 0 if action is not UserAction.CANCELLED else None, "confidence": 95}
    defaults.update(kwargs)
    return AuditLogEntry.for_context(
        context,
        natural_language_input="show pods",
        final_command=command,
        risk_level=RiskLevel.LOW,
        user_action=action,
        **defaults,
    )


@pytest.fixture
def audit(tmp_path: Path):
    log = AuditLog(tmp_path / "audit.db")
    yield log
    log.close()


# ── Record ──────────────────────────────────────────────────────────


class TestRecord:
    def test_assigns_increasing_ids(self, audit: AuditLog):
        first = audit.record(make_entry())
        second = audit.record(make_entry())
        assert second > first

    def test_roundtrip_fields(self, audit: AuditLog):
        audit.record(make_entry(
            original_command="kubectl get pods -A",
            stdout="NAME READY",
            stderr="warning",
            duration_ms=12,
        ))
        [entry] = audit.query()
        assert entry.id is not None
        assert entry.environment_name == "prod-eu"
        assert entry.environment_class is EnvironmentClass.PRODUCTION
        assert entry.cluster == "eu-1"
        assert entry.namespace == "shop"
        assert entry.risk_level is RiskLevel.LOW
        assert entry.user_action is UserAction.EXECUTED
        assert entry.original_command == "kubectl get pods -A"
        assert entry.stdout == "NAME READY"
        assert entry.duration_ms == 12
        assert entry.timestamp.tzinfo is not None

    def test_direct_entry_has_null_confidence(self, audit: AuditLog):
        audit.record(make_entry(confidence=None))
        assert audit.query()[0].confidence is None

    def test_cancelled_with_exit_code_rejected(self, audit: AuditLog):
        with pytest.raises(AuditError):
            audit.record(make_entry(action=UserAction.CANCELLED, exit_code=0))

    def test_future_timestamp_rejected(self, audit: AuditLog):
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        with pytest.raises(AuditError, match="future"):
            audit.record(make_entry(timestamp=future))

    def test_recorded_entry_cannot_be_recorded_again(self, audit: AuditLog):
        audit.record(make_entry())
        with pytest.raises(AuditError):
            audit.record(audit.query()[0])

    def test_output_truncated(self, tmp_path: Path):
        log = AuditLog(tmp_path / "audit.db", max_output_bytes=64)
        log.record(make_entry(stdout="y" * 1000))
        stdout = log.query()[0].stdout
        log.close()
        assert stdout == "y" * 64 + TRUNCATION_MARKER

    def test_check_constraint_in_database(self, audit: AuditLog, tmp_path: Path):
        conn = sqlite3.connect(tmp_path / "audit.db")
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO audit_log (timestamp, user_id, natural_language_input, final_command, "
                "risk_level, environment_name, environment_class, cluster, user_action) "
                "VALUES (0, 'u', 'x', 'kubectl get pods', 'EXTREME', 'e', 'unknown', 'c', 'EXECUTED')"
            )
        conn.close()


class TestTruncateOutput:
    def test_short_text_untouched(self):
        assert truncate_output("abc", 10) == "abc"

    def test_multibyte_boundary(self):
        # "é" is two bytes; a cut inside it must not produce garbage
        result = truncate_output("é" * 10, 5)
        assert result == "éé" + TRUNCATION_MARKER


# ── Query ───────────────────────────────────────────────────────────


class TestQuery:
    def test_most_recent_first_with_id_tiebreak(self, audit: AuditLog):
        now = datetime.now(timezone.utc).replace(microsecond=0)
        ids = [audit.record(make_entry(timestamp=now, command=f"kubectl get pods {i}")) for i in range(3)]
        older = audit.record(make_entry(timestamp=now - timedelta(minutes=5)))
        result = [e.id for e in audit.query()]
        assert result == [ids[2], ids[1], ids[0], older]

    def test_order_stable(self, audit: AuditLog):
        now = datetime.now(timezone.utc)
        for i in range(10):
            audit.record(make_entry(timestamp=now, command=f"kubectl get pods {i}"))
        first = [e.id for e in audit.query(limit=10)]
        assert first == [e.id for e in audit.query(limit=10)]

    def test_pagination(self, audit: AuditLog):
        for i in range(5):
            audit.record(make_entry(command=f"kubectl get pods {i}"))
        page0 = audit.query(limit=2, page=0)
        page1 = audit.query(limit=2, page=1)
        page2 = audit.query(limit=2, page=2)
        assert len(page0) == 2 and len(page1) == 2 and len(page2) == 1
        assert not {e.id for e in page0} & {e.id for e in page1}

    def test_limit_capped(self, audit: AuditLog):
        for i in range(3):
            audit.record(make_entry())
        assert len(audit.query(limit=10_000)) == 3
        assert len(audit.query(limit=0)) == 1

    def test_environment_filter(self, audit: AuditLog):
        audit.record(make_entry(PROD))
        audit.record(make_entry(DEV))
        entries = audit.query(EnvironmentFilter("dev-local"))
        assert [e.environment_name for e in entries] == ["dev-local"]

    def test_environment_class_filter(self, audit: AuditLog):
        audit.record(make_entry(PROD))
        audit.record(make_entry(DEV))
        assert audit.count(EnvironmentClassFilter(EnvironmentClass.PRODUCTION)) == 1

    def test_date_range(self, audit: AuditLog):
        now = datetime.now(timezone.utc)
        audit.record(make_entry(timestamp=now - timedelta(days=10)))
        audit.record(make_entry(timestamp=now - timedelta(days=2)))
        audit.record(make_entry(timestamp=now))
        assert audit.count(DateRange.last_days(7)) == 2
        window = DateRange(now - timedelta(days=11), now - timedelta(days=1))
        assert audit.count(window) == 2

    def test_count_all(self, audit: AuditLog):
        assert audit.count() == 0
        audit.record(make_entry())
        assert audit.count() == 1


# ── Retention ───────────────────────────────────────────────────────


class TestRetention:
    def test_sweep(self, audit: AuditLog):
        now = datetime.now(timezone.utc)
        audit.record(make_entry(timestamp=now - timedelta(days=120)))
        audit.record(make_entry(timestamp=now))
        assert audit.sweep(90) == 1
        assert audit.count() == 1

    def test_sweep_on_open(self, tmp_path: Path):
        path = tmp_path / "audit.db"
        log = AuditLog(path, retention_days=0)
        log.record(make_entry(timestamp=datetime.now(timezone.utc) - timedelta(days=100)))
        log.close()

        reopened = AuditLog(path, retention_days=90)
        assert reopened.count() == 0
        reopened.close()

    def test_wal_enabled(self, audit: AuditLog, tmp_path: Path):
        conn = sqlite3.connect(tmp_path / "audit.db")
        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        conn.close()
        assert mode.lower() == "wal"


# ── History syntax ──────────────────────────────────────────────────


class TestParseHistoryFilter:
    def test_empty_is_everything(self):
        assert parse_history_filter("  ") is None

    def test_today(self):
        f = parse_history_filter("today")
        assert isinstance(f, DateRange)
        assert f.start.hour == 0 and f.start.minute == 0

    @pytest.mark.parametrize("text", ["7", "7d", "7 days", "last 7 days", "LAST 7 DAYS"])
    def test_day_counts(self, text):
        f = parse_history_filter(text)
        assert isinstance(f, DateRange)
        age = datetime.now(timezone.utc) - f.start
        assert timedelta(days=6, hours=23) < age < timedelta(days=7, minutes=1)

    def test_last_week(self):
        assert isinstance(parse_history_filter("last week"), DateRange)

    def test_zero_days_rejected(self):
        with pytest.raises(ValueError):
            parse_history_filter("0")

    @pytest.mark.parametrize("text", ["1000000", "36501 days", "9999999999"])
    def test_huge_day_counts_rejected(self, text):
        with pytest.raises(ValueError):
            parse_history_filter(text)

    def test_longest_day_count_accepted(self):
        assert isinstance(DateRange.last_days(36500), DateRange)

    def test_class_word(self):
        assert parse_history_filter("production") == EnvironmentClassFilter(EnvironmentClass.PRODUCTION)

    def test_context_name(self):
        assert parse_history_filter("prod-eu") == EnvironmentFilter("prod-eu")
