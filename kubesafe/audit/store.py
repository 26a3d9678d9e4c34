"""Append-only SQLite audit log."""

import time
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger
from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from kubesafe.audit.filters import AuditFilter
from kubesafe.audit.models import AuditLogRow, Base
from kubesafe.audit.types import AuditLogEntry, UserAction
from kubesafe.config.schema import Config
from kubesafe.errors import AuditError
from kubesafe.kubectl.types import EnvironmentClass, RiskLevel
from kubesafe.utils.helpers import ensure_dir

TRUNCATION_MARKER = "\n\n[OUTPUT TRUNCATED]"
MAX_QUERY_LIMIT = 200


def truncate_output(text: str, max_bytes: int) -> str:
    """Cap text at ``max_bytes`` of UTF-8, appending the truncation marker when cut."""
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore") + TRUNCATION_MARKER


def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def _to_entry(row: AuditLogRow) -> AuditLogEntry:
    return AuditLogEntry(
        id=row.id,
        timestamp=datetime.fromtimestamp(row.timestamp, tz=timezone.utc),
        user_id=row.user_id,
        natural_language_input=row.natural_language_input,
        final_command=row.final_command,
        original_command=row.original_command,
        confidence=row.confidence,
        risk_level=RiskLevel(row.risk_level),
        environment_name=row.environment_name,
        environment_class=EnvironmentClass(row.environment_class),
        cluster=row.cluster,
        namespace=row.namespace,
        exit_code=row.exit_code,
        stdout=row.stdout or "",
        stderr=row.stderr or "",
        duration_ms=row.duration_ms,
        user_action=UserAction(row.user_action),
    )


class AuditLog:
    """
    Durable, queryable record of every attempted command.

    Opening the log creates the schema if needed, switches the database to
    WAL and sweeps entries older than ``retention_days``. Writes are single
    inserts; nothing is ever updated.
    """

    def __init__(
        self,
        database_path: str | Path,
        retention_days: int = 90,
        max_output_bytes: int = 10240,
    ):
        self.path = Path(database_path)
        self.retention_days = retention_days
        self.max_output_bytes = max_output_bytes

        ensure_dir(self.path.parent)
        self.engine = create_engine(
            f"sqlite:///{self.path}",
            connect_args={"check_same_thread": False, "timeout": 5},
            echo=False,
        )
        event.listen(self.engine, "connect", _set_sqlite_pragmas)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise AuditError(f"Cannot open audit log at {self.path}: {e}") from e

        if retention_days > 0:
            self.sweep(retention_days)

    @classmethod
    def from_config(cls, config: Config) -> "AuditLog":
        return cls(
            config.audit_path,
            retention_days=config.audit.retention_days,
            max_output_bytes=config.audit.max_output_bytes,
        )

    def _validate(self, entry: AuditLogEntry) -> None:
        if entry.id is not None:
            raise AuditError(f"Entry {entry.id} has already been recorded")
        if int(entry.timestamp.timestamp()) > int(time.time()):
            raise AuditError("Audit timestamp is in the future")
        if entry.user_action is UserAction.CANCELLED and entry.exit_code is not None:
            raise AuditError("A cancelled attempt cannot have an exit code")
        if entry.confidence is not None and not 0 <= entry.confidence <= 100:
            raise AuditError(f"Confidence {entry.confidence} is outside 0-100")
        if not entry.final_command.strip():
            raise AuditError("Audit entry has no command")

    def record(self, entry: AuditLogEntry) -> int:
        """
        Persist one entry.

        Returns:
            The id assigned to the new row.

        Raises:
            AuditError: On an invariant violation or a database failure.
        """
        self._validate(entry)

        row = AuditLogRow(
            timestamp=int(entry.timestamp.timestamp()),
            user_id=entry.user_id,
            natural_language_input=entry.natural_language_input,
            final_command=entry.final_command,
            original_command=entry.original_command,
            confidence=entry.confidence,
            risk_level=RiskLevel(entry.risk_level).value,
            environment_name=entry.environment_name,
            environment_class=EnvironmentClass(entry.environment_class).value,
            cluster=entry.cluster,
            namespace=entry.namespace,
            exit_code=entry.exit_code,
            stdout=truncate_output(entry.stdout, self.max_output_bytes),
            stderr=truncate_output(entry.stderr, self.max_output_bytes),
            duration_ms=entry.duration_ms,
            user_action=UserAction(entry.user_action).value,
        )

        session = self._session_factory()
        try:
            session.add(row)
            session.commit()
            row_id = row.id
        except SQLAlchemyError as e:
            session.rollback()
            raise AuditError(f"Failed to write audit entry: {e}") from e
        finally:
            session.close()

        logger.debug(f"Audit #{row_id}: {entry.user_action.value} {entry.final_command}")
        return row_id

    def query(
        self,
        audit_filter: AuditFilter | None = None,
        limit: int = 20,
        page: int = 0,
    ) -> list[AuditLogEntry]:
        """
        Most recent entries first, ties broken by id so pages are stable.

        ``limit`` is clamped to 1..200 and ``page`` is zero-based.
        """
        limit = max(1, min(limit, MAX_QUERY_LIMIT))
        page = max(0, page)

        session = self._session_factory()
        try:
            q = session.query(AuditLogRow)
            if audit_filter is not None:
                q = q.filter(audit_filter.clause())
            rows = (
                q.order_by(AuditLogRow.timestamp.desc(), AuditLogRow.id.desc())
                .offset(page * limit)
                .limit(limit)
                .all()
            )
            return [_to_entry(r) for r in rows]
        except SQLAlchemyError as e:
            raise AuditError(f"Failed to query audit log: {e}") from e
        finally:
            session.close()

    def count(self, audit_filter: AuditFilter | None = None) -> int:
        session = self._session_factory()
        try:
            q = session.query(AuditLogRow)
            if audit_filter is not None:
                q = q.filter(audit_filter.clause())
            return q.count()
        except SQLAlchemyError as e:
            raise AuditError(f"Failed to count audit entries: {e}") from e
        finally:
            session.close()

    def sweep(self, days: int) -> int:
        """Delete entries older than ``days`` days. Returns how many went."""
        cutoff = int(time.time()) - days * 86400
        session = self._session_factory()
        try:
            deleted = (
                session.query(AuditLogRow)
                .filter(AuditLogRow.timestamp < cutoff)
                .delete(synchronize_session=False)
            )
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise AuditError(f"Retention sweep failed: {e}") from e
        finally:
            session.close()

        if deleted:
            logger.info(f"Audit retention sweep removed {deleted} entries older than {days} days")
        return deleted

    def close(self) -> None:
        self.engine.dispose()
