"""SQLAlchemy ORM model for the audit trail."""

from sqlalchemy import CheckConstraint, Column, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class AuditLogRow(Base):
    """
    One attempted command: executed, edited or cancelled.

    Rows are inserted once and never updated. ``timestamp`` is stored as
    integer epoch seconds (UTC).
    """
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(Integer, nullable=False)
    user_id = Column(String(255), nullable=False)

    # What was asked and what ran
    natural_language_input = Column(Text, nullable=False)
    final_command = Column(Text, nullable=False)
    original_command = Column(Text, nullable=True)  # AI proposal when the user edited it
    confidence = Column(Integer, nullable=True)  # NULL for direct entry
    risk_level = Column(String(10), nullable=False)

    # Where it ran
    environment_name = Column(String(255), nullable=False)
    environment_class = Column(String(20), nullable=False)
    cluster = Column(String(255), nullable=False)
    namespace = Column(String(255), nullable=True)

    # Outcome
    exit_code = Column(Integer, nullable=True)
    stdout = Column(Text, nullable=True)
    stderr = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    user_action = Column(String(10), nullable=False)

    __table_args__ = (
        CheckConstraint("risk_level IN ('LOW', 'MEDIUM', 'HIGH')", name="ck_audit_risk_level"),
        CheckConstraint(
            "user_action IN ('EXECUTED', 'CANCELLED', 'EDITED')", name="ck_audit_user_action"
        ),
        CheckConstraint(
            "confidence IS NULL OR (confidence >= 0 AND confidence <= 100)",
            name="ck_audit_confidence",
        ),
        CheckConstraint(
            "user_action != 'CANCELLED' OR exit_code IS NULL", name="ck_audit_cancelled_exit"
        ),
        Index("idx_audit_timestamp", "timestamp"),
        Index("idx_audit_environment", "environment_name"),
        Index("idx_audit_user_action", "user_action"),
        Index("idx_audit_env_timestamp", "environment_name", "timestamp"),
    )
