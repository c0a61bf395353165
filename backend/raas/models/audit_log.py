"""
Audit Log Model

This module defines the AuditLog model: the append-only trail of attempted
business operations across the procurement modules (contracts, amendments,
consultations, submissions, mail, archive).

The audit_log table is created by migration 001_audit_log.
"""
import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Enum as SQLEnum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from raas.core.database import Base


class AuditAction(str, enum.Enum):
    """Closed set of audited operation kinds."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    READ = "READ"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    SUBMIT = "SUBMIT"
    CANCEL = "CANCEL"
    ARCHIVE = "ARCHIVE"
    RESTORE = "RESTORE"


class AuditStatus(str, enum.Enum):
    """Outcome of an audited operation."""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PARTIAL = "PARTIAL"


class AuditLog(Base):
    """
    One immutable entry describing a single attempted operation.

    Records are written exclusively by the AuditRecorder and never updated
    or deleted by the application. entity_name/entity_id are an opaque
    reference to the subject; the referenced row is not required to exist.

    Payload columns (old_values, new_values, parameters, metadata) hold
    serialized JSON text whose shape is defined by the caller.
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_log_entity", "entity_name", "entity_id"),
        Index("ix_audit_log_username_timestamp", "username", "timestamp"),
        Index("ix_audit_log_status_timestamp", "status", "timestamp"),
    )

    # SQLite only autoincrements INTEGER PRIMARY KEY columns
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    # Subject reference
    entity_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Logical type of the affected record (e.g., 'Contract', 'Submission')"
    )
    entity_id: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Key of the affected record"
    )

    action: Mapped[AuditAction] = mapped_column(
        SQLEnum(AuditAction, native_enum=False, length=20),
        nullable=False,
    )

    # Actor (username is null for unauthenticated or system actions)
    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Set by the recorder at commit time
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    duration: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        nullable=True,
        comment="Elapsed time of the audited operation in milliseconds"
    )

    method_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    # Serialized payloads
    old_values: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_values: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    parameters: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[Optional[str]] = mapped_column("metadata", Text, nullable=True)

    # Outcome
    status: Mapped[AuditStatus] = mapped_column(
        SQLEnum(AuditStatus, native_enum=False, length=20),
        nullable=False,
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Classification labels
    module: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Functional module (e.g., 'CONTRACT', 'CONSULTATION')"
    )
    business_process: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Business process (e.g., 'CONTRACT_APPROVAL')"
    )

    # Groups sub-events of a multi-step operation; no foreign key, no cascade
    parent_audit_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, "
            f"entity_name={self.entity_name}, "
            f"entity_id={self.entity_id}, "
            f"action={self.action}, "
            f"status={self.status})>"
        )
