import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, DateTime, Enum, Text, Index, UniqueConstraint
from printjob.core.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# ENUMS
# =============================================================================

class JobStatus(str, enum.Enum):
    QUEUED = "QUEUED"          # Recorded, not yet handed to the print sink
    SENT = "SENT"              # Accepted by the print sink
    COMPLETED = "COMPLETED"    # Printed (terminal)
    FAILED = "FAILED"          # Forward or print failed (terminal)
    CANCELLED = "CANCELLED"    # Cancelled before it was sent (terminal)


# Forward-only lifecycle. QUEUED -> FAILED covers a forward that could not be
# attempted; terminal states have no outgoing edges.
ALLOWED_TRANSITIONS = {
    JobStatus.QUEUED: frozenset({JobStatus.SENT, JobStatus.CANCELLED, JobStatus.FAILED}),
    JobStatus.SENT: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def can_transition(current: JobStatus, new: JobStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


# =============================================================================
# MODELS
# =============================================================================

class PrintJob(Base):
    __tablename__ = "print_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    printer_id = Column(String(255), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(Text)
    content_type = Column(String(100))
    module_part = Column(String(100), nullable=False)

    status = Column(Enum(JobStatus), nullable=False, default=JobStatus.QUEUED)
    status_message = Column(Text)

    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_print_jobs_created_at", "created_at"),
        Index("idx_print_jobs_status", "status"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "printer_id": self.printer_id,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "content_type": self.content_type,
            "module_part": self.module_part,
            "status": self.status.value,
            "status_message": self.status_message,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class PrinterPreference(Base):
    """
    Printer chosen by a user for documents of one module.
    """
    __tablename__ = "printer_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    module = Column(String(100), nullable=False)
    user_id = Column(Integer, nullable=False)
    printer_id = Column(String(255), nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("module", "user_id", name="uq_printer_preferences_module_user"),
    )


class PrinterSetting(Base):
    """
    Key/value administrative configuration (global default printer).
    """
    __tablename__ = "printer_settings"

    name = Column(String(100), primary_key=True)
    value = Column(Text)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
