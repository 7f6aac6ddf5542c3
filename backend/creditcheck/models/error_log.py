"""Persisted failures: unhandled request errors and bureau calls that went wrong."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from creditcheck.database import Base


class ErrorSeverity(str, enum.Enum):
    WARNING = "warning"
    ERROR = "error"
    # Storage or configuration faults that break every request
    CRITICAL = "critical"


class ErrorLog(Base):
    __tablename__ = "error_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    logged_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
    severity: Mapped[ErrorSeverity] = mapped_column(Enum(ErrorSeverity), default=ErrorSeverity.ERROR)

    # What broke
    error_type: Mapped[str] = mapped_column(String(120))
    message: Mapped[str] = mapped_column(Text)
    traceback: Mapped[str | None] = mapped_column(Text)
    source: Mapped[str | None] = mapped_column(String(300))

    # Which bureau pull it belongs to
    bureau_provider: Mapped[str | None] = mapped_column(String(50))
    transaction_id: Mapped[str | None] = mapped_column(String(100), index=True)
    user_id: Mapped[int | None] = mapped_column(Integer, index=True)

    # Request it surfaced on, when there was one
    request_method: Mapped[str | None] = mapped_column(String(8))
    request_path: Mapped[str | None] = mapped_column(String(500))
    status_code: Mapped[int | None] = mapped_column(Integer)
    response_time_ms: Mapped[float | None] = mapped_column(Float)
    ip_address: Mapped[str | None] = mapped_column(String(45))
