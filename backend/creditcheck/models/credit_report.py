"""Credit report model for storing bureau pull results."""

from datetime import datetime, timezone

from sqlalchemy import String, Integer, Float, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from creditcheck.database import Base
from creditcheck.utils.encryption import EncryptedJSON, EncryptedString


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; every timestamp we write is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CreditReport(Base):
    __tablename__ = "credit_reports"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    transaction_id: Mapped[str | None] = mapped_column(String(100), index=True, nullable=True)

    # Summary
    credit_score: Mapped[int] = mapped_column(Integer, default=0)
    total_accounts: Mapped[int] = mapped_column(Integer, default=0)
    active_accounts: Mapped[int] = mapped_column(Integer, default=0)
    closed_accounts: Mapped[int] = mapped_column(Integer, default=0)
    total_balance: Mapped[float] = mapped_column(Float, default=0)
    total_overdue: Mapped[float] = mapped_column(Float, default=0)
    total_sanction_amount: Mapped[float] = mapped_column(Float, default=0)
    total_monthly_payment: Mapped[float] = mapped_column(Float, default=0)
    no_of_write_offs: Mapped[int] = mapped_column(Integer, default=0)
    oldest_account_date: Mapped[str | None] = mapped_column(String(20), nullable=True)
    newest_account_date: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Enquiries
    enquiry_count: Mapped[int] = mapped_column(Integer, default=0)
    enquiry_past_30_days: Mapped[int] = mapped_column(Integer, default=0)
    enquiry_past_12_months: Mapped[int] = mapped_column(Integer, default=0)

    # Subject as reported by the bureau, encrypted at rest
    subject_name: Mapped[str | None] = mapped_column(EncryptedString, nullable=True)
    subject_mobile: Mapped[str | None] = mapped_column(EncryptedString, nullable=True)
    subject_pan: Mapped[str | None] = mapped_column(EncryptedString, nullable=True)

    # Raw bureau payload, encrypted at rest
    full_report: Mapped[dict | None] = mapped_column(EncryptedJSON, nullable=True)

    # PDF copies
    pdf_original_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    pdf_spaces_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    pdf_spaces_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    user = relationship("User", back_populates="credit_reports")

    def is_valid(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now < as_utc(self.expires_at)
