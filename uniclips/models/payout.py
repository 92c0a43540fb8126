"""Payout model for transfers to scholar connected accounts."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, DateTime, Text, ForeignKey, Index, inspect
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from uniclips.database import Base


class PayoutStatus:
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Payout(Base):
    """A transfer (or attempted transfer) to a scholar's Stripe connected account.

    Created by settlement (one per paid bundle sale, keyed by
    ``source_payment_ref``) or by an admin manual payout (no source ref).
    """

    __tablename__ = "scholar_payouts"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    scholar_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)

    transfer_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_payment_ref: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # cents
    currency: Mapped[str] = mapped_column(String(3), default="eur", nullable=False)
    status: Mapped[str] = mapped_column(String(50), default=PayoutStatus.PENDING, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    scholar: Mapped["User"] = relationship("User", foreign_keys=[scholar_user_id])

    __table_args__ = (
        Index("idx_payout_scholar_user_id", "scholar_user_id"),
        Index("idx_payout_status", "status"),
    )

    @validates(
        "scholar_user_id", "transfer_ref", "source_payment_ref", "amount", "currency", "status", "description"
    )
    def _freeze_completed(self, key, value):
        # Persisted completed payouts are historical record
        if inspect(self).persistent and self.status == PayoutStatus.COMPLETED and getattr(self, key) != value:
            raise ValueError("Completed payouts are immutable")
        return value

    def __repr__(self) -> str:
        return f"<Payout(uuid={self.uuid}, scholar={self.scholar_user_id}, amount={self.amount}, status={self.status})>"
