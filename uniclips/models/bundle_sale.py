"""Bundle sale model: one row per checkout attempt and its settlement state."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from uniclips.database import Base


class SaleStatus:
    """Settlement states.

    initiated -> payment_confirmed -> transfer_attempted -> settled
                                                         -> transfer_failed

    ``transfer_failed`` is terminal for the buyer (access is granted) but
    leaves money owed to the scholar for manual reconciliation.
    """
    INITIATED = "initiated"
    PAYMENT_CONFIRMED = "payment_confirmed"
    TRANSFER_ATTEMPTED = "transfer_attempted"
    SETTLED = "settled"
    TRANSFER_FAILED = "transfer_failed"

    # Sales that count towards the fee tier and earnings
    COMPLETED = (SETTLED, TRANSFER_FAILED)


class BundleSale(Base):
    """Records the split decided at checkout and how settlement went.

    All amounts stored in cents. ``payment_ref`` is the Stripe PaymentIntent
    id and acts as the idempotency key for settlement.
    """

    __tablename__ = "bundle_sales"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    checkout_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    payment_ref: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)

    buyer_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(36), ForeignKey("subjects.uuid"), nullable=False)
    scholar_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="eur", nullable=False)
    platform_fee_percent: Mapped[int] = mapped_column(Integer, nullable=False)
    platform_share: Mapped[int] = mapped_column(Integer, nullable=False)
    creator_share: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(String(50), default=SaleStatus.INITIATED, nullable=False)
    transfer_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_bundle_sale_scholar_subject", "scholar_user_id", "subject_id"),
        Index("idx_bundle_sale_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<BundleSale(uuid={self.uuid}, scholar={self.scholar_user_id}, status={self.status})>"
