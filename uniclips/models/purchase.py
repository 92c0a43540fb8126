"""Bundle purchase model for UniClips."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from uniclips.database import Base


class Purchase(Base):
    """A learner's access to one scholar's bundle in a subject.

    There is exactly one row per (buyer, subject, scholar). A renewal after
    expiry updates this row in place; the per-payment history lives in
    ``bundle_sales``.
    """

    __tablename__ = "purchases"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Foreign keys
    buyer_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(36), ForeignKey("subjects.uuid"), nullable=False)
    scholar_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)

    # Payment info
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # cents
    currency: Mapped[str] = mapped_column(String(3), default="eur", nullable=False)
    transaction_ref: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)

    # Access window
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    renewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Relationships
    buyer: Mapped["User"] = relationship("User", foreign_keys=[buyer_user_id])
    scholar: Mapped["User"] = relationship("User", foreign_keys=[scholar_user_id])
    subject: Mapped["Subject"] = relationship("Subject", foreign_keys=[subject_id])

    __table_args__ = (
        UniqueConstraint("buyer_user_id", "subject_id", "scholar_user_id", name="uq_purchase_buyer_subject_scholar"),
        Index("idx_purchase_scholar_subject", "scholar_user_id", "subject_id"),
    )

    def is_current(self, now: datetime) -> bool:
        """Active and not past its expiry."""
        if not self.active:
            return False
        return self.expires_at is None or self.expires_at > now

    def __repr__(self) -> str:
        return f"<Purchase(uuid={self.uuid}, buyer={self.buyer_user_id}, subject={self.subject_id}, scholar={self.scholar_user_id})>"
