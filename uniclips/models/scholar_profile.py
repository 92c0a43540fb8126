"""Scholar profile model, including the Stripe Connect account link."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from uniclips.database import Base


class ScholarProfile(Base):
    """Scholar profile.

    ``stripe_account_id`` and the two onboarding flags are a local cache of
    the connected account state held by Stripe. They are refreshed whenever
    the account status is queried and cleared when Stripe reports that the
    account no longer exists.
    """

    __tablename__ = "scholar_profiles"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False, unique=True)

    university: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Stripe Connect
    stripe_account_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_onboarding_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    stripe_details_submitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_scholar_profile_approved", "approved"),
    )

    def clear_stripe_account(self) -> None:
        """Forget the connected account so the scholar is sent through onboarding again."""
        self.stripe_account_id = None
        self.stripe_onboarding_complete = False
        self.stripe_details_submitted = False

    def __repr__(self) -> str:
        return f"<ScholarProfile(user_id={self.user_id}, approved={self.approved}, stripe_account_id={self.stripe_account_id})>"
