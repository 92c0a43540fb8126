"""Legacy per-video purchase model."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from uniclips.database import Base


class VideoPurchase(Base):
    """Single-video purchase from before bundles existed. Still counted in scholar earnings."""

    __tablename__ = "video_purchases"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    buyer_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    video_id: Mapped[str] = mapped_column(String(36), ForeignKey("videos.uuid"), nullable=False)

    amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # cents
    currency: Mapped[str] = mapped_column(String(3), default="eur", nullable=False)
    transaction_ref: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    video: Mapped["Video"] = relationship("Video", foreign_keys=[video_id])

    __table_args__ = (
        Index("idx_video_purchase_buyer", "buyer_user_id"),
        Index("idx_video_purchase_video", "video_id"),
    )

    def __repr__(self) -> str:
        return f"<VideoPurchase(uuid={self.uuid}, buyer={self.buyer_user_id}, video={self.video_id})>"
