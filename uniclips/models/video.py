"""Video model."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from uniclips.database import Base


class Video(Base):
    """Video uploaded by a scholar. Individually priced videos are the legacy sales unit."""

    __tablename__ = "videos"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # cents
    is_free: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    scholar_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("subjects.uuid"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    scholar: Mapped["User"] = relationship("User", foreign_keys=[scholar_user_id])
    subject: Mapped["Subject"] = relationship("Subject", foreign_keys=[subject_id])

    __table_args__ = (
        Index("idx_video_scholar_user_id", "scholar_user_id"),
        Index("idx_video_subject_id", "subject_id"),
    )

    def __repr__(self) -> str:
        return f"<Video(uuid={self.uuid}, title={self.title}, price={self.price})>"
