"""Subject (course) model."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from uniclips.database import Base


class Subject(Base):
    """Subject catalog entry. A scholar's approved videos in a subject form one bundle."""

    __tablename__ = "subjects"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Bundle price in cents. NULL means the platform default applies.
    bundle_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bundle_price_updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Subject(uuid={self.uuid}, name={self.name}, bundle_price={self.bundle_price})>"
