"""User model for UniClips."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from uniclips.database import Base


class User(Base):
    """Platform user. Learners, scholars and admins share this table."""

    __tablename__ = "users"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # User info
    fname: Mapped[str] = mapped_column(String(100), nullable=False)
    lname: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    # Account info
    status: Mapped[str] = mapped_column(String(50), default="active")
    user_role: Mapped[str] = mapped_column(String(50), default="learner")  # "learner", "scholar", "admin"

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_user_role", "user_role"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.fname} {self.lname}".strip()

    def __repr__(self) -> str:
        return f"<User(uuid={self.uuid}, email={self.email}, role={self.user_role})>"
