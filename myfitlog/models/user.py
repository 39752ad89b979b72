"""User model."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from myfitlog.models.base import BaseModel

if TYPE_CHECKING:
    from myfitlog.models.exercise import ExerciseRecord
    from myfitlog.models.goal import Goal


class User(BaseModel):
    """A MyFitLog account."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    exercise_records: Mapped[list["ExerciseRecord"]] = relationship(
        "ExerciseRecord",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    goal: Mapped[Optional["Goal"]] = relationship(
        "Goal",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
