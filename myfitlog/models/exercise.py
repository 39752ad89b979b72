"""Exercise record model."""

from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Date, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from myfitlog.models.base import BaseModel

if TYPE_CHECKING:
    from myfitlog.models.user import User


class ExerciseRecord(BaseModel):
    """One saved exercise session.

    `date` is the local calendar day the session was saved on, not a timestamp.
    """

    __tablename__ = "exercise_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    calories: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    date: Mapped[date] = mapped_column(Date, index=True)

    # Relationship
    user: Mapped["User"] = relationship("User", back_populates="exercise_records")

    def __repr__(self) -> str:
        return f"<ExerciseRecord(user_id={self.user_id}, date={self.date}, name={self.name})>"
