"""Weekly exercise goal model."""

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from myfitlog.models.base import BaseModel

if TYPE_CHECKING:
    from myfitlog.models.user import User

DEFAULT_GOAL_TYPE = "Weekly exercise time"


class Goal(BaseModel):
    """A user's duration goal. One goal per user."""

    __tablename__ = "goals"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        index=True,
    )
    goal_type: Mapped[str] = mapped_column(
        String(100),
        default=DEFAULT_GOAL_TYPE,
        nullable=False,
    )
    target_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationship
    user: Mapped["User"] = relationship("User", back_populates="goal")

    def __repr__(self) -> str:
        return f"<Goal(user_id={self.user_id}, type={self.goal_type}, target={self.target_minutes})>"
