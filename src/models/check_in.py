"""
Check-in Model for Class Attendance.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Date, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.enums import CheckInMethod
from src.models.base import Base, UTCDateTime, UUIDModel


class CheckInRecord(Base, UUIDModel):
    """
    One admitted check-in.

    The unique constraint is what keeps two concurrent admits from both
    landing; the loser gets an IntegrityError.
    """

    __tablename__ = "check_ins"

    member_id: Mapped[UUID] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    checked_in_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    local_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_in_method: Mapped[CheckInMethod] = mapped_column(
        Enum(CheckInMethod),
        default=CheckInMethod.KIOSK,
        nullable=False,
    )
    class_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    class_type: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "member_id", "local_date", "class_type", name="uq_check_ins_member_day_class"
        ),
    )

    def __repr__(self) -> str:
        return f"<CheckInRecord(member_id={self.member_id}, local_date={self.local_date})>"
