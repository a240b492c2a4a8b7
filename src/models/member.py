"""
Member Model for Gym Membership Records.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, Date, Enum, Index, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.core.enums import MemberStatus, PaymentStatus
from src.models.base import Base, TimeStampedModel, UTCDateTime, UUIDModel


class MemberRecord(Base, UUIDModel, TimeStampedModel):
    """
    Gym member.

    Members are never hard-deleted; cancellation is a status change.
    ``qr_code``, ``member_code`` and ``short_id`` are optional alternate
    lookup keys, unique when present.
    """

    __tablename__ = "members"

    # Identity
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Parent contact (minors)
    parent_first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    parent_last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    parent_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Membership
    status: Mapped[MemberStatus] = mapped_column(
        Enum(MemberStatus),
        default=MemberStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus),
        default=PaymentStatus.NONE,
        nullable=False,
    )
    program: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    membership_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    individual_monthly_cost: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )
    cancel_effective_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Family
    family_account_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True), nullable=True, index=True
    )
    is_primary_account_holder: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # Billing processor identifiers
    billing_customer_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    billing_subscription_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Alternate lookup keys
    qr_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, unique=True)
    member_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, unique=True)
    short_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, unique=True)

    __table_args__ = (
        Index("ix_members_status_payment", "status", "payment_status"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<MemberRecord(id={self.id}, name='{self.full_name}', status={self.status})>"
