"""
Waiver Model for Signed Liability Consents.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.enums import SignerRelationship
from src.models.base import Base, UTCDateTime, UUIDModel


class WaiverRecord(Base, UUIDModel):
    """
    Signed waiver. Rows are insert-only; renewal adds a newer row.
    """

    __tablename__ = "waivers"

    member_id: Mapped[UUID] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    waiver_type: Mapped[str] = mapped_column(String(50), nullable=False, default="liability")
    waiver_version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0")

    signer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    signer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    signer_relationship: Mapped[SignerRelationship] = mapped_column(
        Enum(SignerRelationship),
        default=SignerRelationship.SELF,
        nullable=False,
    )
    signature_data: Mapped[str] = mapped_column(Text, nullable=False, default="")

    signed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    __table_args__ = (
        Index("ix_waivers_member_type_signed", "member_id", "waiver_type", "signed_at"),
    )

    def __repr__(self) -> str:
        return f"<WaiverRecord(id={self.id}, member_id={self.member_id}, signed_at={self.signed_at})>"
