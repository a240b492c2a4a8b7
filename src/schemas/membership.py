"""
Pydantic Schemas for Members, Waivers and Check-ins.

These are the point-in-time snapshots the engine reasons over. Storage
adapters convert to and from them; the engine never touches ORM rows.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.enums import (
    CheckInMethod,
    MemberState,
    MemberStatus,
    PaymentStatus,
    SignerRelationship,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Member(BaseModel):
    """Member snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)

    # Identity
    first_name: str
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[date] = None

    # Parent contact (minors)
    parent_first_name: Optional[str] = None
    parent_last_name: Optional[str] = None
    parent_email: Optional[str] = None

    # Membership
    status: MemberStatus = MemberStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.NONE
    program: Optional[str] = None
    membership_type: Optional[str] = None
    individual_monthly_cost: Optional[Decimal] = None
    cancel_effective_at: Optional[datetime] = None

    # Family
    family_account_id: Optional[UUID] = None
    is_primary_account_holder: bool = False

    # Billing processor identifiers
    billing_customer_id: Optional[str] = None
    billing_subscription_id: Optional[str] = None

    # Alternate lookup keys, each unique when present
    qr_code: Optional[str] = None
    member_code: Optional[str] = None
    short_id: Optional[int] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("email", "parent_email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Waiver(BaseModel):
    """Signed liability consent. ``signed_at`` never changes once written."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)
    member_id: UUID
    waiver_type: str = "liability"
    waiver_version: str = "1.0"

    signer_name: str
    signer_email: Optional[str] = None
    signer_relationship: SignerRelationship = SignerRelationship.SELF
    signature_data: str = ""

    signed_at: datetime
    expires_at: Optional[datetime] = None

    # Capture metadata
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class CheckIn(BaseModel):
    """Recorded class attendance."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    member_id: UUID
    checked_in_at: datetime
    local_date: date
    check_in_method: CheckInMethod = CheckInMethod.KIOSK
    class_id: Optional[str] = None
    class_type: str = "general"
    notes: Optional[str] = None


class CheckInHistory(BaseModel):
    """Recent check-ins for one member."""

    member_id: UUID
    check_ins: list[CheckIn] = Field(default_factory=list)
    this_month_count: int = 0
    total_count: int = 0


class MemberSummary(BaseModel):
    """Member record with its reported state and household."""

    member: Member
    state: MemberState
    is_active: bool
    family_members: list[Member] = Field(default_factory=list)
