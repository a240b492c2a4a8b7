"""
Pydantic Schemas for Family Pricing and Billing Results.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from src.core.enums import MemberStatus, MemberType, PaymentStatus, SubscriptionState
from src.schemas.membership import Member


# =============================================================================
# Family Pricing Schemas
# =============================================================================


class FamilyDiscountSchedule(BaseModel):
    """Standalone rates and the volume discount for additional members."""

    member_type_rates: dict[MemberType, Decimal] = Field(
        default_factory=lambda: {
            MemberType.ADULT: Decimal("100.00"),
            MemberType.KID: Decimal("75.00"),
        }
    )
    # Entry i applies to member i + 2; the last entry repeats.
    additional_member_discounts: list[Decimal] = Field(
        default_factory=lambda: [Decimal("0.10")]
    )
    rounding_quantum: Decimal = Decimal("0.01")

    @field_validator("additional_member_discounts")
    @classmethod
    def validate_discounts(cls, v: list[Decimal]) -> list[Decimal]:
        for rate in v:
            if rate < 0 or rate >= 1:
                raise ValueError(f"Discount must be in [0, 1): {rate}")
        return v

    @field_validator("member_type_rates")
    @classmethod
    def validate_rates(cls, v: dict[MemberType, Decimal]) -> dict[MemberType, Decimal]:
        missing = [t.value for t in MemberType if t not in v]
        if missing:
            raise ValueError(f"Missing rates for member types: {', '.join(missing)}")
        if any(rate < 0 for rate in v.values()):
            raise ValueError("Rates cannot be negative")
        return v


class PricingBreakdownLine(BaseModel):
    """One member type within a family bill."""

    type: MemberType
    count: int
    rate: Decimal  # Effective per-member monthly rate after the family discount


class FamilyPricing(BaseModel):
    """Monthly bill for a family group."""

    monthly_total: Decimal = Decimal("0.00")
    breakdown: list[PricingBreakdownLine] = Field(default_factory=list)
    savings: Decimal = Decimal("0.00")
    vs_individual: Decimal = Decimal("0.00")
    member_count: int = 0
    discount_factor: Decimal = Decimal("1")


# =============================================================================
# Lifecycle Results
# =============================================================================


class CancellationResult(BaseModel):
    """Outcome of a cancellation request."""

    member_id: UUID
    status: MemberStatus
    previous_status: MemberStatus
    subscription_state: SubscriptionState
    cancel_at: Optional[datetime] = None
    processor_cancelled: bool = False
    processor_error: Optional[str] = None
    already_cancelled: bool = False
    message: str = "Your membership has been scheduled for cancellation"


class ResubscribeResult(BaseModel):
    """Outcome of a resubscribe request."""

    member_id: UUID
    billing_customer_id: str
    billing_subscription_id: str
    checkout_url: Optional[str] = None
    monthly_price: Decimal
    trial_period_days: int
    program: str
    status: MemberStatus
    payment_status: PaymentStatus


class DropInResult(BaseModel):
    """Outcome of a drop-in payment request."""

    member_id: UUID
    member_created: bool = False
    billing_customer_id: str
    checkout_session_id: str
    checkout_url: Optional[str] = None
    amount: Decimal


class PromoCodeResult(BaseModel):
    """A promo code resolved to a processor coupon."""

    code: str
    valid: bool = True
    coupon_id: str
    discount: str
    message: str


class FamilyAccount(BaseModel):
    """A household sharing one billing customer."""

    family_account_id: UUID
    primary_account_holder_id: UUID
    billing_customer_id: Optional[str] = None
    members: list[Member] = Field(default_factory=list)
    pricing: FamilyPricing = Field(default_factory=FamilyPricing)
