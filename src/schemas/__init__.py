"""
Pydantic Schemas for the Membership Engine.

This module exports the record snapshots and result schemas.
"""

from src.schemas.membership import (
    CheckIn,
    CheckInHistory,
    Member,
    MemberSummary,
    Waiver,
)
from src.schemas.billing import (
    CancellationResult,
    DropInResult,
    FamilyAccount,
    FamilyDiscountSchedule,
    FamilyPricing,
    PricingBreakdownLine,
    PromoCodeResult,
    ResubscribeResult,
)

__all__ = [
    # Records
    "Member",
    "Waiver",
    "CheckIn",
    "CheckInHistory",
    "MemberSummary",
    # Billing
    "FamilyDiscountSchedule",
    "PricingBreakdownLine",
    "FamilyPricing",
    "FamilyAccount",
    "CancellationResult",
    "ResubscribeResult",
    "DropInResult",
    "PromoCodeResult",
]
