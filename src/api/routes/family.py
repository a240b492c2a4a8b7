"""
Family Billing API Endpoints.

Provides:
- Family price quotes
- Linking members into a household
"""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from src.api.deps import get_member_service, get_now, get_settings
from src.core.config import GymSettings
from src.schemas.billing import FamilyAccount, FamilyPricing
from src.services.family_billing import FamilyBillingCalculator
from src.services.member_service import MemberService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/family",
    tags=["family"],
)


class FamilyPricingRequest(BaseModel):
    member_count: int = Field(..., ge=0, le=50)
    member_types: list[str] = Field(default_factory=list, description='"adult" or "kid" per member')


class LinkMemberRequest(BaseModel):
    member_id: UUID


@router.post("/pricing", response_model=FamilyPricing)
async def quote_family_pricing(
    request: FamilyPricingRequest,
    settings: GymSettings = Depends(get_settings),
) -> FamilyPricing:
    """Quote from an explicit list of member types."""
    return FamilyBillingCalculator(settings).calculate_with_count(
        request.member_count, request.member_types
    )


@router.get("/pricing", response_model=FamilyPricing)
async def quote_family_pricing_by_counts(
    kids: int = Query(0, ge=0, le=50),
    adults: int = Query(0, ge=0, le=50),
    settings: GymSettings = Depends(get_settings),
) -> FamilyPricing:
    """Quote from head counts."""
    return FamilyBillingCalculator(settings).calculate_from_counts(kids, adults)


@router.get("/members/{member_id}/pricing", response_model=FamilyPricing)
async def member_family_pricing(
    member_id: UUID,
    service: MemberService = Depends(get_member_service),
) -> FamilyPricing:
    """Current bill for the member's household."""
    return await service.family_pricing(member_id)


@router.post("/{primary_member_id}/members", response_model=FamilyAccount)
async def link_family_member(
    primary_member_id: UUID,
    request: LinkMemberRequest,
    service: MemberService = Depends(get_member_service),
    now: datetime = Depends(get_now),
) -> FamilyAccount:
    """Add an existing member to a household; 409 if already in one."""
    return await service.link_to_family(primary_member_id, request.member_id, now)
