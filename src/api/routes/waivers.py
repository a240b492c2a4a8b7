"""
Waiver API Endpoints.

Provides:
- Waiver status with renewal advisory
- Waiver signing and renewal
- Expiring-waiver reminder list
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field

from src.api.deps import get_member_service, get_now, get_settings, get_store
from src.core.config import GymSettings
from src.core.enums import SignerRelationship, WaiverWarningType, WarningSeverity
from src.schemas.membership import Waiver
from src.services.adapters.base import MembershipStore
from src.services.member_service import MemberService
from src.services.waiver_reminders import WaiverReminderService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1",
    tags=["waivers"],
)


# =============================================================================
# Request/Response Schemas
# =============================================================================


class WaiverStatusResponse(BaseModel):
    has_waiver: bool
    is_valid: bool
    turned_adult: bool
    needs_renewal: bool
    signed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    days_until_expiration: Optional[int] = None
    signer_relationship: Optional[SignerRelationship] = None
    warning_message: Optional[str] = None
    warning_severity: WarningSeverity = WarningSeverity.NONE
    warning_type: Optional[WaiverWarningType] = None


class SignWaiverRequest(BaseModel):
    signer_name: str = Field(..., min_length=1, max_length=200)
    signature_data: str = Field(..., min_length=1)
    signer_email: Optional[str] = Field(None, max_length=255)
    waiver_version: str = Field("1.0", max_length=20)


class WaiverReminderResponse(BaseModel):
    member_id: UUID
    member_name: str
    recipient_email: Optional[str] = None
    waiver_id: UUID
    expires_at: datetime
    days_until_expiration: int


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/members/{member_id}/waiver-status", response_model=WaiverStatusResponse)
async def waiver_status(
    member_id: UUID,
    service: MemberService = Depends(get_member_service),
    now: datetime = Depends(get_now),
) -> WaiverStatusResponse:
    result = await service.waiver_status(member_id, now)
    return WaiverStatusResponse(
        has_waiver=result.has_waiver,
        is_valid=result.valid,
        turned_adult=result.turned_adult,
        needs_renewal=result.needs_renewal,
        signed_at=result.signed_at,
        expires_at=result.expires_at,
        days_until_expiration=result.days_until_expiration,
        signer_relationship=result.signer_relationship,
        warning_message=result.warning.message,
        warning_severity=result.warning.severity,
        warning_type=result.warning.kind,
    )


@router.post(
    "/members/{member_id}/waivers",
    response_model=Waiver,
    status_code=status.HTTP_201_CREATED,
)
async def sign_waiver(
    member_id: UUID,
    body: SignWaiverRequest,
    request: Request,
    service: MemberService = Depends(get_member_service),
    now: datetime = Depends(get_now),
) -> Waiver:
    """Record a new signature; older waivers are kept untouched."""
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = (
        forwarded.split(",")[0].strip()
        if forwarded
        else request.client.host if request.client else None
    )
    return await service.sign_waiver(
        member_id,
        signer_name=body.signer_name,
        signature_data=body.signature_data,
        now=now,
        signer_email=body.signer_email,
        waiver_version=body.waiver_version,
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
    )


@router.get("/waivers/expiring", response_model=list[WaiverReminderResponse])
async def expiring_waivers(
    days_ahead: Optional[int] = Query(None, ge=0, le=365),
    store: MembershipStore = Depends(get_store),
    settings: GymSettings = Depends(get_settings),
    now: datetime = Depends(get_now),
) -> list[WaiverReminderResponse]:
    """Members whose waiver expires ``days_ahead`` days from now."""
    reminders = await WaiverReminderService(store, settings).find_expiring(now, days_ahead)
    return [
        WaiverReminderResponse(
            member_id=r.member.id,
            member_name=r.member.full_name,
            recipient_email=r.recipient_email,
            waiver_id=r.waiver.id,
            expires_at=r.expires_at,
            days_until_expiration=r.days_until_expiration,
        )
        for r in reminders
    ]
