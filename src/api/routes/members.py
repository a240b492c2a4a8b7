"""
Member API Endpoints.

Provides:
- Member lookup by kiosk code or email
- QR code assignment
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from src.api.deps import get_member_service, get_store
from src.core.enums import MemberStatus, PaymentStatus
from src.schemas.membership import Member, MemberSummary
from src.services.adapters.base import MembershipStore
from src.services.member_resolver import MemberResolver
from src.services.member_service import MemberService
from src.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/members",
    tags=["members"],
)


class MemberResponse(BaseModel):
    """Member fields safe to show at the front desk."""

    id: UUID
    first_name: str
    last_name: str
    email: Optional[str] = None
    status: MemberStatus
    payment_status: PaymentStatus
    program: Optional[str] = None
    qr_code: Optional[str] = None
    family_account_id: Optional[UUID] = None
    is_primary_account_holder: bool = False

    @classmethod
    def from_member(cls, member: Member) -> "MemberResponse":
        return cls.model_validate(member.model_dump())


class QRCodeRequest(BaseModel):
    qr_code: str = Field(..., min_length=1, max_length=100)


@router.get("/lookup", response_model=MemberResponse)
async def lookup_member(
    code: str = Query(..., min_length=1, description="QR code, member ID, member code, email or phone suffix"),
    store: MembershipStore = Depends(get_store),
) -> MemberResponse:
    """Resolve a lookup code to exactly one member."""
    member = await MemberResolver(store).resolve(code)
    if member is None:
        raise NotFoundError("Member not found", reason="MEMBER_NOT_FOUND")
    return MemberResponse.from_member(member)


@router.get("/by-email", response_model=MemberSummary)
async def member_by_email(
    email: str = Query(..., min_length=3),
    service: MemberService = Depends(get_member_service),
) -> MemberSummary:
    """Member record, reported state and household."""
    return await service.lookup_by_email(email)


@router.put("/{member_id}/qr-code", response_model=MemberResponse)
async def assign_qr_code(
    member_id: UUID,
    request: QRCodeRequest,
    service: MemberService = Depends(get_member_service),
) -> MemberResponse:
    """Assign a QR code; 409 if another member holds it."""
    return MemberResponse.from_member(await service.assign_qr_code(member_id, request.qr_code))


@router.delete("/{member_id}/qr-code", response_model=MemberResponse)
async def remove_qr_code(
    member_id: UUID,
    service: MemberService = Depends(get_member_service),
) -> MemberResponse:
    return MemberResponse.from_member(await service.remove_qr_code(member_id))
