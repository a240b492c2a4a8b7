"""
Check-in API Endpoints.

Provides:
- Kiosk / QR check-in
- Check-in history
"""

import logging
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, model_validator

from src.api.deps import get_check_in_service, get_now
from src.core.enums import CheckInMethod
from src.schemas.membership import CheckInHistory
from src.services.checkin_gate import CheckInService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1",
    tags=["check-in"],
)


# =============================================================================
# Request/Response Schemas
# =============================================================================


class CheckInRequest(BaseModel):
    """Check in by member ID or by a scanned/typed lookup code."""

    member_id: Optional[UUID] = None
    code: Optional[str] = Field(None, max_length=255, description="QR, member code, email or phone suffix")
    class_type: Optional[str] = Field(None, max_length=50)
    class_id: Optional[str] = Field(None, max_length=100)
    method: CheckInMethod = CheckInMethod.KIOSK

    @model_validator(mode="after")
    def require_identity(self) -> "CheckInRequest":
        if self.member_id is None and not (self.code and self.code.strip()):
            raise ValueError("member_id or code is required")
        return self


class CheckInResponse(BaseModel):
    """Successful check-in."""

    success: bool = True
    already_checked_in: bool
    message: str
    member_id: UUID
    member_name: str
    check_in_id: UUID
    checked_in_at: datetime
    local_date: date
    class_type: str


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/check-in", response_model=CheckInResponse)
async def check_in(
    request: CheckInRequest,
    service: CheckInService = Depends(get_check_in_service),
    now: datetime = Depends(get_now),
) -> CheckInResponse:
    """
    Check a member in.

    Denials come back as 403 with the failed check's reason code; unknown
    members as 404. A repeat check-in on the same day is a success with
    ``already_checked_in`` set.
    """
    if request.member_id is not None:
        result = await service.check_in(
            request.member_id,
            now,
            class_type=request.class_type,
            method=request.method,
            class_id=request.class_id,
        )
    else:
        result = await service.check_in_by_code(
            request.code,
            now,
            class_type=request.class_type,
            method=request.method,
        )

    return CheckInResponse(
        already_checked_in=result.already_checked_in,
        message=result.message,
        member_id=result.member.id,
        member_name=result.member.full_name,
        check_in_id=result.check_in.id,
        checked_in_at=result.check_in.checked_in_at,
        local_date=result.check_in.local_date,
        class_type=result.check_in.class_type,
    )


@router.get("/members/{member_id}/check-ins", response_model=CheckInHistory)
async def check_in_history(
    member_id: UUID,
    limit: int = Query(30, ge=1, le=200),
    service: CheckInService = Depends(get_check_in_service),
    now: datetime = Depends(get_now),
) -> CheckInHistory:
    """Recent check-ins with the current month's count."""
    return await service.history(member_id, now, limit)
