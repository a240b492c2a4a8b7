"""
Membership Lifecycle API Endpoints.

Provides:
- Cancellation
- Resubscription
- Drop-in payments
- Billing event intake
- Promo code validation
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, model_validator

from src.api.deps import get_lifecycle_coordinator, get_now, get_promo_code_service
from src.core.enums import LifecycleEvent, MemberStatus, PaymentStatus
from src.schemas.billing import (
    CancellationResult,
    DropInResult,
    PromoCodeResult,
    ResubscribeResult,
)
from src.services.promo_codes import PromoCodeService
from src.services.subscription_lifecycle import SubscriptionLifecycleCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1",
    tags=["membership"],
)


# =============================================================================
# Request/Response Schemas
# =============================================================================


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class DropInRequest(BaseModel):
    member_id: Optional[UUID] = None
    email: Optional[str] = Field(None, max_length=255)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)

    @model_validator(mode="after")
    def require_identity(self) -> "DropInRequest":
        if self.member_id is None and not self.email:
            raise ValueError("member_id or email is required")
        return self


class BillingEventRequest(BaseModel):
    event: LifecycleEvent


class BillingEventResponse(BaseModel):
    member_id: UUID
    status: MemberStatus
    payment_status: PaymentStatus


class PromoCodeRequest(BaseModel):
    promo_code: str = Field(..., max_length=100)


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/members/{member_id}/cancel", response_model=CancellationResult)
async def cancel_membership(
    member_id: UUID,
    request: Optional[CancelRequest] = None,
    coordinator: SubscriptionLifecycleCoordinator = Depends(get_lifecycle_coordinator),
    now: datetime = Depends(get_now),
) -> CancellationResult:
    """
    Cancel immediately. The response reports whether the processor also
    stopped renewal; a processor failure does not undo the cancellation.
    """
    return await coordinator.cancel(member_id, now, reason=request.reason if request else None)


@router.post("/members/{member_id}/resubscribe", response_model=ResubscribeResult)
async def resubscribe(
    member_id: UUID,
    coordinator: SubscriptionLifecycleCoordinator = Depends(get_lifecycle_coordinator),
    now: datetime = Depends(get_now),
) -> ResubscribeResult:
    """Start a new subscription; 502 and no change if the processor fails."""
    return await coordinator.resubscribe(member_id, now)


@router.post("/drop-in", response_model=DropInResult)
async def drop_in_payment(
    request: DropInRequest,
    coordinator: SubscriptionLifecycleCoordinator = Depends(get_lifecycle_coordinator),
    now: datetime = Depends(get_now),
) -> DropInResult:
    return await coordinator.create_drop_in_payment(
        now,
        member_id=request.member_id,
        email=request.email,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
    )


@router.post("/members/{member_id}/billing-events", response_model=BillingEventResponse)
async def record_billing_event(
    member_id: UUID,
    request: BillingEventRequest,
    coordinator: SubscriptionLifecycleCoordinator = Depends(get_lifecycle_coordinator),
    now: datetime = Depends(get_now),
) -> BillingEventResponse:
    """Apply a payment or subscription-ended notice from the processor."""
    member = await coordinator.record_billing_event(member_id, request.event, now)
    return BillingEventResponse(
        member_id=member.id,
        status=member.status,
        payment_status=member.payment_status,
    )


@router.post("/promo-codes/validate", response_model=PromoCodeResult)
async def validate_promo_code(
    request: PromoCodeRequest,
    service: PromoCodeService = Depends(get_promo_code_service),
) -> PromoCodeResult:
    return await service.validate(request.promo_code)
