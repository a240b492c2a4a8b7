"""
Member Service.

Record-keeping operations around a member: waiver signing and status,
QR code assignment, family linking and the state summary shown to members
looking themselves up by email.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from src.core.config import GymSettings, get_gym_settings
from src.core.enums import MemberState, MemberStatus, PaymentStatus
from src.schemas.billing import FamilyAccount, FamilyPricing
from src.schemas.membership import Member, MemberSummary, Waiver
from src.services.adapters.base import MembershipStore
from src.services.family_billing import FamilyBillingCalculator, primary_account_holder
from src.services.waiver_validity import (
    WaiverCalculator,
    WaiverStatus,
    as_utc,
    signer_relationship_for,
)
from src.utils.errors import ConflictError, NotFoundError, ValidationFailureError

logger = logging.getLogger(__name__)


def summarize_member_state(member: Member) -> MemberState:
    """
    Single state reported for a member.

    Cancellation wins over everything, then an overdue payment. A member is
    only ACTIVE when both the membership and the payment are active.
    """
    status = MemberStatus(member.status)
    payment = PaymentStatus(member.payment_status)

    if status == MemberStatus.CANCELLED:
        return MemberState.CANCELLED
    if payment == PaymentStatus.PAST_DUE:
        return MemberState.PAST_DUE
    if status == MemberStatus.ACTIVE and payment == PaymentStatus.ACTIVE:
        return MemberState.ACTIVE
    if status in (MemberStatus.PENDING, MemberStatus.TRIAL) or payment == PaymentStatus.PENDING:
        return MemberState.PENDING
    return MemberState.INACTIVE


class MemberService:
    """Member record operations over a store."""

    def __init__(self, store: MembershipStore, settings: Optional[GymSettings] = None):
        self.store = store
        self.settings = settings or get_gym_settings()
        self.waivers = WaiverCalculator(self.settings)
        self.family_billing = FamilyBillingCalculator(self.settings)

    async def get_member(self, member_id: UUID) -> Member:
        member = await self.store.get_member(member_id)
        if member is None:
            raise NotFoundError("Member not found", reason="MEMBER_NOT_FOUND")
        return member

    async def lookup_by_email(self, email: Optional[str]) -> MemberSummary:
        """Member, reported state and other household members for an email."""
        email = (email or "").strip().lower()
        if not email:
            raise ValidationFailureError("Email is required", reason="MISSING_EMAIL")

        matches = await self.store.find_members("email", email)
        if not matches:
            raise NotFoundError("Member not found", reason="MEMBER_NOT_FOUND")
        member = matches[0]

        family: list[Member] = []
        if member.family_account_id:
            family = [
                m for m in await self.store.get_family_members(member.family_account_id)
                if m.id != member.id
            ]

        state = summarize_member_state(member)
        return MemberSummary(
            member=member,
            state=state,
            is_active=state == MemberState.ACTIVE,
            family_members=family,
        )

    # -------------------------------------------------------------------------
    # Waivers
    # -------------------------------------------------------------------------

    async def sign_waiver(
        self,
        member_id: UUID,
        signer_name: str,
        signature_data: str,
        now: datetime,
        signer_email: Optional[str] = None,
        waiver_version: str = "1.0",
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Waiver:
        """
        Record a new consent.

        Renewal never edits an old waiver; it adds a newer one, which then
        governs validity.
        """
        if not signer_name or not signer_name.strip():
            raise ValidationFailureError("Signer name is required", reason="MISSING_SIGNER")
        if not signature_data:
            raise ValidationFailureError("Signature is required", reason="MISSING_SIGNATURE")

        member = await self.get_member(member_id)
        signed_at = as_utc(now)
        relationship = signer_relationship_for(
            member.birth_date,
            signer_name,
            signed_at,
            member.parent_first_name,
            member.parent_last_name,
            self.settings.ADULT_AGE,
        )

        waiver = Waiver(
            member_id=member.id,
            waiver_type=self.settings.LIABILITY_WAIVER_TYPE,
            waiver_version=waiver_version,
            signer_name=signer_name.strip(),
            signer_email=signer_email or member.parent_email or member.email,
            signer_relationship=relationship,
            signature_data=signature_data,
            signed_at=signed_at,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        waiver = await self.store.add_waiver(
            waiver.model_copy(update={"expires_at": self.waivers.expiration(waiver)})
        )
        logger.info(
            f"Waiver signed for member {member.id} by {relationship.value}, "
            f"expires {waiver.expires_at.isoformat()}"
        )
        return waiver

    async def waiver_status(self, member_id: UUID, now: datetime) -> WaiverStatus:
        member = await self.get_member(member_id)
        waiver = await self.store.latest_waiver(member.id, self.settings.LIABILITY_WAIVER_TYPE)
        return self.waivers.evaluate(waiver, member.birth_date, now)

    # -------------------------------------------------------------------------
    # QR codes
    # -------------------------------------------------------------------------

    async def assign_qr_code(self, member_id: UUID, qr_code: str) -> Member:
        """Attach a QR code; a code held by another member is a conflict."""
        qr_code = (qr_code or "").strip()
        if not qr_code:
            raise ValidationFailureError("QR code is required", reason="MISSING_QR_CODE")
        await self.get_member(member_id)
        member = await self.store.update_member(member_id, {"qr_code": qr_code})
        logger.info(f"QR code assigned to member {member_id}")
        return member

    async def remove_qr_code(self, member_id: UUID) -> Member:
        await self.get_member(member_id)
        return await self.store.update_member(member_id, {"qr_code": None})

    # -------------------------------------------------------------------------
    # Families
    # -------------------------------------------------------------------------

    async def link_to_family(
        self,
        primary_member_id: UUID,
        member_id: UUID,
        now: datetime,
    ) -> FamilyAccount:
        """
        Add an existing member to the primary holder's household.

        The linked member is billed through the primary holder's customer.

        Raises:
            NotFoundError: Either member does not exist
            ValidationFailureError: The first member is not a primary holder,
                or both IDs name the same member
            ConflictError: The member already belongs to a family
        """
        if member_id == primary_member_id:
            raise ValidationFailureError(
                "A member cannot be linked to their own family account",
                reason="SELF_FAMILY_LINK",
            )

        primary = await self.store.get_member(primary_member_id)
        if primary is None:
            raise NotFoundError(
                "Primary account holder not found", reason="PRIMARY_NOT_FOUND"
            )
        if not primary.is_primary_account_holder:
            raise ValidationFailureError(
                "Specified member is not a primary account holder",
                reason="NOT_PRIMARY_ACCOUNT_HOLDER",
            )

        member = await self.get_member(member_id)
        if member.family_account_id is not None:
            raise ConflictError(
                f"{member.full_name} is already linked to a family account",
                reason="FAMILY_LINK_EXISTS",
                details={"family_account_id": str(member.family_account_id)},
            )

        family_account_id = primary.family_account_id or primary.id
        if primary.family_account_id is None:
            await self.store.update_member(
                primary.id, {"family_account_id": family_account_id}
            )

        await self.store.update_member(
            member.id,
            {
                "family_account_id": family_account_id,
                "is_primary_account_holder": False,
                "billing_customer_id": primary.billing_customer_id,
                "updated_at": as_utc(now),
            },
        )
        logger.info(f"Member {member.id} linked to family {family_account_id}")
        return await self.family_account(family_account_id)

    async def family_account(self, family_account_id: UUID) -> FamilyAccount:
        members = await self.store.get_family_members(family_account_id)
        if not members:
            raise NotFoundError("Family account not found", reason="FAMILY_NOT_FOUND")
        primary = primary_account_holder(members)
        return FamilyAccount(
            family_account_id=family_account_id,
            primary_account_holder_id=primary.id,
            billing_customer_id=primary.billing_customer_id,
            members=members,
            pricing=self.family_billing.calculate_for_members(members),
        )

    async def family_pricing(self, member_id: UUID) -> FamilyPricing:
        """Household bill for the member's family, or their own bill if single."""
        member = await self.get_member(member_id)
        if member.family_account_id is None:
            return self.family_billing.calculate_for_members([member])
        members = await self.store.get_family_members(member.family_account_id)
        return self.family_billing.calculate_for_members(members)

    async def family_billing_customer(self, member_id: UUID) -> Optional[str]:
        """Billing customer that pays for this member."""
        member = await self.get_member(member_id)
        if member.family_account_id is None:
            return member.billing_customer_id
        members = await self.store.get_family_members(member.family_account_id)
        return primary_account_holder(members).billing_customer_id
