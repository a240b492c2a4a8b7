"""
Unit Tests for the Member Service
Tests the state summary, waiver signing, QR codes and family linking
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from src.core.enums import MemberState, MemberStatus, PaymentStatus, SignerRelationship
from src.services.member_service import MemberService, summarize_member_state
from src.utils.errors import ConflictError, NotFoundError, ValidationFailureError
from tests.conftest import build_member, build_waiver


@pytest.fixture
def service(store, settings):
    return MemberService(store, settings)


def _family(primary_customer="cus_family"):
    primary = build_member(is_primary_account_holder=True, billing_customer_id=primary_customer)
    kid = build_member(
        first_name="Mia",
        email="mia@example.com",
        birth_date=date(2014, 2, 2),
        program="kids-bjj",
        billing_customer_id="cus_mia_own",
    )
    return primary, kid


@pytest.mark.unit
class TestSummarizeMemberState:
    """Test the reported member state"""

    @pytest.mark.parametrize(
        "status,payment,expected",
        [
            (MemberStatus.ACTIVE, PaymentStatus.ACTIVE, MemberState.ACTIVE),
            (MemberStatus.CANCELLED, PaymentStatus.PAST_DUE, MemberState.CANCELLED),
            (MemberStatus.ACTIVE, PaymentStatus.PAST_DUE, MemberState.PAST_DUE),
            (MemberStatus.TRIAL, PaymentStatus.PENDING, MemberState.PENDING),
            (MemberStatus.PENDING, PaymentStatus.NONE, MemberState.PENDING),
            (MemberStatus.ACTIVE, PaymentStatus.PENDING, MemberState.PENDING),
            (MemberStatus.ACTIVE, PaymentStatus.NONE, MemberState.INACTIVE),
            (MemberStatus.INACTIVE, PaymentStatus.NONE, MemberState.INACTIVE),
        ],
    )
    def test_summary(self, status, payment, expected):
        member = build_member(status=status, payment_status=payment)
        assert summarize_member_state(member) == expected


@pytest.mark.unit
class TestLookupByEmail:
    """Test the member self-lookup"""

    @pytest.mark.asyncio
    async def test_lookup_includes_family(self, store, service, now):
        primary, kid = _family()
        family_id = primary.id
        store.seed(
            members=[
                primary.model_copy(update={"family_account_id": family_id}),
                kid.model_copy(update={"family_account_id": family_id}),
            ]
        )

        summary = await service.lookup_by_email(" ALEX@example.com ")

        assert summary.member.id == primary.id
        assert summary.state == MemberState.ACTIVE
        assert summary.is_active is True
        assert [m.id for m in summary.family_members] == [kid.id]

    @pytest.mark.asyncio
    async def test_lookup_unknown_email(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            await service.lookup_by_email("nobody@example.com")
        assert exc_info.value.reason == "MEMBER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_lookup_requires_email(self, service):
        with pytest.raises(ValidationFailureError) as exc_info:
            await service.lookup_by_email("  ")
        assert exc_info.value.reason == "MISSING_EMAIL"


@pytest.mark.unit
class TestSignWaiver:
    """Test waiver signing and status"""

    @pytest.mark.asyncio
    async def test_adult_signs_for_self(self, store, service, now):
        member = build_member()
        store.seed(members=[member])

        waiver = await service.sign_waiver(
            member.id, "Alex Rivera", "data:image/png;base64,AAAA", now, ip_address="10.0.0.1"
        )

        assert waiver.signer_relationship == SignerRelationship.SELF
        assert waiver.signed_at == now
        assert waiver.expires_at == now.replace(year=2025)
        assert waiver.signer_email == "alex@example.com"
        assert waiver.ip_address == "10.0.0.1"
        assert await store.latest_waiver(member.id, "liability") == waiver

    @pytest.mark.asyncio
    async def test_parent_signs_for_minor(self, store, service, now):
        member = build_member(
            first_name="Mia",
            birth_date=date(2014, 2, 2),
            parent_first_name="Jordan",
            parent_last_name="Rivera",
            parent_email="jordan@example.com",
        )
        store.seed(members=[member])

        waiver = await service.sign_waiver(member.id, "Jordan Rivera", "sig", now)

        assert waiver.signer_relationship == SignerRelationship.PARENT
        assert waiver.signer_email == "jordan@example.com"

    @pytest.mark.asyncio
    async def test_renewal_adds_newer_waiver(self, store, service, now):
        member = build_member()
        old = build_waiver(member, now - timedelta(days=400))
        store.seed(members=[member], waivers=[old])

        assert (await service.waiver_status(member.id, now)).valid is False

        renewed = await service.sign_waiver(member.id, "Alex Rivera", "sig", now)
        status = await service.waiver_status(member.id, now + timedelta(minutes=1))

        assert status.valid is True
        assert status.signed_at == renewed.signed_at
        assert await store.latest_waiver(member.id, "liability") != old

    @pytest.mark.asyncio
    async def test_requires_signer_and_signature(self, store, service, now):
        member = build_member()
        store.seed(members=[member])

        with pytest.raises(ValidationFailureError) as exc_info:
            await service.sign_waiver(member.id, "  ", "sig", now)
        assert exc_info.value.reason == "MISSING_SIGNER"

        with pytest.raises(ValidationFailureError) as exc_info:
            await service.sign_waiver(member.id, "Alex Rivera", "", now)
        assert exc_info.value.reason == "MISSING_SIGNATURE"

    @pytest.mark.asyncio
    async def test_unknown_member(self, service, now, make_member):
        with pytest.raises(NotFoundError):
            await service.sign_waiver(make_member().id, "Alex Rivera", "sig", now)

    @pytest.mark.asyncio
    async def test_waiver_status_without_waiver(self, store, service, now):
        member = build_member()
        store.seed(members=[member])

        status = await service.waiver_status(member.id, now)

        assert status.has_waiver is False
        assert status.needs_renewal is True


@pytest.mark.unit
class TestQrCodes:
    """Test QR code assignment"""

    @pytest.mark.asyncio
    async def test_assign_and_remove(self, store, service):
        member = build_member()
        store.seed(members=[member])

        assigned = await service.assign_qr_code(member.id, " QR-1 ")
        assert assigned.qr_code == "QR-1"

        removed = await service.remove_qr_code(member.id)
        assert removed.qr_code is None

    @pytest.mark.asyncio
    async def test_code_held_by_another_member(self, store, service):
        holder = build_member(qr_code="QR-1")
        other = build_member(first_name="Sam", email="sam@example.com")
        store.seed(members=[holder, other])

        with pytest.raises(ConflictError) as exc_info:
            await service.assign_qr_code(other.id, "QR-1")

        assert exc_info.value.reason == "QR_CODE_TAKEN"

    @pytest.mark.asyncio
    async def test_reassigning_own_code(self, store, service):
        member = build_member(qr_code="QR-1")
        store.seed(members=[member])
        assert (await service.assign_qr_code(member.id, "QR-1")).qr_code == "QR-1"

    @pytest.mark.asyncio
    async def test_blank_code(self, store, service):
        member = build_member()
        store.seed(members=[member])
        with pytest.raises(ValidationFailureError) as exc_info:
            await service.assign_qr_code(member.id, "")
        assert exc_info.value.reason == "MISSING_QR_CODE"


@pytest.mark.unit
class TestFamilyLinking:
    """Test family account linking"""

    @pytest.mark.asyncio
    async def test_link_shares_billing_customer(self, store, service, now):
        primary, kid = _family()
        store.seed(members=[primary, kid])

        account = await service.link_to_family(primary.id, kid.id, now)

        assert account.family_account_id == primary.id
        assert account.primary_account_holder_id == primary.id
        assert account.billing_customer_id == "cus_family"
        assert {m.id for m in account.members} == {primary.id, kid.id}
        assert account.pricing.vs_individual == Decimal("175.00")
        assert account.pricing.monthly_total == Decimal("157.50")

        linked = await store.get_member(kid.id)
        assert linked.billing_customer_id == "cus_family"
        assert await service.family_billing_customer(kid.id) == "cus_family"

    @pytest.mark.asyncio
    async def test_family_pricing_for_single_member(self, store, service):
        member = build_member()
        store.seed(members=[member])
        pricing = await service.family_pricing(member.id)
        assert pricing.monthly_total == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_family_pricing_for_linked_member(self, store, service, now):
        primary, kid = _family()
        store.seed(members=[primary, kid])
        await service.link_to_family(primary.id, kid.id, now)

        pricing = await service.family_pricing(kid.id)

        assert pricing.member_count == 2

    @pytest.mark.asyncio
    async def test_primary_must_hold_account(self, store, service, now):
        primary, kid = _family()
        not_primary = primary.model_copy(update={"is_primary_account_holder": False})
        store.seed(members=[not_primary, kid])

        with pytest.raises(ValidationFailureError) as exc_info:
            await service.link_to_family(not_primary.id, kid.id, now)

        assert exc_info.value.reason == "NOT_PRIMARY_ACCOUNT_HOLDER"

    @pytest.mark.asyncio
    async def test_missing_primary(self, store, service, now, make_member):
        _, kid = _family()
        store.seed(members=[kid])

        with pytest.raises(NotFoundError) as exc_info:
            await service.link_to_family(make_member().id, kid.id, now)

        assert exc_info.value.reason == "PRIMARY_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_cannot_link_to_self(self, store, service, now):
        primary, _ = _family()
        store.seed(members=[primary])

        with pytest.raises(ValidationFailureError) as exc_info:
            await service.link_to_family(primary.id, primary.id, now)

        assert exc_info.value.reason == "SELF_FAMILY_LINK"
        unchanged = await store.get_member(primary.id)
        assert unchanged.is_primary_account_holder is True
        assert unchanged.family_account_id is None

    @pytest.mark.asyncio
    async def test_already_linked(self, store, service, now):
        primary, kid = _family()
        linked_elsewhere = kid.model_copy(update={"family_account_id": build_member().id})
        store.seed(members=[primary, linked_elsewhere])

        with pytest.raises(ConflictError) as exc_info:
            await service.link_to_family(primary.id, kid.id, now)

        assert exc_info.value.reason == "FAMILY_LINK_EXISTS"
        assert "Mia Rivera is already linked" in exc_info.value.message
