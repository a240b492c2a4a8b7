"""
Unit Tests for the Check-in Eligibility Gate
Tests check ordering, denial reasons, same-day idempotency and local days
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest

from src.core.config import GymSettings
from src.core.enums import (
    CheckInMethod,
    CheckInOutcome,
    DenialReason,
    MemberStatus,
    PaymentStatus,
    SignerRelationship,
)
from src.schemas.membership import CheckIn
from src.services.adapters.member_adapter import InMemoryMembershipStore
from src.services.checkin_gate import (
    CheckInService,
    evaluate_check_in,
    local_date_for,
    local_day_bounds,
)
from src.services.waiver_validity import WaiverCalculator
from src.utils.errors import NotFoundError, PolicyDeniedError
from tests.conftest import build_member, build_waiver

UTC = timezone.utc


@pytest.fixture
def calculator(settings):
    return WaiverCalculator(settings)


@pytest.fixture
def service(store, settings):
    return CheckInService(store, settings)


def _fresh_waiver(member, now):
    return build_waiver(member, now - timedelta(days=30))


@pytest.mark.unit
class TestEvaluateCheckIn:
    """Test the pure gate decision"""

    def test_admits_eligible_member(self, now, calculator):
        member = build_member()
        decision = evaluate_check_in(member, _fresh_waiver(member, now), [], now, calculator=calculator)
        assert decision.outcome == CheckInOutcome.ADMIT
        assert decision.admitted
        assert decision.reason is None
        assert decision.message == "Welcome, Alex! You're checked in."

    def test_missing_member(self, now, calculator):
        decision = evaluate_check_in(None, None, [], now, calculator=calculator)
        assert decision.denied
        assert decision.reason == DenialReason.NOT_FOUND

    @pytest.mark.parametrize(
        "status",
        [MemberStatus.TRIAL, MemberStatus.INACTIVE, MemberStatus.CANCELLED, MemberStatus.PENDING],
    )
    def test_inactive_membership(self, now, calculator, status):
        member = build_member(status=status)
        decision = evaluate_check_in(member, _fresh_waiver(member, now), [], now, calculator=calculator)
        assert decision.reason == DenialReason.INACTIVE_MEMBERSHIP
        assert f"status: {status.value}" in decision.message

    @pytest.mark.parametrize(
        "payment_status",
        [PaymentStatus.NONE, PaymentStatus.PENDING, PaymentStatus.PAST_DUE],
    )
    def test_payment_not_active(self, now, calculator, payment_status):
        member = build_member(payment_status=payment_status)
        decision = evaluate_check_in(member, _fresh_waiver(member, now), [], now, calculator=calculator)
        assert decision.reason == DenialReason.PAYMENT_NOT_ACTIVE

    def test_missing_waiver(self, now, calculator):
        decision = evaluate_check_in(build_member(), None, [], now, calculator=calculator)
        assert decision.reason == DenialReason.WAIVER_INVALID_OR_MISSING
        assert decision.message == "No valid waiver on file"

    def test_wrong_waiver_type(self, now, calculator):
        member = build_member()
        waiver = build_waiver(member, now - timedelta(days=1), waiver_type="photo_release")
        decision = evaluate_check_in(member, waiver, [], now, calculator=calculator)
        assert decision.reason == DenialReason.WAIVER_INVALID_OR_MISSING

    def test_expired_waiver(self, now, calculator):
        member = build_member()
        waiver = build_waiver(member, now - timedelta(days=400))
        decision = evaluate_check_in(member, waiver, [], now, calculator=calculator)
        assert decision.reason == DenialReason.WAIVER_INVALID_OR_MISSING
        assert "expired" in decision.message

    def test_parent_signed_waiver_for_adult(self, now, calculator):
        member = build_member(birth_date=date(2006, 1, 1))
        waiver = build_waiver(
            member,
            now - timedelta(days=60),
            signer_relationship=SignerRelationship.PARENT,
        )
        decision = evaluate_check_in(member, waiver, [], now, calculator=calculator)
        assert decision.reason == DenialReason.WAIVER_INVALID_OR_MISSING
        assert "turned 18" in decision.message

    def test_status_checked_before_waiver(self, now, calculator):
        member = build_member(status=MemberStatus.INACTIVE)
        decision = evaluate_check_in(member, None, [], now, calculator=calculator)
        assert decision.reason == DenialReason.INACTIVE_MEMBERSHIP

    def test_payment_checked_before_waiver(self, now, calculator):
        member = build_member(payment_status=PaymentStatus.PAST_DUE)
        decision = evaluate_check_in(member, None, [], now, calculator=calculator)
        assert decision.reason == DenialReason.PAYMENT_NOT_ACTIVE

    def test_existing_check_in_same_class(self, now, calculator):
        member = build_member()
        existing = CheckIn(
            member_id=member.id,
            checked_in_at=now - timedelta(hours=1),
            local_date=now.date(),
            class_type="general",
        )
        decision = evaluate_check_in(
            member, _fresh_waiver(member, now), [existing], now, calculator=calculator
        )
        assert decision.outcome == CheckInOutcome.ALREADY_CHECKED_IN
        assert decision.already_checked_in
        assert decision.existing_check_in == existing

    def test_other_class_type_does_not_block(self, now, calculator):
        member = build_member()
        existing = CheckIn(
            member_id=member.id,
            checked_in_at=now - timedelta(hours=1),
            local_date=now.date(),
            class_type="open-mat",
        )
        decision = evaluate_check_in(
            member, _fresh_waiver(member, now), [existing], now, "general", calculator
        )
        assert decision.admitted


@pytest.mark.unit
class TestLocalDay:
    """Test facility-local day boundaries"""

    def test_local_date_behind_utc(self):
        tz = GymSettings(_env_file=None, FACILITY_TIMEZONE="America/Los_Angeles").facility_tz
        assert local_date_for(datetime(2024, 6, 15, 3, 0, tzinfo=UTC), tz) == date(2024, 6, 14)

    def test_day_bounds_in_utc(self):
        tz = GymSettings(_env_file=None, FACILITY_TIMEZONE="America/New_York").facility_tz
        start, end = local_day_bounds(datetime(2024, 6, 15, 12, 0, tzinfo=UTC), tz)
        assert start == datetime(2024, 6, 15, 4, 0, tzinfo=UTC)
        assert end == datetime(2024, 6, 16, 4, 0, tzinfo=UTC)


@pytest.mark.unit
class TestCheckInService:
    """Test check-in recording against the in-memory store"""

    @pytest.mark.asyncio
    async def test_twice_same_day_records_once(self, store, service, now):
        member = build_member()
        store.seed(members=[member], waivers=[_fresh_waiver(member, now)])

        first = await service.check_in(member.id, now)
        second = await service.check_in(member.id, now + timedelta(hours=2))

        assert first.already_checked_in is False
        assert second.already_checked_in is True
        assert second.check_in.id == first.check_in.id
        assert "already checked in" in second.message
        assert store.check_in_count == 1

    @pytest.mark.asyncio
    async def test_different_class_types_both_recorded(self, store, service, now):
        member = build_member()
        store.seed(members=[member], waivers=[_fresh_waiver(member, now)])

        await service.check_in(member.id, now, class_type="gi")
        await service.check_in(member.id, now, class_type="no-gi")

        assert store.check_in_count == 2

    @pytest.mark.asyncio
    async def test_records_local_date_and_method(self, store, service, now):
        member = build_member()
        store.seed(members=[member], waivers=[_fresh_waiver(member, now)])

        result = await service.check_in(
            member.id, now, method=CheckInMethod.ADMIN, class_id="mon-6pm", notes="late"
        )

        assert result.check_in.local_date == date(2024, 6, 15)
        assert result.check_in.class_type == "general"
        assert result.check_in.check_in_method == CheckInMethod.ADMIN
        assert result.check_in.class_id == "mon-6pm"

    @pytest.mark.asyncio
    async def test_facility_timezone_decides_the_day(self, store):
        settings = GymSettings(
            _env_file=None, ENVIRONMENT="testing", FACILITY_TIMEZONE="America/Los_Angeles"
        )
        service = CheckInService(store, settings)
        evening = datetime(2024, 6, 15, 3, 0, tzinfo=UTC)  # 8pm on the 14th locally
        after_midnight = datetime(2024, 6, 15, 8, 0, tzinfo=UTC)  # 1am on the 15th locally
        member = build_member()
        store.seed(members=[member], waivers=[_fresh_waiver(member, evening)])

        first = await service.check_in(member.id, evening)
        second = await service.check_in(member.id, after_midnight)

        assert first.check_in.local_date == date(2024, 6, 14)
        assert second.already_checked_in is False
        assert second.check_in.local_date == date(2024, 6, 15)

    @pytest.mark.asyncio
    async def test_unknown_member_raises_not_found(self, service, now, make_member):
        with pytest.raises(NotFoundError) as exc_info:
            await service.check_in(make_member().id, now)
        assert exc_info.value.reason == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_denial_raises_policy_denied(self, store, service, now):
        member = build_member()
        store.seed(members=[member])

        with pytest.raises(PolicyDeniedError) as exc_info:
            await service.check_in(member.id, now)

        assert exc_info.value.reason == DenialReason.WAIVER_INVALID_OR_MISSING.value
        assert exc_info.value.details["member_name"] == "Alex Rivera"
        assert store.check_in_count == 0

    @pytest.mark.asyncio
    async def test_evaluate_does_not_record(self, store, service, now):
        member = build_member()
        store.seed(members=[member], waivers=[_fresh_waiver(member, now)])

        decision = await service.evaluate(member.id, now)

        assert decision.admitted
        assert store.check_in_count == 0

    @pytest.mark.asyncio
    async def test_check_in_by_code(self, store, service, now):
        member = build_member(qr_code="QR-ALEX")
        store.seed(members=[member], waivers=[_fresh_waiver(member, now)])

        result = await service.check_in_by_code("QR-ALEX", now)

        assert result.member.id == member.id
        assert result.check_in.check_in_method == CheckInMethod.QR

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [MemberStatus.CANCELLED, MemberStatus.INACTIVE])
    async def test_code_for_non_active_member_reports_inactive(self, store, service, now, status):
        member = build_member(qr_code="QR-1", status=status)
        store.seed(members=[member], waivers=[_fresh_waiver(member, now)])

        with pytest.raises(PolicyDeniedError) as exc_info:
            await service.check_in_by_code("QR-1", now)

        assert exc_info.value.reason == "INACTIVE_MEMBERSHIP"
        assert exc_info.value.details["member_name"] == "Alex Rivera"
        assert store.check_in_count == 0

    @pytest.mark.asyncio
    async def test_unresolvable_code_raises_not_found(self, service, now):
        with pytest.raises(NotFoundError):
            await service.check_in_by_code("nobody", now)

    @pytest.mark.asyncio
    async def test_lost_race_reports_already_checked_in(self, settings, now):
        """A concurrent insert that wins the race turns into an idempotent success"""

        class RacingStore(InMemoryMembershipStore):
            def __init__(self):
                super().__init__()
                self.lookups = 0

            async def check_ins_for_day(self, member_id, local_date, class_type: Optional[str] = None):
                self.lookups += 1
                if self.lookups == 1:
                    return []
                return await super().check_ins_for_day(member_id, local_date, class_type)

        store = RacingStore()
        member = build_member()
        winner = CheckIn(
            member_id=member.id,
            checked_in_at=now,
            local_date=date(2024, 6, 15),
            class_type="general",
        )
        store.seed(members=[member], waivers=[_fresh_waiver(member, now)], check_ins=[winner])

        result = await CheckInService(store, settings).check_in(member.id, now)

        assert result.already_checked_in is True
        assert result.check_in.id == winner.id
        assert store.check_in_count == 1


@pytest.mark.unit
class TestCheckInHistory:
    """Test recent check-in history"""

    @pytest.mark.asyncio
    async def test_history_counts_current_month(self, store, service, now):
        member = build_member()
        check_ins = [
            CheckIn(
                member_id=member.id,
                checked_in_at=now - timedelta(days=offset),
                local_date=(now - timedelta(days=offset)).date(),
            )
            for offset in (0, 3, 10, 20, 40)
        ]
        store.seed(members=[member], check_ins=check_ins)

        history = await service.history(member.id, now)

        assert history.total_count == 5
        # 15 June: offsets 0, 3 and 10 fall in June
        assert history.this_month_count == 3
        assert history.check_ins[0].checked_in_at == now

    @pytest.mark.asyncio
    async def test_history_limit(self, store, service, now):
        member = build_member()
        check_ins = [
            CheckIn(
                member_id=member.id,
                checked_in_at=now - timedelta(days=offset),
                local_date=(now - timedelta(days=offset)).date(),
            )
            for offset in range(5)
        ]
        store.seed(members=[member], check_ins=check_ins)

        history = await service.history(member.id, now, limit=2)

        assert history.total_count == 2
