"""
Check-in Eligibility Gate.

Decides whether a member may check in. Checks run in a fixed order and the
first failure wins, so callers always surface exactly one reason:

    1. Member exists                      -> NOT_FOUND
    2. Membership status is active        -> INACTIVE_MEMBERSHIP
    3. Payment status is active           -> PAYMENT_NOT_ACTIVE
    4. Liability waiver covers the member -> WAIVER_INVALID_OR_MISSING
    5. No check-in yet today              -> ALREADY_CHECKED_IN (idempotent success)

"Today" is the facility-local calendar day, never the UTC day.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

from src.core.config import GymSettings, get_gym_settings
from src.core.enums import (
    CheckInMethod,
    CheckInOutcome,
    DenialReason,
    MemberStatus,
    PaymentStatus,
)
from src.schemas.membership import CheckIn, CheckInHistory, Member, Waiver
from src.services.adapters.base import MembershipStore
from src.services.member_resolver import MemberResolver
from src.services.waiver_validity import WaiverCalculator, as_utc
from src.utils.errors import ConflictError, NotFoundError, PolicyDeniedError

logger = logging.getLogger(__name__)


# =============================================================================
# Local Day Helpers
# =============================================================================


def local_date_for(now: datetime, tz: ZoneInfo) -> date:
    """Facility-local calendar date of an instant."""
    return as_utc(now).astimezone(tz).date()


def local_day_bounds(now: datetime, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """[start, end) of the facility-local day containing ``now``, in UTC."""
    day = local_date_for(now, tz)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return as_utc(start), as_utc(end)


def local_month_start(now: datetime, tz: ZoneInfo) -> datetime:
    day = local_date_for(now, tz)
    return as_utc(datetime.combine(day.replace(day=1), time.min, tzinfo=tz))


# =============================================================================
# Decision
# =============================================================================


@dataclass
class CheckInDecision:
    """Result of running the gate over one snapshot."""

    outcome: CheckInOutcome
    reason: Optional[DenialReason] = None
    message: str = ""
    existing_check_in: Optional[CheckIn] = None

    @property
    def admitted(self) -> bool:
        return self.outcome == CheckInOutcome.ADMIT

    @property
    def already_checked_in(self) -> bool:
        return self.outcome == CheckInOutcome.ALREADY_CHECKED_IN

    @property
    def denied(self) -> bool:
        return self.outcome == CheckInOutcome.DENY


def _deny(reason: DenialReason, message: str) -> CheckInDecision:
    return CheckInDecision(outcome=CheckInOutcome.DENY, reason=reason, message=message)


def evaluate_check_in(
    member: Optional[Member],
    waiver: Optional[Waiver],
    todays_check_ins: Sequence[CheckIn],
    now: datetime,
    class_type: Optional[str] = None,
    calculator: Optional[WaiverCalculator] = None,
) -> CheckInDecision:
    """
    Run the ordered gate checks.

    Args:
        member: Resolved member, or None if resolution failed
        waiver: Most recent liability waiver for the member, if any
        todays_check_ins: Member's check-ins on the current local day
        now: Evaluation instant
        class_type: Requested class type; defaults to the configured one
        calculator: Waiver rules; defaults to the global calculator

    Returns:
        CheckInDecision with the outcome and, on denial, a reason code
    """
    calculator = calculator or WaiverCalculator()
    settings = calculator.settings
    class_type = class_type or settings.DEFAULT_CLASS_TYPE

    if member is None:
        return _deny(DenialReason.NOT_FOUND, "Member not found")

    if member.status != MemberStatus.ACTIVE:
        return _deny(
            DenialReason.INACTIVE_MEMBERSHIP,
            f"Membership is not active (status: {MemberStatus(member.status).value})",
        )

    if member.payment_status != PaymentStatus.ACTIVE:
        return _deny(
            DenialReason.PAYMENT_NOT_ACTIVE,
            f"Payment status is not active (payment status: {PaymentStatus(member.payment_status).value})",
        )

    if waiver is None or waiver.waiver_type != settings.LIABILITY_WAIVER_TYPE:
        return _deny(DenialReason.WAIVER_INVALID_OR_MISSING, "No valid waiver on file")

    if not calculator.covers(waiver, member.birth_date, now):
        warning = calculator.warning(waiver, member.birth_date, now)
        return _deny(
            DenialReason.WAIVER_INVALID_OR_MISSING,
            warning.message or "No valid waiver on file",
        )

    today = local_date_for(now, settings.facility_tz)
    for existing in todays_check_ins:
        if existing.local_date == today and existing.class_type == class_type:
            return CheckInDecision(
                outcome=CheckInOutcome.ALREADY_CHECKED_IN,
                reason=DenialReason.ALREADY_CHECKED_IN,
                message=f"{member.first_name} is already checked in for today's class",
                existing_check_in=existing,
            )

    return CheckInDecision(
        outcome=CheckInOutcome.ADMIT,
        message=f"Welcome, {member.first_name}! You're checked in.",
    )


# =============================================================================
# Service
# =============================================================================


@dataclass
class CheckInResult:
    """Successful check-in, new or repeated."""

    member: Member
    check_in: CheckIn
    already_checked_in: bool
    message: str


class CheckInService:
    """
    Applies the gate against the store and records admitted check-ins.

    The store's uniqueness rule is the real guard against concurrent
    duplicates; a lost race is reported as an already-checked-in success.
    """

    def __init__(
        self,
        store: MembershipStore,
        settings: Optional[GymSettings] = None,
        resolver: Optional[MemberResolver] = None,
    ):
        self.store = store
        self.settings = settings or get_gym_settings()
        self.calculator = WaiverCalculator(self.settings)
        self.resolver = resolver or MemberResolver(store)

    async def evaluate(
        self,
        member_id: UUID,
        now: datetime,
        class_type: Optional[str] = None,
    ) -> CheckInDecision:
        """Run the gate without recording anything."""
        member = await self.store.get_member(member_id)
        return await self._evaluate_member(member, now, class_type)

    async def _evaluate_member(
        self,
        member: Optional[Member],
        now: datetime,
        class_type: Optional[str],
    ) -> CheckInDecision:
        class_type = class_type or self.settings.DEFAULT_CLASS_TYPE
        waiver = None
        todays: list[CheckIn] = []
        if member is not None:
            waiver = await self.store.latest_waiver(member.id, self.settings.LIABILITY_WAIVER_TYPE)
            todays = await self.store.check_ins_for_day(
                member.id,
                local_date_for(now, self.settings.facility_tz),
                class_type,
            )
        return evaluate_check_in(member, waiver, todays, now, class_type, self.calculator)

    async def check_in(
        self,
        member_id: UUID,
        now: datetime,
        class_type: Optional[str] = None,
        method: CheckInMethod = CheckInMethod.KIOSK,
        class_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> CheckInResult:
        """
        Check a member in by ID.

        Raises:
            NotFoundError: Member does not exist
            PolicyDeniedError: Status, payment or waiver check failed
        """
        member = await self.store.get_member(member_id)
        return await self.check_in_member(member, now, class_type, method, class_id, notes)

    async def check_in_by_code(
        self,
        code: str,
        now: datetime,
        class_type: Optional[str] = None,
        method: CheckInMethod = CheckInMethod.QR,
    ) -> CheckInResult:
        """Resolve a scanned or typed code, then check the member in."""
        member = await self.resolver.resolve(code)
        return await self.check_in_member(member, now, class_type, method)

    async def check_in_member(
        self,
        member: Optional[Member],
        now: datetime,
        class_type: Optional[str] = None,
        method: CheckInMethod = CheckInMethod.KIOSK,
        class_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> CheckInResult:
        class_type = class_type or self.settings.DEFAULT_CLASS_TYPE
        decision = await self._evaluate_member(member, now, class_type)

        if decision.denied:
            logger.info(
                f"Check-in denied: member={member.id if member else None}, "
                f"reason={decision.reason.value}"
            )
            if decision.reason == DenialReason.NOT_FOUND:
                raise NotFoundError(decision.message, reason=decision.reason.value)
            raise PolicyDeniedError(
                decision.message,
                reason=decision.reason.value,
                details={"member_name": member.full_name},
            )

        if decision.already_checked_in:
            return CheckInResult(
                member=member,
                check_in=decision.existing_check_in,
                already_checked_in=True,
                message=decision.message,
            )

        check_in = CheckIn(
            member_id=member.id,
            checked_in_at=as_utc(now),
            local_date=local_date_for(now, self.settings.facility_tz),
            check_in_method=method,
            class_id=class_id,
            class_type=class_type,
            notes=notes,
        )
        try:
            recorded = await self.store.add_check_in(check_in)
        except ConflictError:
            existing = await self.store.check_ins_for_day(member.id, check_in.local_date, class_type)
            if not existing:
                raise
            logger.info(f"Concurrent check-in resolved as duplicate: member={member.id}")
            return CheckInResult(
                member=member,
                check_in=existing[0],
                already_checked_in=True,
                message=f"{member.first_name} is already checked in for today's class",
            )

        logger.info(
            f"Check-in recorded: member={member.id}, class_type={class_type}, "
            f"method={method.value}"
        )
        return CheckInResult(
            member=member,
            check_in=recorded,
            already_checked_in=False,
            message=decision.message,
        )

    async def history(self, member_id: UUID, now: datetime, limit: int = 30) -> CheckInHistory:
        """Recent check-ins and the count for the current local month."""
        check_ins = await self.store.recent_check_ins(member_id, limit)
        month_start = local_month_start(now, self.settings.facility_tz)
        this_month = sum(1 for c in check_ins if as_utc(c.checked_in_at) >= month_start)
        return CheckInHistory(
            member_id=member_id,
            check_ins=check_ins,
            this_month_count=this_month,
            total_count=len(check_ins),
        )
