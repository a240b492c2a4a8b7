"""
Family Billing Calculator.

Computes a household's monthly bill from an ordered list of member-type
tags. Each type has a standalone monthly rate; every member after the first
earns a volume discount from the configured schedule, compounded:

    factor = (1 - d2) * (1 - d3) * ... * (1 - dn)
    monthly_total = round_half_up(sum(standalone rates) * factor)

Because every discount lies in [0, 1), the factor never exceeds 1, so
savings are never negative and grow as members are added.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence, Union

from src.core.config import GymSettings, get_gym_settings
from src.core.enums import MemberType
from src.schemas.billing import FamilyDiscountSchedule, FamilyPricing, PricingBreakdownLine
from src.schemas.membership import Member
from src.utils.errors import ValidationFailureError

logger = logging.getLogger(__name__)

MemberTypeTag = Union[MemberType, str]


def parse_member_types(member_types: Iterable[MemberTypeTag]) -> list[MemberType]:
    """Convert tags to ``MemberType``; unknown tags are a validation failure."""
    parsed: list[MemberType] = []
    invalid: list[str] = []
    for tag in member_types:
        try:
            parsed.append(MemberType(tag))
        except ValueError:
            invalid.append(str(tag))
    if invalid:
        raise ValidationFailureError(
            f'Invalid member types: {", ".join(invalid)}. Must be "adult" or "kid"',
            reason="INVALID_MEMBER_TYPE",
            details={"invalid": invalid},
        )
    return parsed


def discount_factor(member_count: int, schedule: FamilyDiscountSchedule) -> Decimal:
    """Compounded multiplier applied to the standalone total."""
    factor = Decimal("1")
    discounts = schedule.additional_member_discounts
    if not discounts:
        return factor
    for position in range(2, member_count + 1):
        rate = discounts[min(position - 2, len(discounts) - 1)]
        factor *= Decimal("1") - rate
    return factor


def calculate_family_price(
    member_types: Sequence[MemberTypeTag],
    schedule: Optional[FamilyDiscountSchedule] = None,
) -> FamilyPricing:
    """
    Price a family.

    Order of ``member_types`` does not change the total; it decides the order
    of the breakdown lines (first appearance of each type).

    Args:
        member_types: ``adult`` / ``kid`` tags, one per member
        schedule: Rates and discounts; defaults to the stock schedule

    Returns:
        FamilyPricing with total, breakdown, savings and individual cost
    """
    schedule = schedule or FamilyDiscountSchedule()
    types = parse_member_types(member_types)

    if not types:
        return FamilyPricing()

    quantum = schedule.rounding_quantum
    rates = schedule.member_type_rates

    vs_individual = sum((rates[t] for t in types), Decimal("0"))
    factor = discount_factor(len(types), schedule)
    monthly_total = (vs_individual * factor).quantize(quantum, rounding=ROUND_HALF_UP)

    counts: dict[MemberType, int] = {}
    for member_type in types:
        counts[member_type] = counts.get(member_type, 0) + 1

    breakdown = [
        PricingBreakdownLine(
            type=member_type,
            count=count,
            rate=(rates[member_type] * factor).quantize(quantum, rounding=ROUND_HALF_UP),
        )
        for member_type, count in counts.items()
    ]

    return FamilyPricing(
        monthly_total=monthly_total,
        breakdown=breakdown,
        savings=vs_individual.quantize(quantum) - monthly_total,
        vs_individual=vs_individual.quantize(quantum),
        member_count=len(types),
        discount_factor=factor,
    )


def member_type_for_program(program: Optional[str]) -> MemberType:
    """Programs mentioning kids are billed at the kid rate."""
    if program and "kid" in program.lower():
        return MemberType.KID
    return MemberType.ADULT


def primary_account_holder(members: Sequence[Member]) -> Member:
    """
    The member whose billing customer pays for the family.

    Exactly one primary holder is expected; anything else is malformed data.
    """
    primaries = [m for m in members if m.is_primary_account_holder]
    if len(primaries) != 1:
        raise ValidationFailureError(
            f"Family group must have exactly one primary account holder, found {len(primaries)}",
            reason="INVALID_FAMILY_GROUP",
        )
    return primaries[0]


class FamilyBillingCalculator:
    """Family pricing bound to configured rates and discounts."""

    def __init__(self, settings: Optional[GymSettings] = None):
        self.settings = settings or get_gym_settings()
        self.schedule = FamilyDiscountSchedule(
            member_type_rates={
                MemberType(k): v for k, v in self.settings.MEMBER_TYPE_MONTHLY_RATES.items()
            },
            additional_member_discounts=self.settings.FAMILY_ADDITIONAL_MEMBER_DISCOUNTS,
        )

    def calculate(self, member_types: Sequence[MemberTypeTag]) -> FamilyPricing:
        pricing = calculate_family_price(member_types, self.schedule)
        logger.debug(
            f"Family pricing: members={pricing.member_count}, "
            f"total={pricing.monthly_total}, savings={pricing.savings}"
        )
        return pricing

    def calculate_with_count(
        self,
        member_count: int,
        member_types: Sequence[MemberTypeTag],
    ) -> FamilyPricing:
        """Price after checking that the declared count matches the tag list."""
        if member_count < 0:
            raise ValidationFailureError("Valid member count is required", reason="INVALID_COUNT")
        if len(member_types) != member_count:
            raise ValidationFailureError(
                f"memberTypes array length ({len(member_types)}) must match "
                f"memberCount ({member_count})",
                reason="COUNT_MISMATCH",
            )
        return self.calculate(member_types)

    def calculate_from_counts(self, kids: int, adults: int) -> FamilyPricing:
        """Price from head counts; kids are listed before adults in the breakdown."""
        if kids < 0 or adults < 0:
            raise ValidationFailureError(
                "Member counts cannot be negative", reason="INVALID_COUNT"
            )
        return self.calculate([MemberType.KID] * kids + [MemberType.ADULT] * adults)

    def calculate_for_members(self, members: Sequence[Member]) -> FamilyPricing:
        """Price a stored family group by each member's program."""
        return self.calculate([member_type_for_program(m.program) for m in members])


_family_billing_calculator: Optional[FamilyBillingCalculator] = None


def get_family_billing_calculator() -> FamilyBillingCalculator:
    """Get singleton calculator bound to the global settings."""
    global _family_billing_calculator
    if _family_billing_calculator is None:
        _family_billing_calculator = FamilyBillingCalculator()
    return _family_billing_calculator
