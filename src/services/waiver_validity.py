"""
Waiver Validity Calculator.

Provides:
- Validity window and expiration timestamp
- Days remaining until expiration
- Minor detection and minor-to-adult transition
- Tiered renewal advisories

Every function takes the evaluation instant as an argument. Nothing here
reads the clock, touches storage or performs I/O.

Age is computed by calendar-year subtraction only (2024 - 2006 = 18 for the
whole of 2024). Minor detection, the adult transition and pricing all rely
on the same arithmetic, so it must not be "corrected" in one place alone.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Union

from dateutil.relativedelta import relativedelta

from src.core.config import GymSettings, get_gym_settings
from src.core.enums import SignerRelationship, WaiverWarningType, WarningSeverity
from src.schemas.membership import Waiver

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY_YEARS = 1
DEFAULT_WARNING_DAYS = 30
DEFAULT_ADULT_AGE = 18

SECONDS_PER_DAY = 24 * 60 * 60

GUARDIAN_RELATIONSHIPS = (SignerRelationship.PARENT, SignerRelationship.GUARDIAN)


# =============================================================================
# Time Helpers
# =============================================================================


def as_utc(moment: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _year_of(moment: Union[date, datetime]) -> int:
    if isinstance(moment, datetime):
        return as_utc(moment).year
    return moment.year


# =============================================================================
# Validity Window
# =============================================================================


def expiration(
    signed_at: datetime,
    validity_years: int = DEFAULT_VALIDITY_YEARS,
    explicit_expires_at: Optional[datetime] = None,
) -> datetime:
    """
    Instant at which a waiver stops being valid.

    Same calendar day and time ``validity_years`` later (one year by
    default). A waiver signed on 29 February expires on 28 February when
    the target year has no leap day. An explicit expiry on the record can
    shorten the window, never extend it.
    """
    computed = as_utc(signed_at) + relativedelta(years=validity_years)
    if explicit_expires_at is not None:
        return min(computed, as_utc(explicit_expires_at))
    return computed


def is_valid(
    signed_at: datetime,
    now: datetime,
    validity_years: int = DEFAULT_VALIDITY_YEARS,
    explicit_expires_at: Optional[datetime] = None,
) -> bool:
    """True while ``now`` is strictly before the expiration instant."""
    return as_utc(now) < expiration(signed_at, validity_years, explicit_expires_at)


def days_until_expiration(
    signed_at: datetime,
    now: datetime,
    validity_years: int = DEFAULT_VALIDITY_YEARS,
    explicit_expires_at: Optional[datetime] = None,
) -> int:
    """
    Whole days between ``now`` and expiration.

    Partial days round up while the waiver is still valid ("expires in 1
    day" with hours left). Once expired the result is always negative,
    starting at -1 on the boundary itself.
    """
    remaining = (
        expiration(signed_at, validity_years, explicit_expires_at) - as_utc(now)
    ).total_seconds()
    if remaining > 0:
        return math.ceil(remaining / SECONDS_PER_DAY)
    return -max(1, math.ceil(-remaining / SECONDS_PER_DAY))


# =============================================================================
# Age Rules
# =============================================================================


def age_in_years(birth_date: date, at: Union[date, datetime]) -> int:
    """Calendar-year age: ``at.year - birth_date.year``."""
    return _year_of(at) - birth_date.year


def is_minor(
    birth_date: Optional[date],
    at: Union[date, datetime],
    adult_age: int = DEFAULT_ADULT_AGE,
) -> bool:
    """Minor check. An unknown birth date is treated as an adult."""
    if birth_date is None:
        return False
    return age_in_years(birth_date, at) < adult_age


def turned_adult(
    birth_date: Optional[date],
    signed_at: datetime,
    signer_relationship: Union[SignerRelationship, str, None],
    now: datetime,
    adult_age: int = DEFAULT_ADULT_AGE,
) -> bool:
    """
    True when a parent or guardian signed the waiver and the member is now
    an adult. Such a waiver no longer covers the member, whatever its age.
    """
    if birth_date is None or signer_relationship is None:
        return False

    relationship = SignerRelationship(signer_relationship)
    if relationship not in GUARDIAN_RELATIONSHIPS:
        return False

    if is_minor(birth_date, now, adult_age):
        return False

    if not is_minor(birth_date, signed_at, adult_age):
        logger.debug(
            f"Waiver signed at {signed_at.isoformat()} by {relationship.value} "
            f"for a member who was already {age_in_years(birth_date, signed_at)}"
        )
    return True


def adulthood_starts(birth_date: date, adult_age: int = DEFAULT_ADULT_AGE) -> date:
    """First day on which calendar-year age reaches ``adult_age``."""
    return date(birth_date.year + adult_age, 1, 1)


def signer_relationship_for(
    birth_date: Optional[date],
    signer_name: str,
    at: Union[date, datetime],
    parent_first_name: Optional[str] = None,
    parent_last_name: Optional[str] = None,
    adult_age: int = DEFAULT_ADULT_AGE,
) -> SignerRelationship:
    """
    Relationship to record for a new signature.

    Adults sign for themselves. For minors, a signer whose name matches the
    parent on file is the parent; anyone else is a guardian.
    """
    if not is_minor(birth_date, at, adult_age):
        return SignerRelationship.SELF

    parent_name = f"{parent_first_name or ''} {parent_last_name or ''}".strip().lower()
    if parent_name and signer_name.strip().lower() == parent_name:
        return SignerRelationship.PARENT
    return SignerRelationship.GUARDIAN


def latest_waiver(waivers: Iterable[Waiver], waiver_type: str) -> Optional[Waiver]:
    """Most recently signed waiver of a type; that one governs validity."""
    matching = [w for w in waivers if w.waiver_type == waiver_type]
    if not matching:
        return None
    return max(matching, key=lambda w: as_utc(w.signed_at))


# =============================================================================
# Advisories
# =============================================================================


@dataclass
class WaiverWarning:
    """Renewal advisory for a member's waiver."""

    severity: WarningSeverity = WarningSeverity.NONE
    message: Optional[str] = None
    kind: Optional[WaiverWarningType] = None
    days_until: Optional[int] = None

    def as_pair(self) -> tuple[Optional[str], WarningSeverity]:
        return self.message, self.severity


def classify_warning(
    birth_date: Optional[date],
    signed_at: Optional[datetime],
    signer_relationship: Union[SignerRelationship, str, None],
    now: datetime,
    validity_years: int = DEFAULT_VALIDITY_YEARS,
    warning_days: int = DEFAULT_WARNING_DAYS,
    adult_age: int = DEFAULT_ADULT_AGE,
    explicit_expires_at: Optional[datetime] = None,
) -> WaiverWarning:
    """
    Pick the most severe advisory that applies.

    Order: missing, turned adult, expired, expiring soon, ages out before
    expiry. The first match wins.
    """
    if signed_at is None:
        return WaiverWarning(
            severity=WarningSeverity.CRITICAL,
            message="No waiver on file. A signed liability waiver is required before training.",
            kind=WaiverWarningType.MISSING,
        )

    days = days_until_expiration(signed_at, now, validity_years, explicit_expires_at)

    if turned_adult(birth_date, signed_at, signer_relationship, now, adult_age):
        return WaiverWarning(
            severity=WarningSeverity.CRITICAL,
            message=(
                f"You've turned {adult_age} since your last waiver. "
                "You need to sign your own waiver now."
            ),
            kind=WaiverWarningType.TURNED_ADULT,
            days_until=days,
        )

    if days < 0:
        ago = abs(days)
        return WaiverWarning(
            severity=WarningSeverity.CRITICAL,
            message=(
                f"Your waiver expired {ago} day{'s' if ago != 1 else ''} ago. "
                "You need to sign a new waiver."
            ),
            kind=WaiverWarningType.EXPIRED,
            days_until=days,
        )

    if days <= warning_days:
        return WaiverWarning(
            severity=WarningSeverity.WARNING,
            message=(
                f"Your waiver expires in {days} day{'s' if days != 1 else ''}. "
                "Please renew it soon."
            ),
            kind=WaiverWarningType.EXPIRING_SOON,
            days_until=days,
        )

    if (
        birth_date is not None
        and signer_relationship is not None
        and SignerRelationship(signer_relationship) in GUARDIAN_RELATIONSHIPS
        and adulthood_starts(birth_date, adult_age)
        <= expiration(signed_at, validity_years, explicit_expires_at).date()
    ):
        return WaiverWarning(
            severity=WarningSeverity.INFO,
            message=(
                "This waiver was signed by a parent or guardian. The member must "
                f"sign their own waiver once they turn {adult_age}."
            ),
            kind=WaiverWarningType.AGES_OUT,
            days_until=days,
        )

    return WaiverWarning(days_until=days)


def warning_message(
    birth_date: Optional[date],
    signed_at: Optional[datetime],
    signer_relationship: Union[SignerRelationship, str, None],
    now: datetime,
    validity_years: int = DEFAULT_VALIDITY_YEARS,
    warning_days: int = DEFAULT_WARNING_DAYS,
    adult_age: int = DEFAULT_ADULT_AGE,
) -> tuple[Optional[str], WarningSeverity]:
    """(message, severity) advisory for a waiver."""
    return classify_warning(
        birth_date,
        signed_at,
        signer_relationship,
        now,
        validity_years=validity_years,
        warning_days=warning_days,
        adult_age=adult_age,
    ).as_pair()


# =============================================================================
# Composite Status
# =============================================================================


@dataclass
class WaiverStatus:
    """Everything a caller needs to know about a member's current waiver."""

    has_waiver: bool
    valid: bool
    window_valid: bool = False
    turned_adult: bool = False
    needs_renewal: bool = True
    signed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    days_until_expiration: Optional[int] = None
    signer_relationship: Optional[SignerRelationship] = None
    warning: WaiverWarning = field(default_factory=WaiverWarning)


class WaiverCalculator:
    """
    Waiver rules bound to a settings instance.

    Thin wrapper so callers don't have to thread configuration through every
    call to the module-level functions.
    """

    def __init__(self, settings: Optional[GymSettings] = None):
        self.settings = settings or get_gym_settings()

    @property
    def validity_years(self) -> int:
        return self.settings.WAIVER_VALIDITY_YEARS

    @property
    def warning_days(self) -> int:
        return self.settings.WAIVER_EXPIRY_WARNING_DAYS

    @property
    def adult_age(self) -> int:
        return self.settings.ADULT_AGE

    def expiration(self, waiver: Waiver) -> datetime:
        return expiration(waiver.signed_at, self.validity_years, waiver.expires_at)

    def is_valid(self, waiver: Waiver, now: datetime) -> bool:
        return is_valid(waiver.signed_at, now, self.validity_years, waiver.expires_at)

    def days_until_expiration(self, waiver: Waiver, now: datetime) -> int:
        return days_until_expiration(waiver.signed_at, now, self.validity_years, waiver.expires_at)

    def is_minor(self, birth_date: Optional[date], at: Union[date, datetime]) -> bool:
        return is_minor(birth_date, at, self.adult_age)

    def turned_adult(self, waiver: Waiver, birth_date: Optional[date], now: datetime) -> bool:
        return turned_adult(
            birth_date, waiver.signed_at, waiver.signer_relationship, now, self.adult_age
        )

    def covers(self, waiver: Optional[Waiver], birth_date: Optional[date], now: datetime) -> bool:
        """Window still open and not outgrown by the member."""
        if waiver is None:
            return False
        return self.is_valid(waiver, now) and not self.turned_adult(waiver, birth_date, now)

    def warning(
        self,
        waiver: Optional[Waiver],
        birth_date: Optional[date],
        now: datetime,
    ) -> WaiverWarning:
        return classify_warning(
            birth_date,
            waiver.signed_at if waiver else None,
            waiver.signer_relationship if waiver else None,
            now,
            validity_years=self.validity_years,
            warning_days=self.warning_days,
            adult_age=self.adult_age,
            explicit_expires_at=waiver.expires_at if waiver else None,
        )

    def evaluate(
        self,
        waiver: Optional[Waiver],
        birth_date: Optional[date],
        now: datetime,
    ) -> WaiverStatus:
        """Compose validity, expiry and advisory for one waiver."""
        warning = self.warning(waiver, birth_date, now)
        if waiver is None:
            return WaiverStatus(has_waiver=False, valid=False, warning=warning)

        window_valid = self.is_valid(waiver, now)
        outgrown = self.turned_adult(waiver, birth_date, now)
        return WaiverStatus(
            has_waiver=True,
            valid=window_valid and not outgrown,
            window_valid=window_valid,
            turned_adult=outgrown,
            needs_renewal=not window_valid or outgrown,
            signed_at=waiver.signed_at,
            expires_at=self.expiration(waiver),
            days_until_expiration=self.days_until_expiration(waiver, now),
            signer_relationship=waiver.signer_relationship,
            warning=warning,
        )


_waiver_calculator: Optional[WaiverCalculator] = None


def get_waiver_calculator() -> WaiverCalculator:
    """Get singleton calculator bound to the global settings."""
    global _waiver_calculator
    if _waiver_calculator is None:
        _waiver_calculator = WaiverCalculator()
    return _waiver_calculator
