"""
Core Enumerations for the Membership Eligibility Engine.
"""

from enum import Enum


# =============================================================================
# Integration Mode Enums
# =============================================================================


class IntegrationMode(str, Enum):
    """System integration mode."""

    DEMO = "demo"  # In-memory store, simulated billing processor
    LIVE = "live"  # Database store, real billing processor


# =============================================================================
# Member Enums
# =============================================================================


class MemberStatus(str, Enum):
    """Membership status stored on the member record."""

    TRIAL = "trial"
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    PENDING = "pending"  # Drop-in visitor, no subscription yet


class PaymentStatus(str, Enum):
    """Payment status stored on the member record."""

    NONE = "none"
    PENDING = "pending"
    ACTIVE = "active"
    PAST_DUE = "past_due"


class MemberType(str, Enum):
    """Pricing category of a family member."""

    ADULT = "adult"
    KID = "kid"


class MemberState(str, Enum):
    """Summarized state reported to the member-facing lookup."""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"
    PENDING = "pending"
    INACTIVE = "inactive"


# =============================================================================
# Waiver Enums
# =============================================================================


class SignerRelationship(str, Enum):
    """Who signed a waiver relative to the member it covers."""

    SELF = "self"
    PARENT = "parent"
    GUARDIAN = "guardian"


class WarningSeverity(str, Enum):
    """Severity of a waiver advisory."""

    NONE = "none"
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class WaiverWarningType(str, Enum):
    """Kind of waiver advisory."""

    MISSING = "missing"
    TURNED_ADULT = "turned_18"
    EXPIRED = "expired"
    EXPIRING_SOON = "expiring_soon"
    AGES_OUT = "ages_out"


# =============================================================================
# Check-in Enums
# =============================================================================


class CheckInMethod(str, Enum):
    """How a check-in was captured."""

    KIOSK = "kiosk"
    QR = "qr"
    ADMIN = "admin"
    PIN = "pin"
    APP = "app"


class CheckInOutcome(str, Enum):
    """Outcome of an eligibility gate evaluation."""

    ADMIT = "admit"
    DENY = "deny"
    ALREADY_CHECKED_IN = "already_checked_in"


class DenialReason(str, Enum):
    """Reason codes, one per gate check, in evaluation order."""

    NOT_FOUND = "NOT_FOUND"
    INACTIVE_MEMBERSHIP = "INACTIVE_MEMBERSHIP"
    PAYMENT_NOT_ACTIVE = "PAYMENT_NOT_ACTIVE"
    WAIVER_INVALID_OR_MISSING = "WAIVER_INVALID_OR_MISSING"
    ALREADY_CHECKED_IN = "ALREADY_CHECKED_IN"


# =============================================================================
# Subscription Enums
# =============================================================================


class SubscriptionState(str, Enum):
    """Billing-side lifecycle state of a membership."""

    NONE = "none"  # Never subscribed (drop-in visitors, lapsed records)
    TRIAL = "trial"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCEL_PENDING = "cancel_pending"
    CANCELLED = "cancelled"


class LifecycleEvent(str, Enum):
    """Events that move a subscription between states."""

    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    CANCEL = "cancel"
    PERIOD_ENDED = "period_ended"
    RESUBSCRIBE = "resubscribe"
