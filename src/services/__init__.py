"""
Services Layer for the Membership Engine.

Exports the waiver calculator, check-in gate, family billing calculator and
subscription lifecycle coordinator, plus the member-facing services built on
them.
"""

from src.services.waiver_validity import (
    WaiverCalculator,
    WaiverStatus,
    WaiverWarning,
    classify_warning,
    days_until_expiration,
    expiration,
    get_waiver_calculator,
    is_minor,
    is_valid,
    turned_adult,
    warning_message,
)
from src.services.family_billing import (
    FamilyBillingCalculator,
    calculate_family_price,
    get_family_billing_calculator,
)
from src.services.member_resolver import MemberResolver
from src.services.checkin_gate import (
    CheckInDecision,
    CheckInResult,
    CheckInService,
    evaluate_check_in,
    local_date_for,
    local_day_bounds,
)
from src.services.subscription_lifecycle import (
    SubscriptionLifecycleCoordinator,
    SubscriptionStateMachine,
    derive_subscription_state,
    get_subscription_state_machine,
)
from src.services.member_service import MemberService, summarize_member_state
from src.services.promo_codes import PromoCodeService
from src.services.waiver_reminders import WaiverReminder, WaiverReminderService

__all__ = [
    # Waivers
    "WaiverCalculator",
    "WaiverStatus",
    "WaiverWarning",
    "classify_warning",
    "days_until_expiration",
    "expiration",
    "get_waiver_calculator",
    "is_minor",
    "is_valid",
    "turned_adult",
    "warning_message",
    # Family billing
    "FamilyBillingCalculator",
    "calculate_family_price",
    "get_family_billing_calculator",
    # Check-in
    "MemberResolver",
    "CheckInDecision",
    "CheckInResult",
    "CheckInService",
    "evaluate_check_in",
    "local_date_for",
    "local_day_bounds",
    # Lifecycle
    "SubscriptionLifecycleCoordinator",
    "SubscriptionStateMachine",
    "derive_subscription_state",
    "get_subscription_state_machine",
    # Member services
    "MemberService",
    "summarize_member_state",
    "PromoCodeService",
    "WaiverReminder",
    "WaiverReminderService",
]
