"""
FastAPI Dependencies
Dependency injection for settings, storage, the billing processor and the
request clock.
Source: https://fastapi.tiangolo.com/tutorial/dependencies/
"""

from datetime import datetime, timezone

from fastapi import Depends

from src.core.config import GymSettings, get_gym_settings
from src.services.adapters.base import MembershipStore
from src.services.adapters.billing_adapter import BillingProcessor
from src.services.adapters.billing_adapter import get_billing_processor as _billing_processor
from src.services.adapters.member_adapter import get_membership_store
from src.services.checkin_gate import CheckInService
from src.services.member_service import MemberService
from src.services.promo_codes import PromoCodeService
from src.services.subscription_lifecycle import SubscriptionLifecycleCoordinator


def get_settings() -> GymSettings:
    return get_gym_settings()


def get_store() -> MembershipStore:
    return get_membership_store()


def get_billing_processor(settings: GymSettings = Depends(get_settings)) -> BillingProcessor:
    return _billing_processor(settings)


def get_now() -> datetime:
    """
    Evaluation instant for the request.

    Services never read the clock themselves; overriding this dependency
    pins time in tests.
    """
    return datetime.now(timezone.utc)


def get_check_in_service(
    store: MembershipStore = Depends(get_store),
    settings: GymSettings = Depends(get_settings),
) -> CheckInService:
    return CheckInService(store, settings)


def get_member_service(
    store: MembershipStore = Depends(get_store),
    settings: GymSettings = Depends(get_settings),
) -> MemberService:
    return MemberService(store, settings)


def get_lifecycle_coordinator(
    store: MembershipStore = Depends(get_store),
    processor: BillingProcessor = Depends(get_billing_processor),
    settings: GymSettings = Depends(get_settings),
) -> SubscriptionLifecycleCoordinator:
    return SubscriptionLifecycleCoordinator(store, processor, settings)


def get_promo_code_service(
    processor: BillingProcessor = Depends(get_billing_processor),
    settings: GymSettings = Depends(get_settings),
) -> PromoCodeService:
    return PromoCodeService(processor, settings)
