"""
Billing Processor Adapter.

Customers, recurring subscriptions, one-time checkouts and coupons. Demo mode
simulates the processor in memory; live mode talks to Stripe. Every processor
failure surfaces as ``UpstreamFailureError`` so callers decide whether it is
fatal.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

import stripe
from pydantic import BaseModel, Field

from src.core.config import GymSettings, get_gym_settings
from src.services.adapters.base import AdapterMode
from src.utils.errors import UpstreamFailureError

logger = logging.getLogger(__name__)


def to_cents(amount: Decimal) -> int:
    """Processor amounts are integer minor units."""
    return int((amount * 100).to_integral_value())


# =============================================================================
# Processor Records
# =============================================================================


class BillingSubscription(BaseModel):
    """Recurring subscription as the processor reports it."""

    id: str
    customer_id: str
    status: str = "trialing"
    cancel_at_period_end: bool = False
    current_period_end: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    metadata: dict[str, str] = Field(default_factory=dict)


class CheckoutSession(BaseModel):
    """Hosted checkout page for a one-time charge."""

    id: str
    url: Optional[str] = None
    customer_id: Optional[str] = None
    amount: Decimal
    metadata: dict[str, str] = Field(default_factory=dict)


class Coupon(BaseModel):
    """Processor coupon."""

    id: str
    valid: bool = True
    name: Optional[str] = None
    percent_off: Optional[Decimal] = None
    amount_off: Optional[int] = None  # minor units
    currency: Optional[str] = None

    def describe(self) -> str:
        if self.percent_off is not None:
            return f"{self.percent_off.normalize():f}% off"
        if self.amount_off is not None:
            return f"${Decimal(self.amount_off) / 100:.2f} off"
        return self.name or "Discount applied"


# =============================================================================
# Processor Interface
# =============================================================================


class BillingProcessor(ABC):
    """External billing processor operations."""

    def __init__(self, mode: AdapterMode = AdapterMode.DEMO):
        self._mode = mode

    @property
    def mode(self) -> AdapterMode:
        """Get current operating mode."""
        return self._mode

    def is_demo_mode(self) -> bool:
        """Check if running in demo mode."""
        return self._mode == AdapterMode.DEMO

    @abstractmethod
    async def create_customer(
        self,
        email: Optional[str],
        name: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        """Create a customer and return its ID."""

    @abstractmethod
    async def create_subscription(
        self,
        customer_id: str,
        amount: Decimal,
        product_name: str,
        trial_period_days: int,
        metadata: Optional[dict[str, str]] = None,
    ) -> BillingSubscription:
        """Start a monthly subscription with a free trial."""

    @abstractmethod
    async def cancel_subscription_at_period_end(self, subscription_id: str) -> BillingSubscription:
        """Stop renewal; access continues until the paid period ends."""

    @abstractmethod
    async def retrieve_subscription(self, subscription_id: str) -> BillingSubscription:
        """Current state of a subscription."""

    @abstractmethod
    async def create_one_time_checkout(
        self,
        customer_id: str,
        amount: Decimal,
        product_name: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> CheckoutSession:
        """Hosted checkout for a single charge."""

    @abstractmethod
    async def retrieve_coupon(self, coupon_id: str) -> Coupon:
        """Look up a coupon; unknown IDs raise ``UpstreamFailureError``."""


# =============================================================================
# Demo Processor
# =============================================================================


class DemoBillingProcessor(BillingProcessor):
    """
    In-memory processor.

    ``failing_operations`` names methods that should raise, so the
    cancel/resubscribe failure paths can be exercised without a network.
    """

    def __init__(
        self,
        failing_operations: Optional[set[str]] = None,
        coupons: Optional[list[Coupon]] = None,
        now: Optional[datetime] = None,
    ):
        super().__init__(AdapterMode.DEMO)
        self.failing_operations: set[str] = set(failing_operations or ())
        self._now = now
        self.customers: dict[str, dict[str, Any]] = {}
        self.subscriptions: dict[str, BillingSubscription] = {}
        self.checkouts: dict[str, CheckoutSession] = {}
        self.coupons: dict[str, Coupon] = {c.id: c for c in coupons or []}
        self.calls: list[str] = []

    def _clock(self) -> datetime:
        return self._now or datetime.now(timezone.utc)

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failing_operations:
            raise UpstreamFailureError(
                f"Simulated processor failure during {operation}",
                operation=operation,
            )

    async def create_customer(
        self,
        email: Optional[str],
        name: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        self._enter("create_customer")
        customer_id = f"cus_demo_{uuid4().hex[:14]}"
        self.customers[customer_id] = {"email": email, "name": name, "metadata": metadata or {}}
        return customer_id

    async def create_subscription(
        self,
        customer_id: str,
        amount: Decimal,
        product_name: str,
        trial_period_days: int,
        metadata: Optional[dict[str, str]] = None,
    ) -> BillingSubscription:
        self._enter("create_subscription")
        now = self._clock()
        trial_end = now + timedelta(days=trial_period_days)
        subscription = BillingSubscription(
            id=f"sub_demo_{uuid4().hex[:14]}",
            customer_id=customer_id,
            status="trialing" if trial_period_days else "active",
            current_period_end=trial_end if trial_period_days else now + timedelta(days=30),
            trial_end=trial_end if trial_period_days else None,
            metadata=dict(metadata or {}, product=product_name, amount=str(amount)),
        )
        self.subscriptions[subscription.id] = subscription
        return subscription.model_copy()

    async def cancel_subscription_at_period_end(self, subscription_id: str) -> BillingSubscription:
        self._enter("cancel_subscription_at_period_end")
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None:
            raise UpstreamFailureError(
                f"No such subscription: {subscription_id}",
                operation="cancel_subscription_at_period_end",
            )
        subscription.cancel_at_period_end = True
        return subscription.model_copy()

    async def retrieve_subscription(self, subscription_id: str) -> BillingSubscription:
        self._enter("retrieve_subscription")
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None:
            raise UpstreamFailureError(
                f"No such subscription: {subscription_id}",
                operation="retrieve_subscription",
            )
        return subscription.model_copy()

    async def create_one_time_checkout(
        self,
        customer_id: str,
        amount: Decimal,
        product_name: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> CheckoutSession:
        self._enter("create_one_time_checkout")
        session_id = f"cs_demo_{uuid4().hex[:14]}"
        session = CheckoutSession(
            id=session_id,
            url=f"{success_url.split('?')[0]}?session_id={session_id}",
            customer_id=customer_id,
            amount=amount,
            metadata=dict(metadata or {}, product=product_name),
        )
        self.checkouts[session_id] = session
        return session

    async def retrieve_coupon(self, coupon_id: str) -> Coupon:
        self._enter("retrieve_coupon")
        coupon = self.coupons.get(coupon_id)
        if coupon is None:
            raise UpstreamFailureError(
                f"No such coupon: '{coupon_id}'", operation="retrieve_coupon"
            )
        return coupon


# =============================================================================
# Stripe Processor
# =============================================================================


def _timestamp(value: Optional[int]) -> Optional[datetime]:
    return datetime.fromtimestamp(value, tz=timezone.utc) if value else None


def _subscription_from_stripe(obj: Any) -> BillingSubscription:
    customer = obj.get("customer")
    return BillingSubscription(
        id=obj["id"],
        customer_id=customer if isinstance(customer, str) else customer["id"],
        status=obj.get("status") or "incomplete",
        cancel_at_period_end=bool(obj.get("cancel_at_period_end")),
        current_period_end=_timestamp(obj.get("cancel_at") or obj.get("current_period_end")),
        trial_end=_timestamp(obj.get("trial_end")),
        metadata=dict(obj.get("metadata") or {}),
    )


class StripeBillingProcessor(BillingProcessor):
    """
    Live processor backed by the ``stripe`` library.

    The library is synchronous, so every call runs in a worker thread.
    """

    def __init__(self, api_key: Optional[str] = None, settings: Optional[GymSettings] = None):
        super().__init__(AdapterMode.LIVE)
        self.settings = settings or get_gym_settings()
        self.api_key = api_key or self.settings.STRIPE_API_KEY
        if not self.api_key:
            raise UpstreamFailureError(
                "Stripe API key is not configured", reason="PROCESSOR_NOT_CONFIGURED"
            )
        self.currency = self.settings.BILLING_CURRENCY

    async def _call(self, operation: str, fn: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            logger.error(f"Stripe {operation} failed: {e.user_message or e}")
            raise UpstreamFailureError(
                e.user_message or str(e),
                details={"code": e.code} if e.code else None,
                operation=operation,
            ) from e

    async def create_customer(
        self,
        email: Optional[str],
        name: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        customer = await self._call(
            "create_customer",
            stripe.Customer.create,
            email=email,
            name=name,
            metadata=metadata or {},
        )
        return customer["id"]

    async def create_subscription(
        self,
        customer_id: str,
        amount: Decimal,
        product_name: str,
        trial_period_days: int,
        metadata: Optional[dict[str, str]] = None,
    ) -> BillingSubscription:
        price = await self._call(
            "create_subscription",
            stripe.Price.create,
            currency=self.currency,
            unit_amount=to_cents(amount),
            recurring={"interval": "month"},
            product_data={"name": product_name},
        )
        subscription = await self._call(
            "create_subscription",
            stripe.Subscription.create,
            customer=customer_id,
            items=[{"price": price["id"]}],
            trial_period_days=trial_period_days,
            payment_behavior="default_incomplete",
            metadata=metadata or {},
        )
        return _subscription_from_stripe(subscription)

    async def cancel_subscription_at_period_end(self, subscription_id: str) -> BillingSubscription:
        subscription = await self._call(
            "cancel_subscription_at_period_end",
            stripe.Subscription.modify,
            subscription_id,
            cancel_at_period_end=True,
        )
        return _subscription_from_stripe(subscription)

    async def retrieve_subscription(self, subscription_id: str) -> BillingSubscription:
        subscription = await self._call(
            "retrieve_subscription", stripe.Subscription.retrieve, subscription_id
        )
        return _subscription_from_stripe(subscription)

    async def create_one_time_checkout(
        self,
        customer_id: str,
        amount: Decimal,
        product_name: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> CheckoutSession:
        session = await self._call(
            "create_one_time_checkout",
            stripe.checkout.Session.create,
            mode="payment",
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": self.currency,
                        "unit_amount": to_cents(amount),
                        "product_data": {"name": product_name},
                    },
                    "quantity": 1,
                }
            ],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata or {},
        )
        return CheckoutSession(
            id=session["id"],
            url=session.get("url"),
            customer_id=customer_id,
            amount=amount,
            metadata=dict(session.get("metadata") or {}),
        )

    async def retrieve_coupon(self, coupon_id: str) -> Coupon:
        coupon = await self._call("retrieve_coupon", stripe.Coupon.retrieve, coupon_id)
        percent_off = coupon.get("percent_off")
        return Coupon(
            id=coupon["id"],
            valid=bool(coupon.get("valid")),
            name=coupon.get("name"),
            percent_off=Decimal(str(percent_off)) if percent_off is not None else None,
            amount_off=coupon.get("amount_off"),
            currency=coupon.get("currency"),
        )


# =============================================================================
# Factory
# =============================================================================


_demo_processor: Optional[DemoBillingProcessor] = None


def get_billing_processor(settings: Optional[GymSettings] = None) -> BillingProcessor:
    """Processor for the configured integration mode."""
    global _demo_processor
    settings = settings or get_gym_settings()
    if settings.is_demo_mode:
        if _demo_processor is None:
            _demo_processor = DemoBillingProcessor(
                coupons=[
                    Coupon(id=entry["coupon_id"], name=entry.get("description"))
                    for entry in settings.PROMO_CODES.values()
                ]
            )
        return _demo_processor
    return StripeBillingProcessor(settings=settings)
