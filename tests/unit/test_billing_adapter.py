"""
Unit Tests for the Billing Processor Adapters
Tests the demo processor and the Stripe processor with the library mocked
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
import stripe

from src.services.adapters.base import AdapterMode
from src.services.adapters.billing_adapter import (
    Coupon,
    DemoBillingProcessor,
    StripeBillingProcessor,
    to_cents,
)
from src.utils.errors import UpstreamFailureError

UTC = timezone.utc


@pytest.mark.unit
class TestHelpers:
    """Test amount conversion and coupon descriptions"""

    @pytest.mark.parametrize(
        "amount,cents",
        [(Decimal("20.00"), 2000), (Decimal("202.50"), 20250), (Decimal("0"), 0)],
    )
    def test_to_cents(self, amount, cents):
        assert to_cents(amount) == cents

    def test_coupon_descriptions(self):
        assert Coupon(id="A", percent_off=Decimal("25")).describe() == "25% off"
        assert Coupon(id="B", percent_off=Decimal("12.5")).describe() == "12.5% off"
        assert Coupon(id="C", amount_off=500).describe() == "$5.00 off"
        assert Coupon(id="D", name="Founder").describe() == "Founder"
        assert Coupon(id="E").describe() == "Discount applied"


@pytest.mark.unit
class TestDemoBillingProcessor:
    """Test the in-memory processor"""

    @pytest.mark.asyncio
    async def test_subscription_lifecycle(self, processor, now):
        customer_id = await processor.create_customer("alex@example.com", "Alex Rivera")
        subscription = await processor.create_subscription(
            customer_id, Decimal("100.00"), "Adult Gi Classes", 7
        )

        assert processor.mode == AdapterMode.DEMO
        assert customer_id.startswith("cus_demo_")
        assert subscription.status == "trialing"
        assert subscription.trial_end == now + timedelta(days=7)

        cancelled = await processor.cancel_subscription_at_period_end(subscription.id)
        assert cancelled.cancel_at_period_end is True
        assert (await processor.retrieve_subscription(subscription.id)).cancel_at_period_end

    @pytest.mark.asyncio
    async def test_subscription_without_trial(self, processor, now):
        subscription = await processor.create_subscription("cus_1", Decimal("75.00"), "Kids", 0)
        assert subscription.status == "active"
        assert subscription.trial_end is None
        assert subscription.current_period_end == now + timedelta(days=30)

    @pytest.mark.asyncio
    async def test_failing_operations(self, now):
        processor = DemoBillingProcessor(failing_operations={"create_customer"}, now=now)
        with pytest.raises(UpstreamFailureError) as exc_info:
            await processor.create_customer("alex@example.com", "Alex Rivera")
        assert exc_info.value.operation == "create_customer"
        assert processor.calls == ["create_customer"]

    @pytest.mark.asyncio
    async def test_unknown_subscription(self, processor):
        with pytest.raises(UpstreamFailureError):
            await processor.cancel_subscription_at_period_end("sub_missing")

    @pytest.mark.asyncio
    async def test_unknown_coupon(self, processor):
        with pytest.raises(UpstreamFailureError):
            await processor.retrieve_coupon("NOPE")

    @pytest.mark.asyncio
    async def test_checkout(self, processor):
        session = await processor.create_one_time_checkout(
            "cus_1",
            Decimal("20.00"),
            "Drop-in Class",
            "https://example.com/member?drop_in=success",
            "https://example.com/member?drop_in=cancelled",
        )
        assert session.amount == Decimal("20.00")
        assert session.url == f"https://example.com/member?session_id={session.id}"


@pytest.mark.unit
class TestStripeBillingProcessor:
    """Test the Stripe processor with the library mocked"""

    @pytest.fixture
    def stripe_processor(self, settings):
        return StripeBillingProcessor(api_key="sk_test_123", settings=settings)

    def test_requires_api_key(self, settings):
        with pytest.raises(UpstreamFailureError) as exc_info:
            StripeBillingProcessor(settings=settings)
        assert exc_info.value.reason == "PROCESSOR_NOT_CONFIGURED"

    @pytest.mark.asyncio
    async def test_create_customer(self, stripe_processor):
        with patch.object(stripe.Customer, "create", return_value={"id": "cus_123"}) as create:
            customer_id = await stripe_processor.create_customer(
                "alex@example.com", "Alex Rivera", {"member_id": "m-1"}
            )

        assert customer_id == "cus_123"
        create.assert_called_once_with(
            api_key="sk_test_123",
            email="alex@example.com",
            name="Alex Rivera",
            metadata={"member_id": "m-1"},
        )

    @pytest.mark.asyncio
    async def test_create_subscription(self, stripe_processor):
        period_end = int(datetime(2024, 6, 22, tzinfo=UTC).timestamp())
        with patch.object(stripe.Price, "create", return_value={"id": "price_1"}) as price, \
                patch.object(
                    stripe.Subscription,
                    "create",
                    return_value={
                        "id": "sub_1",
                        "customer": "cus_123",
                        "status": "trialing",
                        "current_period_end": period_end,
                        "trial_end": period_end,
                        "metadata": {"member_id": "m-1"},
                    },
                ) as create:
            subscription = await stripe_processor.create_subscription(
                "cus_123", Decimal("100.00"), "Adult Gi Classes", 7, {"member_id": "m-1"}
            )

        assert price.call_args.kwargs["unit_amount"] == 10000
        assert price.call_args.kwargs["recurring"] == {"interval": "month"}
        assert create.call_args.kwargs["items"] == [{"price": "price_1"}]
        assert create.call_args.kwargs["trial_period_days"] == 7
        assert subscription.id == "sub_1"
        assert subscription.current_period_end == datetime(2024, 6, 22, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_cancel_at_period_end(self, stripe_processor):
        with patch.object(
            stripe.Subscription,
            "modify",
            return_value={
                "id": "sub_1",
                "customer": {"id": "cus_123"},
                "status": "active",
                "cancel_at_period_end": True,
                "current_period_end": 1719014400,
            },
        ) as modify:
            subscription = await stripe_processor.cancel_subscription_at_period_end("sub_1")

        modify.assert_called_once_with("sub_1", api_key="sk_test_123", cancel_at_period_end=True)
        assert subscription.customer_id == "cus_123"
        assert subscription.cancel_at_period_end is True

    @pytest.mark.asyncio
    async def test_checkout_session(self, stripe_processor):
        with patch.object(
            stripe.checkout.Session,
            "create",
            return_value={"id": "cs_1", "url": "https://checkout.stripe.com/c/cs_1", "metadata": {}},
        ) as create:
            session = await stripe_processor.create_one_time_checkout(
                "cus_123", Decimal("20.00"), "Drop-in Class", "https://x/ok", "https://x/no"
            )

        assert create.call_args.kwargs["mode"] == "payment"
        assert create.call_args.kwargs["line_items"][0]["price_data"]["unit_amount"] == 2000
        assert session.url == "https://checkout.stripe.com/c/cs_1"

    @pytest.mark.asyncio
    async def test_retrieve_coupon(self, stripe_processor):
        with patch.object(
            stripe.Coupon,
            "retrieve",
            return_value={"id": "FAMILY_DISCOUNT_25", "valid": True, "percent_off": 25.0},
        ):
            coupon = await stripe_processor.retrieve_coupon("FAMILY_DISCOUNT_25")

        assert coupon.valid is True
        assert coupon.describe() == "25% off"

    @pytest.mark.asyncio
    async def test_stripe_error_becomes_upstream_failure(self, stripe_processor):
        error = stripe.InvalidRequestError("No such coupon: 'NOPE'", param="id")
        with patch.object(stripe.Coupon, "retrieve", side_effect=error):
            with pytest.raises(UpstreamFailureError) as exc_info:
                await stripe_processor.retrieve_coupon("NOPE")

        assert exc_info.value.operation == "retrieve_coupon"
        assert "No such coupon" in exc_info.value.message
