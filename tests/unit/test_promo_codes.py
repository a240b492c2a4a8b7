"""
Unit Tests for Promo Code Validation
"""

import pytest

from src.services.promo_codes import PromoCodeService, normalize_promo_code
from src.utils.errors import NotFoundError, PolicyDeniedError, ValidationFailureError


@pytest.fixture
def service(processor, settings):
    return PromoCodeService(processor, settings)


@pytest.mark.unit
class TestNormalizePromoCode:
    """Test code normalization"""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("  family_discount_25 ", "FAMILY_DISCOUNT_25"),
            ("Founder", "FOUNDER"),
            (None, ""),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_promo_code(raw) == expected


@pytest.mark.unit
class TestPromoCodeService:
    """Test code resolution against configuration and the processor"""

    @pytest.mark.asyncio
    async def test_known_code_with_percent_coupon(self, service):
        result = await service.validate("  family_discount_25 ")

        assert result.code == "FAMILY_DISCOUNT_25"
        assert result.coupon_id == "FAMILY_DISCOUNT_25"
        assert result.discount == "25% off"
        assert result.message == "Promo code applied: 25% off"
        assert result.valid is True

    @pytest.mark.asyncio
    async def test_known_code_without_amount_uses_description(self, service):
        result = await service.validate("first_week_free")
        assert result.discount == "First week free"

    @pytest.mark.asyncio
    async def test_known_code_missing_on_processor_falls_back(self, service, processor):
        result = await service.validate("grandopening")

        assert result.coupon_id == "GRAND_OPENING_50"
        assert result.discount == "50% off first month"
        assert processor.calls == ["retrieve_coupon"]

    @pytest.mark.asyncio
    async def test_known_code_with_expired_coupon(self, processor, settings):
        settings.PROMO_CODES = {"OLD10": {"coupon_id": "EXPIRED_10", "description": "10% off"}}
        service = PromoCodeService(processor, settings)

        with pytest.raises(PolicyDeniedError) as exc_info:
            await service.validate("old10")

        assert exc_info.value.reason == "PROMO_EXPIRED"
        assert exc_info.value.message == "This promo code has expired"

    @pytest.mark.asyncio
    async def test_unknown_code_found_on_processor(self, service):
        result = await service.validate("spring5")
        assert result.coupon_id == "SPRING5"
        assert result.discount == "$5.00 off"

    @pytest.mark.asyncio
    async def test_unknown_code_expired_on_processor(self, service):
        with pytest.raises(PolicyDeniedError):
            await service.validate("EXPIRED_10")

    @pytest.mark.asyncio
    async def test_unknown_code(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            await service.validate("BOGUS")
        assert exc_info.value.reason == "INVALID_PROMO_CODE"
        assert exc_info.value.message == "Invalid promo code"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [None, "", "   "])
    async def test_blank_code(self, service, code):
        with pytest.raises(ValidationFailureError) as exc_info:
            await service.validate(code)
        assert exc_info.value.reason == "MISSING_PROMO_CODE"
