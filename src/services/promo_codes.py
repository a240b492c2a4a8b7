"""
Promo Code Validation.

Human-entered codes are trimmed and upper-cased, then mapped to a processor
coupon. Known codes keep working from configuration even when the coupon has
not been created on the processor yet; unknown codes are looked up on the
processor directly before being rejected.
"""

import logging
from typing import Optional

from src.core.config import GymSettings, get_gym_settings
from src.schemas.billing import PromoCodeResult
from src.services.adapters.billing_adapter import BillingProcessor, Coupon
from src.utils.errors import (
    NotFoundError,
    PolicyDeniedError,
    UpstreamFailureError,
    ValidationFailureError,
)

logger = logging.getLogger(__name__)


def normalize_promo_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def _applied(code: str, coupon_id: str, discount: str) -> PromoCodeResult:
    return PromoCodeResult(
        code=code,
        coupon_id=coupon_id,
        discount=discount,
        message=f"Promo code applied: {discount}",
    )


def _reject_if_expired(coupon: Coupon, code: str) -> None:
    if not coupon.valid:
        logger.info(f"Promo code {code} rejected: coupon {coupon.id} no longer valid")
        raise PolicyDeniedError("This promo code has expired", reason="PROMO_EXPIRED")


class PromoCodeService:
    """Resolves promo codes against configuration and the processor."""

    def __init__(self, processor: BillingProcessor, settings: Optional[GymSettings] = None):
        self.processor = processor
        self.settings = settings or get_gym_settings()

    async def validate(self, promo_code: Optional[str]) -> PromoCodeResult:
        """
        Validate a promo code.

        Raises:
            ValidationFailureError: Code is blank
            PolicyDeniedError: Coupon exists but has expired
            NotFoundError: Code is neither configured nor known to the processor
        """
        code = normalize_promo_code(promo_code)
        if not code:
            raise ValidationFailureError("Promo code is required", reason="MISSING_PROMO_CODE")

        known = self.settings.PROMO_CODES.get(code)
        if known:
            coupon_id = known["coupon_id"]
            try:
                coupon = await self.processor.retrieve_coupon(coupon_id)
            except UpstreamFailureError:
                logger.warning(
                    f"Coupon {coupon_id} not available on processor; "
                    f"using configured description for {code}"
                )
                return _applied(code, coupon_id, known.get("description") or "Discount applied")
            _reject_if_expired(coupon, code)
            discount = coupon.describe() if (
                coupon.percent_off is not None or coupon.amount_off is not None
            ) else known.get("description") or coupon.describe()
            return _applied(code, coupon_id, discount)

        try:
            coupon = await self.processor.retrieve_coupon(code)
        except UpstreamFailureError as e:
            logger.info(f"Unknown promo code {code}: {e.message}")
            raise NotFoundError("Invalid promo code", reason="INVALID_PROMO_CODE") from e
        _reject_if_expired(coupon, code)
        return _applied(code, code, coupon.describe())
