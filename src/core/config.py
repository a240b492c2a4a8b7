"""
Membership Engine Configuration
Settings for waiver windows, pricing, billing and the facility time zone.
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from decimal import Decimal
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.enums import IntegrationMode


DEFAULT_PROMO_CODES: dict[str, dict[str, str]] = {
    "FAMILY_DISCOUNT_25": {"coupon_id": "FAMILY_DISCOUNT_25", "description": "25% off"},
    "FIRST_WEEK_FREE": {"coupon_id": "FIRST_WEEK_FREE", "description": "First week free"},
    "GRAND_OPENING_50": {"coupon_id": "GRAND_OPENING_50", "description": "50% off first month"},
    "GRANDOPENING": {"coupon_id": "GRAND_OPENING_50", "description": "50% off first month"},
    "FOUNDER": {"coupon_id": "FOUNDER_DISCOUNT", "description": "Founder discount"},
}


class GymSettings(BaseSettings):
    """
    Membership engine configuration settings.

    Every business threshold the engine consults lives here so that
    deployments can tune policy without code changes.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="GYM_",  # All settings prefixed with GYM_
    )

    # =========================================================================
    # Application
    # =========================================================================
    ENVIRONMENT: Literal["development", "staging", "production", "testing"] = Field(
        default="development",
        description="Deployment environment",
    )
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    JSON_LOGS: bool = Field(default=False, description="Emit JSON log lines")
    LOG_FILE: Optional[str] = Field(default=None, description="Optional log file path")

    INTEGRATION_MODE: IntegrationMode = Field(
        default=IntegrationMode.DEMO,
        description="demo (in-memory store, simulated billing) or live (database, Stripe)",
    )
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./gym.db",
        description="Async SQLAlchemy database URL used in live mode",
    )
    DB_ECHO: bool = Field(default=False, description="Log SQL statements")

    # =========================================================================
    # Facility
    # =========================================================================
    FACILITY_TIMEZONE: str = Field(
        default="UTC",
        description="IANA time zone used for local-day check-in boundaries",
    )
    DEFAULT_CLASS_TYPE: str = Field(
        default="general",
        description="Class type recorded when a check-in does not name one",
    )

    # =========================================================================
    # Waivers
    # =========================================================================
    LIABILITY_WAIVER_TYPE: str = Field(
        default="liability",
        description="Waiver type required by the check-in gate",
    )
    WAIVER_VALIDITY_YEARS: int = Field(
        default=1,
        gt=0,
        description="Length of the waiver validity window in calendar years",
    )
    WAIVER_EXPIRY_WARNING_DAYS: int = Field(
        default=30,
        ge=0,
        description="Days before expiration at which renewal warnings begin",
    )
    ADULT_AGE: int = Field(default=18, gt=0, description="Age of majority")

    # =========================================================================
    # Pricing
    # =========================================================================
    DROP_IN_PRICE: Decimal = Field(
        default=Decimal("20.00"),
        ge=0,
        description="Price of a single drop-in class",
    )
    TRIAL_PERIOD_DAYS: int = Field(
        default=7,
        ge=0,
        description="Free trial length for new subscriptions",
    )
    DEFAULT_PROGRAM: str = Field(
        default="adult-bjj",
        description="Program used when a member has none recorded",
    )
    PROGRAM_MONTHLY_RATES: dict[str, Decimal] = Field(
        default_factory=lambda: {
            "adult-bjj": Decimal("100.00"),
            "kids-bjj": Decimal("75.00"),
        },
        description="Monthly subscription price per program",
    )
    PROGRAM_NAMES: dict[str, str] = Field(
        default_factory=lambda: {
            "adult-bjj": "Adult Gi Classes",
            "kids-bjj": "Kids Gi Classes",
        },
        description="Display name per program, used on billing line items",
    )
    MEMBER_TYPE_MONTHLY_RATES: dict[str, Decimal] = Field(
        default_factory=lambda: {
            "adult": Decimal("100.00"),
            "kid": Decimal("75.00"),
        },
        description="Standalone monthly rate per family member type",
    )
    FAMILY_ADDITIONAL_MEMBER_DISCOUNTS: list[Decimal] = Field(
        default_factory=lambda: [Decimal("0.10")],
        description=(
            "Discount applied for the 2nd, 3rd, ... family member; "
            "the last entry repeats for larger families"
        ),
    )

    # =========================================================================
    # Billing Processor
    # =========================================================================
    STRIPE_API_KEY: Optional[str] = Field(default=None, description="Stripe secret key")
    PUBLIC_BASE_URL: str = Field(
        default="https://example.com",
        description="Base URL used for checkout success/cancel redirects",
    )
    BILLING_CURRENCY: str = Field(default="usd", description="Billing currency")
    PROMO_CODES: dict[str, dict[str, str]] = Field(
        default_factory=lambda: dict(DEFAULT_PROMO_CODES),
        description="Known promo code -> {coupon_id, description}",
    )

    # =========================================================================
    # Validators
    # =========================================================================
    @field_validator("FACILITY_TIMEZONE")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject time zone names zoneinfo cannot resolve."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {v}") from e
        return v

    @field_validator("FAMILY_ADDITIONAL_MEMBER_DISCOUNTS")
    @classmethod
    def validate_discounts(cls, v: list[Decimal]) -> list[Decimal]:
        """Each discount must be a fraction in [0, 1)."""
        for rate in v:
            if rate < 0 or rate >= 1:
                raise ValueError(f"Family discount must be in [0, 1): {rate}")
        return v

    @field_validator("PROGRAM_MONTHLY_RATES", "MEMBER_TYPE_MONTHLY_RATES")
    @classmethod
    def validate_rates(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        for key, rate in v.items():
            if rate < 0:
                raise ValueError(f"Rate for {key} cannot be negative")
        return v

    @field_validator("PROMO_CODES")
    @classmethod
    def normalize_promo_codes(cls, v: dict[str, dict[str, str]]) -> dict[str, dict[str, str]]:
        """Store promo codes upper-cased so lookups are case-insensitive."""
        return {code.strip().upper(): entry for code, entry in v.items()}

    @property
    def facility_tz(self) -> ZoneInfo:
        """Facility time zone object."""
        return ZoneInfo(self.FACILITY_TIMEZONE)

    @property
    def is_demo_mode(self) -> bool:
        """Check if running in demo mode."""
        return self.INTEGRATION_MODE == IntegrationMode.DEMO

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def monthly_rate_for_program(self, program: Optional[str]) -> Decimal:
        """Monthly rate for a program, falling back to the default program."""
        rates = self.PROGRAM_MONTHLY_RATES
        if program and program in rates:
            return rates[program]
        return rates[self.DEFAULT_PROGRAM]


# Singleton instance
_gym_settings: Optional[GymSettings] = None


def get_gym_settings() -> GymSettings:
    """
    Get cached settings instance.

    Returns:
        GymSettings instance
    """
    global _gym_settings
    if _gym_settings is None:
        _gym_settings = GymSettings()
    return _gym_settings


def reset_gym_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _gym_settings
    _gym_settings = None
