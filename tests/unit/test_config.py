"""
Unit Tests for Configuration Management
Tests settings validation and property methods
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from src.core.config import GymSettings, get_gym_settings, reset_gym_settings
from src.core.enums import IntegrationMode


@pytest.mark.unit
class TestSettingsValidation:
    """Test configuration validation"""

    def test_defaults(self):
        """Test stock business thresholds"""
        settings = GymSettings(_env_file=None)
        assert settings.WAIVER_VALIDITY_YEARS == 1
        assert settings.WAIVER_EXPIRY_WARNING_DAYS == 30
        assert settings.ADULT_AGE == 18
        assert settings.DROP_IN_PRICE == Decimal("20.00")
        assert settings.FAMILY_ADDITIONAL_MEMBER_DISCOUNTS == [Decimal("0.10")]
        assert settings.INTEGRATION_MODE == IntegrationMode.DEMO

    def test_environment_literal_validation(self):
        """Test that ENVIRONMENT only accepts valid values"""
        for env in ["development", "staging", "production", "testing"]:
            assert GymSettings(_env_file=None, ENVIRONMENT=env).ENVIRONMENT == env

        with pytest.raises(ValidationError):
            GymSettings(_env_file=None, ENVIRONMENT="invalid_env")

    def test_unknown_timezone_rejected(self):
        """Test that the facility time zone must resolve"""
        with pytest.raises(ValidationError) as exc_info:
            GymSettings(_env_file=None, FACILITY_TIMEZONE="Mars/Olympus_Mons")

        errors = exc_info.value.errors()
        assert any("Unknown time zone" in str(error) for error in errors)

    def test_family_discount_range(self):
        """Test that discounts must be fractions below one"""
        with pytest.raises(ValidationError):
            GymSettings(_env_file=None, FAMILY_ADDITIONAL_MEMBER_DISCOUNTS=[Decimal("1.0")])
        with pytest.raises(ValidationError):
            GymSettings(_env_file=None, FAMILY_ADDITIONAL_MEMBER_DISCOUNTS=[Decimal("-0.1")])

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationError):
            GymSettings(_env_file=None, PROGRAM_MONTHLY_RATES={"adult-bjj": Decimal("-1")})

    def test_validity_years_positive(self):
        with pytest.raises(ValidationError):
            GymSettings(_env_file=None, WAIVER_VALIDITY_YEARS=0)

    def test_environment_variables(self, monkeypatch):
        """Test GYM_ prefixed environment overrides"""
        monkeypatch.setenv("GYM_FACILITY_TIMEZONE", "America/Chicago")
        monkeypatch.setenv("GYM_WAIVER_EXPIRY_WARNING_DAYS", "14")
        monkeypatch.setenv("GYM_INTEGRATION_MODE", "live")

        settings = GymSettings(_env_file=None)

        assert settings.FACILITY_TIMEZONE == "America/Chicago"
        assert settings.WAIVER_EXPIRY_WARNING_DAYS == 14
        assert settings.is_demo_mode is False


@pytest.mark.unit
class TestSettingsProperties:
    """Test settings property methods"""

    def test_promo_codes_upper_cased(self):
        settings = GymSettings(
            _env_file=None,
            PROMO_CODES={" summer ": {"coupon_id": "SUMMER", "description": "Summer"}},
        )
        assert list(settings.PROMO_CODES) == ["SUMMER"]

    def test_facility_tz(self):
        settings = GymSettings(_env_file=None, FACILITY_TIMEZONE="Europe/London")
        assert settings.facility_tz.key == "Europe/London"

    def test_is_production(self):
        assert GymSettings(_env_file=None, ENVIRONMENT="production").is_production is True
        assert GymSettings(_env_file=None).is_production is False

    def test_monthly_rate_for_program(self):
        settings = GymSettings(_env_file=None)
        assert settings.monthly_rate_for_program("kids-bjj") == Decimal("75.00")
        assert settings.monthly_rate_for_program("unknown") == Decimal("100.00")
        assert settings.monthly_rate_for_program(None) == Decimal("100.00")


@pytest.mark.unit
class TestSettingsSingleton:
    """Test cached settings"""

    def test_get_settings_cached(self):
        reset_gym_settings()
        try:
            assert get_gym_settings() is get_gym_settings()
        finally:
            reset_gym_settings()

    def test_reset_rereads_environment(self, monkeypatch):
        reset_gym_settings()
        try:
            monkeypatch.setenv("GYM_ADULT_AGE", "21")
            assert get_gym_settings().ADULT_AGE == 21
        finally:
            reset_gym_settings()
