"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.core.config import GymSettings  # noqa: E402
from src.core.enums import MemberStatus, PaymentStatus, SignerRelationship  # noqa: E402
from src.schemas.membership import Member, Waiver  # noqa: E402
from src.services.adapters.billing_adapter import Coupon, DemoBillingProcessor  # noqa: E402
from src.services.adapters.member_adapter import InMemoryMembershipStore  # noqa: E402


NOW = datetime(2024, 6, 15, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation instant: 15 June 2024, 15:00 UTC."""
    return NOW


@pytest.fixture
def settings() -> GymSettings:
    """Settings isolated from the environment and any .env file."""
    return GymSettings(_env_file=None, ENVIRONMENT="testing")


@pytest.fixture
def store() -> InMemoryMembershipStore:
    return InMemoryMembershipStore()


@pytest.fixture
def processor() -> DemoBillingProcessor:
    return DemoBillingProcessor(
        coupons=[
            Coupon(id="FAMILY_DISCOUNT_25", percent_off=25),
            Coupon(id="FIRST_WEEK_FREE", name="First week free"),
            Coupon(id="EXPIRED_10", percent_off=10, valid=False),
            Coupon(id="SPRING5", amount_off=500, currency="usd"),
        ],
        now=NOW,
    )


def build_member(**overrides) -> Member:
    """Active, paid adult member unless overridden."""
    values = {
        "first_name": "Alex",
        "last_name": "Rivera",
        "email": "alex@example.com",
        "phone": "(555) 123-4567",
        "birth_date": date(1990, 3, 10),
        "status": MemberStatus.ACTIVE,
        "payment_status": PaymentStatus.ACTIVE,
        "program": "adult-bjj",
    }
    values.update(overrides)
    return Member(**values)


def build_waiver(member: Member, signed_at: datetime, **overrides) -> Waiver:
    values = {
        "member_id": member.id,
        "signer_name": member.full_name,
        "signer_relationship": SignerRelationship.SELF,
        "signature_data": "data:image/png;base64,AAAA",
        "signed_at": signed_at,
    }
    values.update(overrides)
    return Waiver(**values)


@pytest.fixture
def make_member():
    return build_member


@pytest.fixture
def make_waiver():
    return build_waiver


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "api: mark test as an API test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
