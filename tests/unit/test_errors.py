"""
Unit Tests for Engine Errors
"""

import pytest

from src.utils.errors import (
    ConflictError,
    GymEngineError,
    NotFoundError,
    PolicyDeniedError,
    UpstreamFailureError,
    ValidationFailureError,
)


@pytest.mark.unit
class TestEngineErrors:
    """Test status codes and serialization"""

    @pytest.mark.parametrize(
        "error_cls,status_code,reason",
        [
            (NotFoundError, 404, "NOT_FOUND"),
            (PolicyDeniedError, 403, "POLICY_DENIED"),
            (ConflictError, 409, "CONFLICT"),
            (UpstreamFailureError, 502, "UPSTREAM_FAILURE"),
            (ValidationFailureError, 422, "VALIDATION_FAILURE"),
        ],
    )
    def test_defaults(self, error_cls, status_code, reason):
        error = error_cls()
        assert isinstance(error, GymEngineError)
        assert error.status_code == status_code
        assert error.reason == reason
        assert str(error) == error.message

    def test_to_dict(self):
        error = PolicyDeniedError(
            "Payment status is not active (payment status: past_due)",
            reason="PAYMENT_NOT_ACTIVE",
            details={"member_name": "Alex Rivera"},
        )
        assert error.to_dict() == {
            "error": "Payment status is not active (payment status: past_due)",
            "reason": "PAYMENT_NOT_ACTIVE",
            "details": {"member_name": "Alex Rivera"},
        }

    def test_to_dict_omits_empty_details(self):
        assert "details" not in NotFoundError("Member not found").to_dict()

    def test_upstream_operation(self):
        error = UpstreamFailureError("card declined", operation="create_subscription")
        assert error.operation == "create_subscription"
        assert error.reason == "UPSTREAM_FAILURE"
