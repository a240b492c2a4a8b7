"""
Service Adapters for Demo/Live Mode.

Provides abstraction layer for switching between demo and live data sources
and billing processors.
"""

from src.services.adapters.base import UNIQUE_MEMBER_KEYS, AdapterMode, MembershipStore
from src.services.adapters.member_adapter import InMemoryMembershipStore, get_membership_store
from src.services.adapters.billing_adapter import (
    BillingProcessor,
    BillingSubscription,
    CheckoutSession,
    Coupon,
    DemoBillingProcessor,
    StripeBillingProcessor,
    get_billing_processor,
)
from src.services.adapters.sql_adapter import SqlMembershipStore


__all__ = [
    # Base
    "AdapterMode",
    "MembershipStore",
    "UNIQUE_MEMBER_KEYS",
    # Stores
    "InMemoryMembershipStore",
    "SqlMembershipStore",
    "get_membership_store",
    # Billing
    "BillingProcessor",
    "BillingSubscription",
    "CheckoutSession",
    "Coupon",
    "DemoBillingProcessor",
    "StripeBillingProcessor",
    "get_billing_processor",
]
