"""
Base Storage Adapter.

Abstract interface to the relational store holding members, waivers and
check-ins. The engine only ever sees snapshots returned by these methods;
demo mode keeps them in memory, live mode reads them from the database.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from src.schemas.membership import CheckIn, Member, Waiver


class AdapterMode(str, Enum):
    """Adapter operating mode."""

    DEMO = "demo"
    LIVE = "live"


# Member fields that double as unique alternate lookup keys
UNIQUE_MEMBER_KEYS = ("qr_code", "member_code", "short_id")


class MembershipStore(ABC):
    """
    Storage operations the engine depends on.

    Implementations must enforce at most one check-in per
    (member_id, local_date, class_type) and raise ``ConflictError`` when a
    second insert races in.
    """

    def __init__(self, mode: AdapterMode = AdapterMode.DEMO):
        self._mode = mode

    @property
    def mode(self) -> AdapterMode:
        """Get current operating mode."""
        return self._mode

    def is_demo_mode(self) -> bool:
        """Check if running in demo mode."""
        return self._mode == AdapterMode.DEMO

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_member(self, member_id: UUID) -> Optional[Member]:
        """Get member by ID."""

    @abstractmethod
    async def find_members(self, field: str, value: Any) -> list[Member]:
        """Exact-match lookup on a member column (email, qr_code, ...)."""

    @abstractmethod
    async def find_members_by_phone_suffix(self, suffix: str) -> list[Member]:
        """Members whose phone number ends with ``suffix``."""

    @abstractmethod
    async def get_family_members(self, family_account_id: UUID) -> list[Member]:
        """All members sharing a family account."""

    @abstractmethod
    async def add_member(self, member: Member) -> Member:
        """Persist a new member."""

    @abstractmethod
    async def update_member(self, member_id: UUID, updates: dict[str, Any]) -> Member:
        """Apply field updates; raises ``NotFoundError`` for unknown members."""

    # -------------------------------------------------------------------------
    # Waivers
    # -------------------------------------------------------------------------

    @abstractmethod
    async def latest_waiver(self, member_id: UUID, waiver_type: str) -> Optional[Waiver]:
        """Most recently signed waiver of a type for a member."""

    @abstractmethod
    async def add_waiver(self, waiver: Waiver) -> Waiver:
        """Persist a new waiver row. Existing rows are never updated."""

    @abstractmethod
    async def waivers_signed_between(self, start: datetime, end: datetime) -> list[Waiver]:
        """Waivers with ``start <= signed_at < end``, newest first."""

    # -------------------------------------------------------------------------
    # Check-ins
    # -------------------------------------------------------------------------

    @abstractmethod
    async def check_ins_for_day(
        self,
        member_id: UUID,
        local_date: date,
        class_type: Optional[str] = None,
    ) -> list[CheckIn]:
        """Check-ins on a facility-local date, optionally for one class type."""

    @abstractmethod
    async def add_check_in(self, check_in: CheckIn) -> CheckIn:
        """Persist a check-in; raises ``ConflictError`` on a same-day duplicate."""

    @abstractmethod
    async def recent_check_ins(self, member_id: UUID, limit: int = 30) -> list[CheckIn]:
        """Most recent check-ins, newest first."""
