"""
In-Memory Membership Store.

Demo-mode storage for members, waivers and check-ins. Applies the same
uniqueness rules as the database schema so that behaviour in demo mode and
tests matches live mode.
"""

from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from src.schemas.membership import CheckIn, Member, Waiver
from src.services.adapters.base import UNIQUE_MEMBER_KEYS, AdapterMode, MembershipStore
from src.services.waiver_validity import as_utc, latest_waiver
from src.utils.errors import ConflictError, NotFoundError, ValidationFailureError


class InMemoryMembershipStore(MembershipStore):
    """Dictionary-backed store."""

    def __init__(self, mode: AdapterMode = AdapterMode.DEMO):
        super().__init__(mode)
        self._members: dict[UUID, Member] = {}
        self._waivers: list[Waiver] = []
        self._check_ins: list[CheckIn] = []

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    async def get_member(self, member_id: UUID) -> Optional[Member]:
        member = self._members.get(member_id)
        return member.model_copy() if member else None

    async def find_members(self, field: str, value: Any) -> list[Member]:
        if field not in Member.model_fields:
            raise ValidationFailureError(f"Unknown member field: {field}")
        if field in ("email", "parent_email") and isinstance(value, str):
            value = value.strip().lower()
        return [m.model_copy() for m in self._members.values() if getattr(m, field) == value]

    async def find_members_by_phone_suffix(self, suffix: str) -> list[Member]:
        return [
            m.model_copy()
            for m in self._members.values()
            if m.phone and _digits(m.phone).endswith(suffix)
        ]

    async def get_family_members(self, family_account_id: UUID) -> list[Member]:
        return [
            m.model_copy()
            for m in self._members.values()
            if m.family_account_id == family_account_id
        ]

    async def add_member(self, member: Member) -> Member:
        if member.id in self._members:
            raise ConflictError(f"Member {member.id} already exists", reason="MEMBER_EXISTS")
        self._check_unique_keys(member.id, member.model_dump(include=set(UNIQUE_MEMBER_KEYS)))
        self._members[member.id] = member.model_copy()
        return member.model_copy()

    async def update_member(self, member_id: UUID, updates: dict[str, Any]) -> Member:
        member = self._members.get(member_id)
        if member is None:
            raise NotFoundError(f"Member {member_id} not found", reason="MEMBER_NOT_FOUND")

        unknown = [k for k in updates if k not in Member.model_fields]
        if unknown:
            raise ValidationFailureError(f"Unknown member fields: {', '.join(unknown)}")

        self._check_unique_keys(member_id, updates)
        updated = member.model_copy(update=updates)
        self._members[member_id] = updated
        return updated.model_copy()

    def _check_unique_keys(self, member_id: UUID, values: dict[str, Any]) -> None:
        for key in UNIQUE_MEMBER_KEYS:
            value = values.get(key)
            if value is None:
                continue
            for other in self._members.values():
                if other.id != member_id and getattr(other, key) == value:
                    raise ConflictError(
                        f"{key} already assigned to {other.full_name}",
                        reason=f"{key.upper()}_TAKEN",
                        details={"member_id": str(other.id)},
                    )

    # -------------------------------------------------------------------------
    # Waivers
    # -------------------------------------------------------------------------

    async def latest_waiver(self, member_id: UUID, waiver_type: str) -> Optional[Waiver]:
        return latest_waiver((w for w in self._waivers if w.member_id == member_id), waiver_type)

    async def add_waiver(self, waiver: Waiver) -> Waiver:
        if any(w.id == waiver.id for w in self._waivers):
            raise ConflictError("Waivers are immutable once signed", reason="WAIVER_EXISTS")
        self._waivers.append(waiver)
        return waiver

    async def waivers_signed_between(self, start: datetime, end: datetime) -> list[Waiver]:
        start, end = as_utc(start), as_utc(end)
        matching = [w for w in self._waivers if start <= as_utc(w.signed_at) < end]
        return sorted(matching, key=lambda w: as_utc(w.signed_at), reverse=True)

    # -------------------------------------------------------------------------
    # Check-ins
    # -------------------------------------------------------------------------

    async def check_ins_for_day(
        self,
        member_id: UUID,
        local_date: date,
        class_type: Optional[str] = None,
    ) -> list[CheckIn]:
        return [
            c.model_copy()
            for c in self._check_ins
            if c.member_id == member_id
            and c.local_date == local_date
            and (class_type is None or c.class_type == class_type)
        ]

    async def add_check_in(self, check_in: CheckIn) -> CheckIn:
        for existing in self._check_ins:
            if (
                existing.member_id == check_in.member_id
                and existing.local_date == check_in.local_date
                and existing.class_type == check_in.class_type
            ):
                raise ConflictError(
                    "Member already checked in for this class today",
                    reason="ALREADY_CHECKED_IN",
                    details={"check_in_id": str(existing.id)},
                )
        self._check_ins.append(check_in.model_copy())
        return check_in

    async def recent_check_ins(self, member_id: UUID, limit: int = 30) -> list[CheckIn]:
        rows = [c for c in self._check_ins if c.member_id == member_id]
        rows.sort(key=lambda c: as_utc(c.checked_in_at), reverse=True)
        return [c.model_copy() for c in rows[:limit]]

    # -------------------------------------------------------------------------
    # Demo helpers
    # -------------------------------------------------------------------------

    def seed(
        self,
        members: Optional[list[Member]] = None,
        waivers: Optional[list[Waiver]] = None,
        check_ins: Optional[list[CheckIn]] = None,
    ) -> None:
        """Load records directly, bypassing uniqueness checks."""
        for member in members or []:
            self._members[member.id] = member.model_copy()
        self._waivers.extend(waivers or [])
        self._check_ins.extend(check_ins or [])

    def clear(self) -> None:
        """Drop all records."""
        self._members.clear()
        self._waivers.clear()
        self._check_ins.clear()

    @property
    def check_in_count(self) -> int:
        return len(self._check_ins)


def _digits(phone: str) -> str:
    return "".join(ch for ch in phone if ch.isdigit())


_membership_store: Optional[MembershipStore] = None


def get_membership_store() -> MembershipStore:
    """Store for the configured integration mode."""
    global _membership_store
    if _membership_store is None:
        from src.core.config import get_gym_settings

        if get_gym_settings().is_demo_mode:
            _membership_store = InMemoryMembershipStore()
        else:
            from src.db.connection import get_session_maker
            from src.services.adapters.sql_adapter import SqlMembershipStore

            _membership_store = SqlMembershipStore(get_session_maker())
    return _membership_store
