"""
SQL Membership Store.

Live-mode storage over async SQLAlchemy sessions. Each call runs in its own
short session; uniqueness violations surface as ``ConflictError``.
Timestamps are pinned to UTC by the column type.
"""

from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.check_in import CheckInRecord
from src.models.member import MemberRecord
from src.models.waiver import WaiverRecord
from src.schemas.membership import CheckIn, Member, Waiver
from src.services.adapters.base import UNIQUE_MEMBER_KEYS, AdapterMode, MembershipStore
from src.utils.errors import ConflictError, NotFoundError, ValidationFailureError
from src.utils.logging import get_logger

logger = get_logger(__name__)


class SqlMembershipStore(MembershipStore):
    """Database-backed store."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        super().__init__(AdapterMode.LIVE)
        self._session_maker = session_maker

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    async def get_member(self, member_id: UUID) -> Optional[Member]:
        async with self._session_maker() as session:
            record = await session.get(MemberRecord, member_id)
            return Member.model_validate(record) if record else None

    async def find_members(self, field: str, value: Any) -> list[Member]:
        if field not in Member.model_fields or not hasattr(MemberRecord, field):
            raise ValidationFailureError(f"Unknown member field: {field}")
        if field in ("email", "parent_email") and isinstance(value, str):
            value = value.strip().lower()
        async with self._session_maker() as session:
            result = await session.execute(
                select(MemberRecord).where(getattr(MemberRecord, field) == value)
            )
            return [Member.model_validate(r) for r in result.scalars().all()]

    async def find_members_by_phone_suffix(self, suffix: str) -> list[Member]:
        # Phones are stored as entered, so digits are compared in Python
        async with self._session_maker() as session:
            result = await session.execute(
                select(MemberRecord).where(MemberRecord.phone.is_not(None))
            )
            return [
                Member.model_validate(r)
                for r in result.scalars().all()
                if "".join(ch for ch in r.phone if ch.isdigit()).endswith(suffix)
            ]

    async def get_family_members(self, family_account_id: UUID) -> list[Member]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(MemberRecord)
                .where(MemberRecord.family_account_id == family_account_id)
                .order_by(MemberRecord.is_primary_account_holder.desc(), MemberRecord.created_at)
            )
            return [Member.model_validate(r) for r in result.scalars().all()]

    async def add_member(self, member: Member) -> Member:
        async with self._session_maker() as session:
            await self._check_unique_keys(
                session, member.id, member.model_dump(include=set(UNIQUE_MEMBER_KEYS))
            )
            record = MemberRecord(**member.model_dump())
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConflictError(
                    f"Member {member.id} conflicts with an existing record",
                    reason="MEMBER_EXISTS",
                ) from e
            await session.refresh(record)
            return Member.model_validate(record)

    async def update_member(self, member_id: UUID, updates: dict[str, Any]) -> Member:
        unknown = [k for k in updates if k not in Member.model_fields or k == "id"]
        if unknown:
            raise ValidationFailureError(f"Unknown member fields: {', '.join(unknown)}")

        async with self._session_maker() as session:
            record = await session.get(MemberRecord, member_id)
            if record is None:
                raise NotFoundError(f"Member {member_id} not found", reason="MEMBER_NOT_FOUND")

            await self._check_unique_keys(session, member_id, updates)
            for key, value in updates.items():
                setattr(record, key, value)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConflictError("Member update violates a unique key") from e
            await session.refresh(record)
            return Member.model_validate(record)

    async def _check_unique_keys(
        self,
        session: AsyncSession,
        member_id: UUID,
        values: dict[str, Any],
    ) -> None:
        for key in UNIQUE_MEMBER_KEYS:
            value = values.get(key)
            if value is None:
                continue
            result = await session.execute(
                select(MemberRecord).where(
                    getattr(MemberRecord, key) == value,
                    MemberRecord.id != member_id,
                )
            )
            other = result.scalars().first()
            if other is not None:
                raise ConflictError(
                    f"{key} already assigned to {other.full_name}",
                    reason=f"{key.upper()}_TAKEN",
                    details={"member_id": str(other.id)},
                )

    # -------------------------------------------------------------------------
    # Waivers
    # -------------------------------------------------------------------------

    async def latest_waiver(self, member_id: UUID, waiver_type: str) -> Optional[Waiver]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(WaiverRecord)
                .where(
                    WaiverRecord.member_id == member_id,
                    WaiverRecord.waiver_type == waiver_type,
                )
                .order_by(WaiverRecord.signed_at.desc())
                .limit(1)
            )
            record = result.scalars().first()
            return Waiver.model_validate(record) if record else None

    async def add_waiver(self, waiver: Waiver) -> Waiver:
        async with self._session_maker() as session:
            session.add(WaiverRecord(**waiver.model_dump()))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConflictError(
                    "Waivers are immutable once signed", reason="WAIVER_EXISTS"
                ) from e
        return waiver

    async def waivers_signed_between(self, start: datetime, end: datetime) -> list[Waiver]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(WaiverRecord)
                .where(
                    WaiverRecord.signed_at >= start,
                    WaiverRecord.signed_at < end,
                )
                .order_by(WaiverRecord.signed_at.desc())
            )
            return [Waiver.model_validate(r) for r in result.scalars().all()]

    # -------------------------------------------------------------------------
    # Check-ins
    # -------------------------------------------------------------------------

    async def check_ins_for_day(
        self,
        member_id: UUID,
        local_date: date,
        class_type: Optional[str] = None,
    ) -> list[CheckIn]:
        query = select(CheckInRecord).where(
            CheckInRecord.member_id == member_id,
            CheckInRecord.local_date == local_date,
        )
        if class_type is not None:
            query = query.where(CheckInRecord.class_type == class_type)
        async with self._session_maker() as session:
            result = await session.execute(query.order_by(CheckInRecord.checked_in_at))
            return [CheckIn.model_validate(r) for r in result.scalars().all()]

    async def add_check_in(self, check_in: CheckIn) -> CheckIn:
        async with self._session_maker() as session:
            session.add(CheckInRecord(**check_in.model_dump()))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.info(
                    f"Duplicate check-in rejected by database: member={check_in.member_id}, "
                    f"local_date={check_in.local_date}"
                )
                raise ConflictError(
                    "Member already checked in for this class today",
                    reason="ALREADY_CHECKED_IN",
                ) from e
        return check_in

    async def recent_check_ins(self, member_id: UUID, limit: int = 30) -> list[CheckIn]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(CheckInRecord)
                .where(CheckInRecord.member_id == member_id)
                .order_by(CheckInRecord.checked_in_at.desc())
                .limit(limit)
            )
            return [CheckIn.model_validate(r) for r in result.scalars().all()]
