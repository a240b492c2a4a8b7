"""
Member Resolver.

Turns whatever a kiosk or front desk typed or scanned into a single member.
Strategies are tried in order, exact keys first; the first strategy that
yields exactly one member wins. A sole match is returned whatever its
status, so the check-in gate can report why it is refused. Only when a key
matches several members (shared email, common phone suffix) does the single
active one win.

    qr_code -> member id -> member_code -> short_id -> email -> phone suffix
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional, Sequence
from uuid import UUID

from src.core.enums import MemberStatus
from src.schemas.membership import Member
from src.services.adapters.base import MembershipStore

logger = logging.getLogger(__name__)

PHONE_SUFFIX_LENGTH = 4
_PHONE_SUFFIX_PATTERN = re.compile(rf"^\d{{{PHONE_SUFFIX_LENGTH}}}$")


def _single_match(members: Sequence[Member]) -> Optional[Member]:
    if len(members) == 1:
        return members[0]
    active = [m for m in members if m.status == MemberStatus.ACTIVE]
    if len(active) == 1:
        return active[0]
    if len(active) > 1:
        logger.warning(f"Ambiguous member lookup: {len(active)} active matches")
    return None


class ResolverStrategy(ABC):
    """One way of interpreting a lookup code."""

    name: str = "strategy"

    def accepts(self, code: str) -> bool:
        """Cheap syntactic check before touching the store."""
        return True

    @abstractmethod
    async def candidates(self, store: MembershipStore, code: str) -> list[Member]:
        """Members matching the code under this strategy."""

    async def resolve(self, store: MembershipStore, code: str) -> Optional[Member]:
        if not self.accepts(code):
            return None
        return _single_match(await self.candidates(store, code))


class FieldStrategy(ResolverStrategy):
    """Exact match on a member column."""

    def __init__(self, field: str):
        self.field = field
        self.name = field

    async def candidates(self, store: MembershipStore, code: str) -> list[Member]:
        return await store.find_members(self.field, code)


class MemberIdStrategy(ResolverStrategy):
    name = "id"

    def accepts(self, code: str) -> bool:
        try:
            UUID(code)
        except ValueError:
            return False
        return True

    async def candidates(self, store: MembershipStore, code: str) -> list[Member]:
        member = await store.get_member(UUID(code))
        return [member] if member else []


class ShortIdStrategy(ResolverStrategy):
    name = "short_id"

    def accepts(self, code: str) -> bool:
        return code.isdigit()

    async def candidates(self, store: MembershipStore, code: str) -> list[Member]:
        return await store.find_members("short_id", int(code))


class EmailStrategy(ResolverStrategy):
    name = "email"

    def accepts(self, code: str) -> bool:
        return "@" in code

    async def candidates(self, store: MembershipStore, code: str) -> list[Member]:
        return await store.find_members("email", code.lower())


class PhoneSuffixStrategy(ResolverStrategy):
    """Last four phone digits. Only resolves when exactly one member matches."""

    name = "phone_suffix"

    def accepts(self, code: str) -> bool:
        return bool(_PHONE_SUFFIX_PATTERN.match(code))

    async def candidates(self, store: MembershipStore, code: str) -> list[Member]:
        return await store.find_members_by_phone_suffix(code)


DEFAULT_STRATEGIES: tuple[ResolverStrategy, ...] = (
    FieldStrategy("qr_code"),
    MemberIdStrategy(),
    FieldStrategy("member_code"),
    ShortIdStrategy(),
    EmailStrategy(),
    PhoneSuffixStrategy(),
)


class MemberResolver:
    """Runs the strategy chain against a store."""

    def __init__(
        self,
        store: MembershipStore,
        strategies: Optional[Sequence[ResolverStrategy]] = None,
    ):
        self.store = store
        self.strategies = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES

    async def resolve(self, code: Optional[str]) -> Optional[Member]:
        """
        Resolve a lookup code to one member.

        Returns:
            The member, or None when nothing matches or several active
            members do
        """
        code = (code or "").strip()
        if not code:
            return None

        for strategy in self.strategies:
            member = await strategy.resolve(self.store, code)
            if member is not None:
                logger.debug(f"Member resolved via {strategy.name}: {member.id}")
                return member

        logger.info("Member lookup found no unique match")
        return None
