"""
Waiver Expiration Reminders.

Finds active members whose current liability waiver expires a set number of
days from now, so a daily job can remind each of them once. Sending the
email is left to the caller.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from src.core.config import GymSettings, get_gym_settings
from src.core.enums import MemberStatus
from src.schemas.membership import Member, Waiver
from src.services.adapters.base import MembershipStore
from src.services.waiver_validity import WaiverCalculator, as_utc

logger = logging.getLogger(__name__)


@dataclass
class WaiverReminder:
    """One member due a renewal reminder."""

    member: Member
    waiver: Waiver
    expires_at: datetime
    days_until_expiration: int
    recipient_email: Optional[str]


class WaiverReminderService:
    """Daily expiring-waiver sweep."""

    def __init__(self, store: MembershipStore, settings: Optional[GymSettings] = None):
        self.store = store
        self.settings = settings or get_gym_settings()
        self.calculator = WaiverCalculator(self.settings)

    def expiry_window(self, now: datetime, days_ahead: int) -> tuple[datetime, datetime]:
        """[start, end) of expiry instants that are due a reminder today."""
        end = as_utc(now) + timedelta(days=days_ahead)
        return end - timedelta(days=1), end

    def signing_window(self, now: datetime, days_ahead: int) -> tuple[datetime, datetime]:
        """
        [start, end) of signing times that can expire inside the expiry
        window. Ends a day late so 29 February signatures, which expire on
        28 February, are still picked up.
        """
        years = relativedelta(years=self.settings.WAIVER_VALIDITY_YEARS)
        expiry_start, expiry_end = self.expiry_window(now, days_ahead)
        return expiry_start - years, expiry_end - years + timedelta(days=1)

    async def find_expiring(
        self,
        now: datetime,
        days_ahead: Optional[int] = None,
    ) -> list[WaiverReminder]:
        """
        Members to remind today.

        Only a member's latest liability waiver counts, so anyone who has
        already renewed is skipped. Inactive and cancelled members are
        skipped too.
        """
        if days_ahead is None:
            days_ahead = self.settings.WAIVER_EXPIRY_WARNING_DAYS
        start, end = self.signing_window(now, days_ahead)
        expiry_start, expiry_end = self.expiry_window(now, days_ahead)
        waiver_type = self.settings.LIABILITY_WAIVER_TYPE

        newest: dict = {}
        for waiver in await self.store.waivers_signed_between(start, end):
            if waiver.waiver_type != waiver_type:
                continue
            if not expiry_start <= self.calculator.expiration(waiver) < expiry_end:
                continue
            current = newest.get(waiver.member_id)
            if current is None or as_utc(waiver.signed_at) > as_utc(current.signed_at):
                newest[waiver.member_id] = waiver

        reminders: list[WaiverReminder] = []
        for member_id, waiver in newest.items():
            latest = await self.store.latest_waiver(member_id, waiver_type)
            if latest is None or latest.id != waiver.id:
                continue
            member = await self.store.get_member(member_id)
            if member is None or member.status != MemberStatus.ACTIVE:
                continue
            reminders.append(
                WaiverReminder(
                    member=member,
                    waiver=waiver,
                    expires_at=self.calculator.expiration(waiver),
                    days_until_expiration=self.calculator.days_until_expiration(waiver, now),
                    recipient_email=member.email or member.parent_email or waiver.signer_email,
                )
            )

        logger.info(
            f"Waiver reminder sweep: {len(newest)} expiring waivers, "
            f"{len(reminders)} reminders due"
        )
        return reminders
