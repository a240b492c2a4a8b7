"""
Subscription Lifecycle Coordinator.

Keeps the member record and the billing processor moving through the same
subscription states. The member record is the access-control source of
truth; the processor only ever lags it.

State Diagram:
    NONE -> TRIAL (resubscribe)
    TRIAL -> ACTIVE | PAST_DUE | CANCEL_PENDING | CANCELLED
    ACTIVE -> PAST_DUE | CANCEL_PENDING | CANCELLED
    PAST_DUE -> ACTIVE | CANCEL_PENDING | CANCELLED
    CANCEL_PENDING -> CANCELLED | TRIAL (resubscribe)
    CANCELLED -> TRIAL (resubscribe) | CANCELLED (period end confirmed)

Failure handling differs by direction:
- Cancel commits the local status first; a processor failure afterwards is
  logged and reported but never rolled back.
- Resubscribe talks to the processor first; any failure aborts with no
  local change.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from src.core.config import GymSettings, get_gym_settings
from src.core.enums import LifecycleEvent, MemberStatus, PaymentStatus, SubscriptionState
from src.schemas.billing import CancellationResult, DropInResult, ResubscribeResult
from src.schemas.membership import Member
from src.services.adapters.base import MembershipStore
from src.services.adapters.billing_adapter import BillingProcessor
from src.services.waiver_validity import as_utc, is_minor
from src.utils.errors import (
    ConflictError,
    NotFoundError,
    UpstreamFailureError,
    ValidationFailureError,
)

logger = logging.getLogger(__name__)


@dataclass
class Transition:
    """Represents a valid subscription transition."""

    from_state: SubscriptionState
    to_state: SubscriptionState
    event: LifecycleEvent
    processor_driven: bool = False  # Reported by the processor, not requested by a person


# =============================================================================
# Valid Transitions Definition
# =============================================================================


VALID_TRANSITIONS: list[Transition] = [
    # From NONE
    Transition(SubscriptionState.NONE, SubscriptionState.TRIAL, LifecycleEvent.RESUBSCRIBE),
    Transition(SubscriptionState.NONE, SubscriptionState.CANCELLED, LifecycleEvent.CANCEL),

    # From TRIAL
    Transition(
        SubscriptionState.TRIAL, SubscriptionState.ACTIVE,
        LifecycleEvent.PAYMENT_SUCCEEDED, processor_driven=True,
    ),
    Transition(
        SubscriptionState.TRIAL, SubscriptionState.PAST_DUE,
        LifecycleEvent.PAYMENT_FAILED, processor_driven=True,
    ),
    Transition(SubscriptionState.TRIAL, SubscriptionState.CANCEL_PENDING, LifecycleEvent.CANCEL),
    Transition(
        SubscriptionState.TRIAL, SubscriptionState.CANCELLED,
        LifecycleEvent.PERIOD_ENDED, processor_driven=True,
    ),

    # From ACTIVE
    Transition(
        SubscriptionState.ACTIVE, SubscriptionState.ACTIVE,
        LifecycleEvent.PAYMENT_SUCCEEDED, processor_driven=True,
    ),
    Transition(
        SubscriptionState.ACTIVE, SubscriptionState.PAST_DUE,
        LifecycleEvent.PAYMENT_FAILED, processor_driven=True,
    ),
    Transition(SubscriptionState.ACTIVE, SubscriptionState.CANCEL_PENDING, LifecycleEvent.CANCEL),
    Transition(
        SubscriptionState.ACTIVE, SubscriptionState.CANCELLED,
        LifecycleEvent.PERIOD_ENDED, processor_driven=True,
    ),

    # From PAST_DUE
    Transition(
        SubscriptionState.PAST_DUE, SubscriptionState.ACTIVE,
        LifecycleEvent.PAYMENT_SUCCEEDED, processor_driven=True,
    ),
    Transition(
        SubscriptionState.PAST_DUE, SubscriptionState.PAST_DUE,
        LifecycleEvent.PAYMENT_FAILED, processor_driven=True,
    ),
    Transition(SubscriptionState.PAST_DUE, SubscriptionState.CANCEL_PENDING, LifecycleEvent.CANCEL),
    Transition(
        SubscriptionState.PAST_DUE, SubscriptionState.CANCELLED,
        LifecycleEvent.PERIOD_ENDED, processor_driven=True,
    ),

    # From CANCEL_PENDING
    Transition(
        SubscriptionState.CANCEL_PENDING, SubscriptionState.CANCELLED,
        LifecycleEvent.PERIOD_ENDED, processor_driven=True,
    ),
    Transition(
        SubscriptionState.CANCEL_PENDING, SubscriptionState.TRIAL, LifecycleEvent.RESUBSCRIBE
    ),

    # From CANCELLED
    Transition(SubscriptionState.CANCELLED, SubscriptionState.TRIAL, LifecycleEvent.RESUBSCRIBE),
    # Processor confirming a period end the record already reflects
    Transition(
        SubscriptionState.CANCELLED, SubscriptionState.CANCELLED,
        LifecycleEvent.PERIOD_ENDED, processor_driven=True,
    ),
]


class SubscriptionStateMachine:
    """Lookup over the valid subscription transitions."""

    def __init__(self):
        self._transitions: dict[tuple[SubscriptionState, LifecycleEvent], Transition] = {}
        self._from_state_map: dict[SubscriptionState, list[Transition]] = {}

        for transition in VALID_TRANSITIONS:
            self._transitions[(transition.from_state, transition.event)] = transition
            self._from_state_map.setdefault(transition.from_state, []).append(transition)

    def get_valid_transitions(self, state: SubscriptionState) -> list[Transition]:
        return self._from_state_map.get(state, [])

    def get_valid_events(self, state: SubscriptionState) -> list[LifecycleEvent]:
        return [t.event for t in self.get_valid_transitions(state)]

    def get_transition(
        self,
        state: SubscriptionState,
        event: LifecycleEvent,
    ) -> Optional[Transition]:
        return self._transitions.get((state, event))

    def require_transition(
        self,
        member_id: UUID,
        state: SubscriptionState,
        event: LifecycleEvent,
    ) -> Transition:
        """Transition for ``(state, event)``; invalid combinations are a conflict."""
        transition = self.get_transition(state, event)
        if transition is None:
            logger.warning(
                f"Rejected lifecycle event for member {member_id}: "
                f"{state.value} + {event.value}"
            )
            raise ConflictError(
                f"Cannot {event.value.replace('_', ' ')} from {state.value.replace('_', ' ')}",
                reason="INVALID_TRANSITION",
                details={"state": state.value, "event": event.value},
            )
        return transition


_state_machine: Optional[SubscriptionStateMachine] = None


def get_subscription_state_machine() -> SubscriptionStateMachine:
    """Get singleton state machine instance."""
    global _state_machine
    if _state_machine is None:
        _state_machine = SubscriptionStateMachine()
    return _state_machine


# =============================================================================
# State Derivation
# =============================================================================


def derive_subscription_state(member: Member, now: datetime) -> SubscriptionState:
    """
    Subscription state implied by a member record.

    A cancelled member whose paid period has not ended yet is CANCEL_PENDING.
    """
    status = MemberStatus(member.status)
    payment = PaymentStatus(member.payment_status)

    if status == MemberStatus.CANCELLED:
        if member.cancel_effective_at and as_utc(now) < as_utc(member.cancel_effective_at):
            return SubscriptionState.CANCEL_PENDING
        return SubscriptionState.CANCELLED
    if payment == PaymentStatus.PAST_DUE and status in (MemberStatus.ACTIVE, MemberStatus.TRIAL):
        return SubscriptionState.PAST_DUE
    if status == MemberStatus.TRIAL:
        return SubscriptionState.TRIAL
    if status == MemberStatus.ACTIVE:
        return SubscriptionState.ACTIVE
    return SubscriptionState.NONE


# Member fields written when a processor-driven transition lands
_STATE_FIELDS: dict[SubscriptionState, dict[str, Any]] = {
    SubscriptionState.ACTIVE: {
        "status": MemberStatus.ACTIVE,
        "payment_status": PaymentStatus.ACTIVE,
    },
    SubscriptionState.PAST_DUE: {"payment_status": PaymentStatus.PAST_DUE},
    SubscriptionState.CANCELLED: {
        "status": MemberStatus.CANCELLED,
        "payment_status": PaymentStatus.NONE,
    },
}


# =============================================================================
# Coordinator
# =============================================================================


class SubscriptionLifecycleCoordinator:
    """Cancel, resubscribe, drop-in and billing-event handling."""

    def __init__(
        self,
        store: MembershipStore,
        processor: BillingProcessor,
        settings: Optional[GymSettings] = None,
    ):
        self.store = store
        self.processor = processor
        self.settings = settings or get_gym_settings()
        self.state_machine = get_subscription_state_machine()

    async def _require_member(self, member_id: UUID) -> Member:
        member = await self.store.get_member(member_id)
        if member is None:
            raise NotFoundError("Member not found", reason="MEMBER_NOT_FOUND")
        return member

    def _billing_email(self, member: Member, now: datetime) -> Optional[str]:
        """Minors are billed to the parent's address when one is on file."""
        if is_minor(member.birth_date, now, self.settings.ADULT_AGE) and member.parent_email:
            return member.parent_email
        return member.email

    async def _create_customer(self, member: Member, now: datetime) -> str:
        return await self.processor.create_customer(
            email=self._billing_email(member, now),
            name=member.full_name,
            metadata={"member_id": str(member.id)},
        )

    # -------------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------------

    async def cancel(
        self,
        member_id: UUID,
        now: datetime,
        reason: Optional[str] = None,
    ) -> CancellationResult:
        """
        Cancel a membership.

        The local status becomes CANCELLED before the processor is asked to
        stop renewing. If the processor call fails the member stays
        cancelled and the failure is reported in the result.

        Raises:
            NotFoundError: Member does not exist
        """
        member = await self._require_member(member_id)
        previous_status = MemberStatus(member.status)
        state = derive_subscription_state(member, now)

        if state in (SubscriptionState.CANCELLED, SubscriptionState.CANCEL_PENDING):
            logger.info(f"Cancel requested for already cancelled member {member_id}")
            return CancellationResult(
                member_id=member_id,
                status=MemberStatus.CANCELLED,
                previous_status=previous_status,
                subscription_state=state,
                cancel_at=member.cancel_effective_at,
                already_cancelled=True,
                message="Your membership is already cancelled",
            )

        self.state_machine.require_transition(member_id, state, LifecycleEvent.CANCEL)

        member = await self.store.update_member(
            member_id,
            {"status": MemberStatus.CANCELLED, "updated_at": as_utc(now)},
        )
        logger.info(
            f"Member {member_id} cancelled locally: {previous_status.value} -> cancelled"
            + (f" (reason: {reason})" if reason else "")
        )

        processor_cancelled = False
        processor_error: Optional[str] = None
        cancel_at: Optional[datetime] = None

        if member.billing_subscription_id:
            try:
                subscription = await self.processor.cancel_subscription_at_period_end(
                    member.billing_subscription_id
                )
            except UpstreamFailureError as e:
                processor_error = e.message
                logger.error(
                    f"Processor cancellation failed for member {member_id} "
                    f"(subscription {member.billing_subscription_id}): {e.message}"
                )
            else:
                processor_cancelled = True
                cancel_at = subscription.current_period_end
                if cancel_at is not None:
                    member = await self.store.update_member(
                        member_id, {"cancel_effective_at": cancel_at}
                    )

        return CancellationResult(
            member_id=member_id,
            status=MemberStatus.CANCELLED,
            previous_status=previous_status,
            subscription_state=derive_subscription_state(member, now),
            cancel_at=cancel_at,
            processor_cancelled=processor_cancelled,
            processor_error=processor_error,
        )

    # -------------------------------------------------------------------------
    # Resubscribe
    # -------------------------------------------------------------------------

    async def resubscribe(self, member_id: UUID, now: datetime) -> ResubscribeResult:
        """
        Start a new subscription for a lapsed member.

        A fresh processor subscription is always created; the old one is
        never revived. Nothing is written locally unless every processor
        call succeeds. The member lands in TRIAL with payment pending and
        becomes ACTIVE once the first charge is reported.

        Raises:
            NotFoundError: Member does not exist
            ConflictError: Member already has a live subscription
            UpstreamFailureError: Processor call failed
        """
        member = await self._require_member(member_id)
        state = derive_subscription_state(member, now)
        transition = self.state_machine.require_transition(
            member_id, state, LifecycleEvent.RESUBSCRIBE
        )

        program = member.program or self.settings.DEFAULT_PROGRAM
        monthly_price = self.settings.monthly_rate_for_program(program)
        product_name = self.settings.PROGRAM_NAMES.get(program, program)
        trial_days = self.settings.TRIAL_PERIOD_DAYS

        customer_id = member.billing_customer_id
        if not customer_id:
            customer_id = await self._create_customer(member, now)

        subscription = await self.processor.create_subscription(
            customer_id=customer_id,
            amount=monthly_price,
            product_name=product_name,
            trial_period_days=trial_days,
            metadata={"member_id": str(member.id), "payment_type": "resubscribe"},
        )

        member = await self.store.update_member(
            member_id,
            {
                "billing_customer_id": customer_id,
                "billing_subscription_id": subscription.id,
                "status": MemberStatus.TRIAL,
                "payment_status": PaymentStatus.PENDING,
                "cancel_effective_at": None,
                "updated_at": as_utc(now),
            },
        )
        logger.info(
            f"Member {member_id} resubscribed: {state.value} -> {transition.to_state.value}, "
            f"subscription={subscription.id}, program={program}"
        )

        return ResubscribeResult(
            member_id=member_id,
            billing_customer_id=customer_id,
            billing_subscription_id=subscription.id,
            monthly_price=monthly_price,
            trial_period_days=trial_days,
            program=program,
            status=member.status,
            payment_status=member.payment_status,
        )

    # -------------------------------------------------------------------------
    # Drop-in
    # -------------------------------------------------------------------------

    async def create_drop_in_payment(
        self,
        now: datetime,
        member_id: Optional[UUID] = None,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> DropInResult:
        """
        One-time checkout for a single class.

        First-time visitors get a minimal PENDING member record so that the
        payment has someone to belong to. The charge never changes the
        member's subscription state.
        """
        member_created = False
        if member_id is not None:
            member = await self._require_member(member_id)
        else:
            if not email:
                raise ValidationFailureError(
                    "Member ID or email is required", reason="MISSING_IDENTITY"
                )
            matches = await self.store.find_members("email", email)
            if matches:
                member = matches[0]
            else:
                if not first_name:
                    raise ValidationFailureError(
                        "First name is required for new visitors", reason="MISSING_NAME"
                    )
                member = await self.store.add_member(
                    Member(
                        first_name=first_name,
                        last_name=last_name or "",
                        email=email,
                        phone=phone,
                        status=MemberStatus.PENDING,
                        payment_status=PaymentStatus.NONE,
                        membership_type="drop-in",
                        created_at=as_utc(now),
                        updated_at=as_utc(now),
                    )
                )
                member_created = True
                logger.info(f"Created pending drop-in member {member.id}")

        customer_id = member.billing_customer_id
        if not customer_id:
            customer_id = await self._create_customer(member, now)
            member = await self.store.update_member(
                member.id, {"billing_customer_id": customer_id}
            )

        base_url = self.settings.PUBLIC_BASE_URL.rstrip("/")
        session = await self.processor.create_one_time_checkout(
            customer_id=customer_id,
            amount=self.settings.DROP_IN_PRICE,
            product_name="Drop-in Class",
            success_url=f"{base_url}/member?drop_in=success",
            cancel_url=f"{base_url}/member?drop_in=cancelled",
            metadata={"member_id": str(member.id), "payment_type": "drop-in"},
        )
        logger.info(f"Drop-in checkout created for member {member.id}: {session.id}")

        return DropInResult(
            member_id=member.id,
            member_created=member_created,
            billing_customer_id=customer_id,
            checkout_session_id=session.id,
            checkout_url=session.url,
            amount=self.settings.DROP_IN_PRICE,
        )

    # -------------------------------------------------------------------------
    # Billing events
    # -------------------------------------------------------------------------

    async def record_billing_event(
        self,
        member_id: UUID,
        event: LifecycleEvent,
        now: datetime,
    ) -> Member:
        """
        Apply a processor-reported event (charge succeeded or failed,
        subscription ended) to the member record.

        Raises:
            NotFoundError: Member does not exist
            ValidationFailureError: Event is not processor-driven
            ConflictError: Event is not valid from the member's current state
        """
        member = await self._require_member(member_id)
        state = derive_subscription_state(member, now)
        transition = self.state_machine.require_transition(member_id, state, event)

        if not transition.processor_driven:
            raise ValidationFailureError(
                f"{event.value} is not a billing event", reason="NOT_A_BILLING_EVENT"
            )

        updates = dict(_STATE_FIELDS.get(transition.to_state, {}))
        if transition.to_state == SubscriptionState.CANCELLED:
            updates["cancel_effective_at"] = member.cancel_effective_at or as_utc(now)
        updates["updated_at"] = as_utc(now)

        member = await self.store.update_member(member_id, updates)
        logger.info(
            f"Member {member_id} billing event {event.value}: "
            f"{state.value} -> {transition.to_state.value}"
        )
        return member
