"""Swap lifecycle engine: the only code that changes a swap's status or rating slots.

Transitions::

    pending  -> accepted | rejected | cancelled
    accepted -> cancelled | completed

Completion is two-phase: each party submits one rating of the *other* party's
work, and the swap becomes ``completed`` only when both slots are filled.
The proposer's rating lands in ``rating_of_counterpart``; the counterpart's
rating lands in ``rating_of_proposer``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.errors import (
    AlreadyRatedError,
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from skillswap.models.swap import Swap, SwapStatus
from skillswap.models.user import User
from skillswap.services import swap_store
from skillswap.services.matcher import has_skill, proposal_score
from skillswap.services.notifier import Emitter, EventType

logger = logging.getLogger(__name__)

# Allowed transitions: from_status -> {to_status, ...}
ALLOWED: dict[SwapStatus, set[SwapStatus]] = {
    SwapStatus.PENDING: {SwapStatus.ACCEPTED, SwapStatus.REJECTED, SwapStatus.CANCELLED},
    SwapStatus.ACCEPTED: {SwapStatus.CANCELLED, SwapStatus.COMPLETED},
    SwapStatus.REJECTED: set(),
    SwapStatus.CANCELLED: set(),
    SwapStatus.COMPLETED: set(),
}

DECISIONS = {"accept": SwapStatus.ACCEPTED, "reject": SwapStatus.REJECTED}

MIN_RATING = 1
MAX_RATING = 5


@dataclass
class CompletionResult:
    swap: Swap
    both_rated: bool
    # True only for the call whose rating finished the swap
    completed_now: bool = False


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_participant(swap: Swap, actor_id: int) -> None:
    if not swap.is_participant(actor_id):
        raise AuthorizationError("Not a party to this swap")


def _require_transition(swap: Swap, to_status: SwapStatus, detail: str | None = None) -> None:
    if to_status not in ALLOWED[swap.status]:
        raise InvalidStateError(detail or f"Swap is {swap.status.value}; cannot move to {to_status.value}")


def _payload(swap: Swap, actor_id: int, **extra: Any) -> dict[str, Any]:
    payload = {
        "swap_id": swap.id,
        "status": swap.status.value,
        "skill_offered": swap.skill_offered,
        "skill_requested": swap.skill_requested,
        "actor_id": actor_id,
    }
    payload.update(extra)
    return payload


async def _emit(emitter: Emitter, event: str, target_user_id: int, payload: dict[str, Any]) -> None:
    # Runs after the store commit; a notification outage must not undo the transition.
    try:
        await emitter.emit(event, target_user_id, payload)
    except Exception:
        logger.warning("notification %s to user %s failed", event, target_user_id, exc_info=True)


def _clean_skill(value: str | None, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} is required")
    return cleaned


async def propose(
    db: AsyncSession,
    emitter: Emitter,
    actor: User,
    counterpart_id: int,
    skill_offered: str,
    skill_requested: str,
    message: str | None = None,
) -> Swap:
    """Create a pending swap: ``actor`` performs skill_offered, the counterpart performs skill_requested."""
    skill_offered = _clean_skill(skill_offered, "skill_offered")
    skill_requested = _clean_skill(skill_requested, "skill_requested")
    if counterpart_id == actor.id:
        raise ValidationError("You cannot propose a swap to yourself")

    counterpart = (await db.execute(select(User).where(User.id == counterpart_id))).scalar_one_or_none()
    if counterpart is None:
        raise NotFoundError("Counterpart not found")
    if not has_skill(actor, skill_offered):
        raise ValidationError("You don't have the skill you're offering")
    if not has_skill(counterpart, skill_requested):
        raise ValidationError("The other user doesn't have the skill you're requesting")

    existing = await swap_store.find_conflicting(db, actor.id, counterpart.id, skill_offered, skill_requested)
    if existing is not None:
        raise ConflictError("Swap proposal already exists")

    # insert() may roll back and retry, which expires both users
    actor_id, actor_name = actor.id, actor.name
    swap = Swap(
        proposer_id=actor_id,
        counterpart_id=counterpart_id,
        skill_offered=skill_offered,
        skill_requested=skill_requested,
        message=(message or "").strip(),
        match_score=proposal_score(actor, counterpart),
        status=SwapStatus.PENDING,
        progress=0,
    )
    swap.active_key = swap_store.active_key_for(swap)
    swap = await swap_store.insert(db, swap)
    logger.info("swap %s proposed by user %s to user %s", swap.id, actor_id, counterpart_id)

    await _emit(
        emitter,
        EventType.PROPOSED,
        counterpart_id,
        # from the recipient's point of view
        _payload(
            swap,
            actor_id,
            skill_you_provide=swap.skill_requested,
            skill_you_receive=swap.skill_offered,
            proposer_name=actor_name,
            message=swap.message,
        ),
    )
    return swap


async def respond(db: AsyncSession, emitter: Emitter, actor_id: int, swap_id: int, decision: str) -> Swap:
    """Counterpart accepts or rejects a pending proposal."""
    to_status = DECISIONS.get((decision or "").lower())
    if to_status is None:
        raise ValidationError("decision must be 'accept' or 'reject'")

    def apply(swap: Swap) -> None:
        _require_participant(swap, actor_id)
        if actor_id != swap.counterpart_id:
            raise AuthorizationError("Only the receiving party can respond to a proposal")
        if swap.status != SwapStatus.PENDING:
            raise InvalidStateError(f"Swap is {swap.status.value}; only pending proposals can be answered")
        now = _now()
        swap.status = to_status
        swap.responded_at = now
        swap.updated_at = now
        if to_status == SwapStatus.REJECTED:
            swap.active_key = None

    swap, _ = await swap_store.mutate(db, swap_id, apply)
    logger.info("swap %s %s by user %s", swap.id, swap.status.value, actor_id)

    event = EventType.ACCEPTED if to_status == SwapStatus.ACCEPTED else EventType.REJECTED
    await _emit(emitter, event, swap.proposer_id, _payload(swap, actor_id))
    return swap


async def cancel(db: AsyncSession, emitter: Emitter, actor_id: int, swap_id: int) -> Swap:
    """Either party withdraws a pending or accepted swap. Rating slots are left as they are."""

    def apply(swap: Swap) -> None:
        _require_participant(swap, actor_id)
        _require_transition(swap, SwapStatus.CANCELLED, f"Swap is {swap.status.value}; it can no longer be cancelled")
        swap.status = SwapStatus.CANCELLED
        swap.updated_at = _now()
        swap.active_key = None

    swap, _ = await swap_store.mutate(db, swap_id, apply)
    logger.info("swap %s cancelled by user %s", swap.id, actor_id)
    await _emit(emitter, EventType.CANCELLED, swap.other_party(actor_id), _payload(swap, actor_id))
    return swap


def _record_rating(swap: Swap, actor_id: int, value: int, feedback: str, now: datetime) -> None:
    if actor_id == swap.proposer_id:
        # The proposer evaluates the work the counterpart did for them.
        if swap.counterpart_rated:
            raise AlreadyRatedError("You have already rated this swap")
        swap.rating_of_counterpart = value
        swap.feedback_on_counterpart = feedback
        swap.counterpart_rated_at = now
    else:
        # The counterpart evaluates the work the proposer did for them.
        if swap.proposer_rated:
            raise AlreadyRatedError("You have already rated this swap")
        swap.rating_of_proposer = value
        swap.feedback_on_proposer = feedback
        swap.proposer_rated_at = now


async def complete(
    db: AsyncSession,
    emitter: Emitter,
    actor_id: int,
    swap_id: int,
    rating: int,
    feedback: str | None = None,
) -> CompletionResult:
    """
    Record ``actor_id``'s rating of the other party. The swap moves to
    ``completed`` (and ``completed_at`` is stamped) only once both ratings are
    in; otherwise it stays ``accepted`` and ``both_rated`` is False.
    """
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    feedback = (feedback or "").strip()

    def apply(swap: Swap) -> tuple[bool, bool]:
        _require_participant(swap, actor_id)
        if swap.status != SwapStatus.ACCEPTED:
            raise InvalidStateError("Swap must be accepted before it can be completed")
        now = _now()
        _record_rating(swap, actor_id, rating, feedback, now)
        swap.updated_at = now
        both_rated = swap.both_rated
        completed_now = False
        if both_rated and swap.completed_at is None:
            swap.status = SwapStatus.COMPLETED
            swap.completed_at = now
            swap.active_key = None
            completed_now = True
        return both_rated, completed_now

    swap, (both_rated, completed_now) = await swap_store.mutate(db, swap_id, apply)
    other_id = swap.other_party(actor_id)
    if completed_now:
        logger.info("swap %s completed; final rating from user %s", swap.id, actor_id)
        for user_id in (swap.proposer_id, swap.counterpart_id):
            await _emit(emitter, EventType.COMPLETED, user_id, _payload(swap, actor_id))
    else:
        logger.info("swap %s rated by user %s; waiting for user %s", swap.id, actor_id, other_id)
        await _emit(emitter, EventType.RATED, other_id, _payload(swap, actor_id))
    return CompletionResult(swap=swap, both_rated=both_rated, completed_now=completed_now)


async def update_progress(db: AsyncSession, actor_id: int, swap_id: int, progress: int) -> Swap:
    """Advisory progress for display. Has no bearing on completion."""
    if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
        raise ValidationError("Progress must be between 0 and 100")

    def apply(swap: Swap) -> None:
        _require_participant(swap, actor_id)
        if swap.status != SwapStatus.ACCEPTED:
            raise InvalidStateError("Progress can only be tracked on an accepted swap")
        swap.progress = progress
        swap.updated_at = _now()

    swap, _ = await swap_store.mutate(db, swap_id, apply)
    return swap


async def get_for_participant(db: AsyncSession, actor_id: int, swap_id: int) -> Swap:
    swap = await swap_store.get(db, swap_id, with_parties=True)
    _require_participant(swap, actor_id)
    return swap
