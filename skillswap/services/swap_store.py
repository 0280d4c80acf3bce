"""Swap record store: keyed reads, participant-scoped lookups, and version-checked writes.

Every write goes through ``mutate`` (existing swaps) or ``insert`` (new swaps).
``Swap.version`` is the mapper's version column, so an UPDATE whose row was
changed by someone else since it was read matches zero rows and SQLAlchemy
raises ``StaleDataError``. ``mutate`` then rolls back, re-reads the fresh row
and re-applies the caller's change, which re-runs the caller's own checks
against the new state. Two parties rating at the same instant therefore both
land, and whichever write observes both ratings is the one that completes.

Transient ``OperationalError`` (dropped connection, lock timeout) on the read
or the commit is retried the same way. Only the last attempt's error reaches
the caller.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Sequence, TypeVar

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from skillswap.config import settings
from skillswap.errors import ConflictError, NotFoundError
from skillswap.models.swap import ACTIVE_STATUSES, Swap, SwapStatus, pair_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _with_parties(q):
    return q.options(selectinload(Swap.proposer), selectinload(Swap.counterpart))


def _retry_policy() -> tuple[int, float]:
    """(attempts, first delay in seconds); the delay doubles after each failed attempt."""
    return max(1, settings.SWAP_WRITE_RETRIES), settings.SWAP_WRITE_RETRY_DELAY_SECONDS


async def get(db: AsyncSession, swap_id: int, *, with_parties: bool = False) -> Swap:
    """Return the swap, always re-read from the database. Raises NotFoundError."""
    q = select(Swap).where(Swap.id == swap_id).execution_options(populate_existing=True)
    if with_parties:
        q = _with_parties(q)
    swap = (await db.execute(q)).scalar_one_or_none()
    if swap is None:
        raise NotFoundError("Swap not found")
    return swap


def _conflict_for(exc: IntegrityError) -> ConflictError:
    if "active_key" in str(exc.orig):
        return ConflictError("Swap proposal already exists")
    return ConflictError("Swap conflicts with a concurrent change, please retry")


async def _commit_new(db: AsyncSession, swap: Swap) -> None:
    db.add(swap)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise _conflict_for(exc) from exc


async def insert(db: AsyncSession, swap: Swap) -> Swap:
    """
    Persist a new swap. A concurrent duplicate on ``active_key`` surfaces as
    ConflictError. Rollback detaches the pending swap and expires everything
    else loaded in ``db``, so callers must not touch other ORM objects from
    this session afterwards without re-reading them.
    """
    attempts, delay = _retry_policy()
    for attempt in range(1, attempts):
        try:
            await _commit_new(db, swap)
            break
        except OperationalError:
            await db.rollback()
            logger.warning("swap insert: transient database error on attempt %d, retrying", attempt, exc_info=True)
        await asyncio.sleep(delay)
        delay *= 2
    else:
        await _commit_new(db, swap)
    await db.refresh(swap)
    return swap


async def _read_apply_commit(db: AsyncSession, swap_id: int, apply: Callable[[Swap], T]) -> tuple[Swap, T]:
    swap = await get(db, swap_id)
    result = apply(swap)
    await db.commit()
    return swap, result


async def mutate(db: AsyncSession, swap_id: int, apply: Callable[[Swap], T]) -> tuple[Swap, T]:
    """
    Read-modify-write one swap atomically.

    ``apply`` receives the freshly loaded swap, validates, mutates it in place
    and returns a value that is handed back to the caller. It may run more
    than once, so it must not have side effects outside the swap.
    """
    attempts, delay = _retry_policy()
    for attempt in range(1, attempts):
        try:
            return await _read_apply_commit(db, swap_id, apply)
        except StaleDataError:
            await db.rollback()
            logger.warning("swap %s: version conflict on attempt %d, retrying", swap_id, attempt)
        except OperationalError:
            await db.rollback()
            logger.warning("swap %s: transient database error on attempt %d, retrying", swap_id, attempt, exc_info=True)
        await asyncio.sleep(delay)
        delay *= 2

    try:
        return await _read_apply_commit(db, swap_id, apply)
    except StaleDataError:
        await db.rollback()
        logger.warning("swap %s: version conflict persisted after %d attempts", swap_id, attempts)
        raise ConflictError("Swap was modified concurrently, please retry")


async def find_conflicting(
    db: AsyncSession,
    user_a_id: int,
    user_b_id: int,
    skill_offered: str,
    skill_requested: str,
) -> Swap | None:
    """Active swap where A offers skill_offered to B for skill_requested, proposed from either side."""
    same_direction = and_(
        Swap.proposer_id == user_a_id,
        Swap.counterpart_id == user_b_id,
        Swap.skill_offered == skill_offered,
        Swap.skill_requested == skill_requested,
    )
    reverse_direction = and_(
        Swap.proposer_id == user_b_id,
        Swap.counterpart_id == user_a_id,
        Swap.skill_offered == skill_requested,
        Swap.skill_requested == skill_offered,
    )
    q = (
        select(Swap)
        .where(or_(same_direction, reverse_direction))
        .where(Swap.status.in_(ACTIVE_STATUSES))
        .limit(1)
    )
    return (await db.execute(q)).scalar_one_or_none()


def _mine(user_id: int):
    return or_(Swap.proposer_id == user_id, Swap.counterpart_id == user_id)


async def find_active_for_user(db: AsyncSession, user_id: int) -> Sequence[Swap]:
    q = _with_parties(
        select(Swap)
        .where(_mine(user_id))
        .where(Swap.status.in_(ACTIVE_STATUSES))
        .order_by(Swap.updated_at.desc(), Swap.id.desc())
    )
    return (await db.execute(q)).scalars().all()


async def find_completed_for_user(db: AsyncSession, user_id: int) -> Sequence[Swap]:
    q = _with_parties(
        select(Swap)
        .where(_mine(user_id))
        .where(Swap.status == SwapStatus.COMPLETED)
        .order_by(Swap.completed_at.desc(), Swap.id.desc())
    )
    return (await db.execute(q)).scalars().all()


async def ratings_received(db: AsyncSession, user_ids: Sequence[int]) -> dict[int, list[int]]:
    """Ratings each user received across completed swaps, as either party."""
    received: dict[int, list[int]] = {uid: [] for uid in user_ids}
    if not user_ids:
        return received
    q = select(
        Swap.proposer_id, Swap.counterpart_id, Swap.rating_of_proposer, Swap.rating_of_counterpart
    ).where(Swap.status == SwapStatus.COMPLETED).where(
        or_(Swap.proposer_id.in_(user_ids), Swap.counterpart_id.in_(user_ids))
    )
    for row in (await db.execute(q)).all():
        if row.proposer_id in received and row.rating_of_proposer is not None:
            received[row.proposer_id].append(row.rating_of_proposer)
        if row.counterpart_id in received and row.rating_of_counterpart is not None:
            received[row.counterpart_id].append(row.rating_of_counterpart)
    return received


def active_key_for(swap: Swap) -> str:
    return pair_key(swap.proposer_id, swap.skill_offered, swap.counterpart_id, swap.skill_requested)


async def find_recent_for_user(db: AsyncSession, user_id: int, limit: int) -> Sequence[Swap]:
    """Swaps I'm part of in any status, newest proposal first."""
    q = _with_parties(
        select(Swap)
        .where(_mine(user_id))
        .order_by(Swap.created_at.desc(), Swap.id.desc())
        .limit(limit)
    )
    return (await db.execute(q)).scalars().all()


async def count_for_user(
    db: AsyncSession,
    user_id: int,
    *,
    status: SwapStatus | None = None,
    created_since: datetime | None = None,
    completed_since: datetime | None = None,
) -> int:
    q = select(func.count(Swap.id)).where(_mine(user_id))
    if status is not None:
        q = q.where(Swap.status == status)
    if created_since is not None:
        q = q.where(Swap.created_at >= created_since)
    if completed_since is not None:
        q = q.where(Swap.completed_at >= completed_since)
    return (await db.execute(q)).scalar_one()
