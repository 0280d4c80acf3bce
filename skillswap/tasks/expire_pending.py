"""Opt-in expiry of stale pending proposals (PENDING_SWAP_TTL_HOURS > 0). Off by default: proposals wait indefinitely."""
import asyncio
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillswap.config import settings
from skillswap.models.swap import Swap, SwapStatus
from skillswap.services.notifier import Emitter, EventType

logger = logging.getLogger(__name__)


async def expire_pending_once(
    session_factory: async_sessionmaker[AsyncSession],
    emitter: Emitter,
    ttl: timedelta,
    now: datetime | None = None,
) -> list[int]:
    """Cancel pending swaps created before now - ttl. Returns the ids that were expired."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - ttl
    expired: list[dict] = []
    async with session_factory() as db:
        candidates = (
            await db.execute(
                select(Swap).where(Swap.status == SwapStatus.PENDING).where(Swap.created_at < cutoff)
            )
        ).scalars().all()
        for swap in candidates:
            # Same version guard as the engine: skip rows someone else touched meanwhile
            result = await db.execute(
                update(Swap)
                .where(Swap.id == swap.id)
                .where(Swap.version == swap.version)
                .where(Swap.status == SwapStatus.PENDING)
                .values(
                    status=SwapStatus.CANCELLED,
                    active_key=None,
                    updated_at=now,
                    version=Swap.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                expired.append(
                    {
                        "swap_id": swap.id,
                        "parties": (swap.proposer_id, swap.counterpart_id),
                        "skill_offered": swap.skill_offered,
                        "skill_requested": swap.skill_requested,
                    }
                )
        await db.commit()

    for item in expired:
        logger.info("swap %s expired after %s pending", item["swap_id"], ttl)
        payload = {
            "swap_id": item["swap_id"],
            "status": SwapStatus.CANCELLED.value,
            "skill_offered": item["skill_offered"],
            "skill_requested": item["skill_requested"],
            "reason": "expired",
        }
        for user_id in item["parties"]:
            try:
                await emitter.emit(EventType.EXPIRED, user_id, payload)
            except Exception:
                logger.warning("notification %s to user %s failed", EventType.EXPIRED, user_id, exc_info=True)
    return [item["swap_id"] for item in expired]


async def run_expire_loop(session_factory: async_sessionmaker[AsyncSession], emitter: Emitter) -> None:
    ttl = timedelta(hours=settings.PENDING_SWAP_TTL_HOURS)
    while True:
        try:
            await expire_pending_once(session_factory, emitter, ttl)
        except Exception:
            logger.exception("pending swap expiry pass failed")
        await asyncio.sleep(settings.EXPIRY_CHECK_INTERVAL_SECONDS)
