"""Tests for the opt-in pending proposal expiry pass."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from skillswap.models import SwapStatus, User
from skillswap.services import swap_engine, swap_store
from skillswap.tasks.expire_pending import expire_pending_once

TTL = timedelta(hours=24)


async def _propose(factory, emitter, proposer_id, counterpart_id, offered, requested):
    async with factory() as db:
        actor = (await db.execute(select(User).where(User.id == proposer_id))).scalar_one()
        swap = await swap_engine.propose(db, emitter, actor, counterpart_id, offered, requested, None)
        return swap.id


@pytest.mark.asyncio
async def test_fresh_proposals_are_left_alone(session_factory, emitter, users):
    swap_id = await _propose(session_factory, emitter, users["alice"], users["bob"], "Logo Design", "Web Development")

    expired = await expire_pending_once(session_factory, emitter, TTL)

    assert expired == []
    async with session_factory() as db:
        assert (await swap_store.get(db, swap_id)).status == SwapStatus.PENDING


@pytest.mark.asyncio
async def test_stale_pending_is_cancelled_and_both_notified(session_factory, emitter, users):
    swap_id = await _propose(session_factory, emitter, users["alice"], users["bob"], "Logo Design", "Web Development")
    emitter.events.clear()

    later = datetime.now(timezone.utc) + timedelta(days=2)
    expired = await expire_pending_once(session_factory, emitter, TTL, now=later)

    assert expired == [swap_id]
    async with session_factory() as db:
        swap = await swap_store.get(db, swap_id)
    assert swap.status == SwapStatus.CANCELLED
    assert swap.active_key is None
    assert swap.version == 2
    assert sorted(e[1] for e in emitter.events) == sorted([users["alice"], users["bob"]])
    assert set(emitter.names()) == {"swap_expired"}
    assert emitter.events[0][2]["reason"] == "expired"


@pytest.mark.asyncio
async def test_accepted_swaps_never_expire(session_factory, emitter, users):
    swap_id = await _propose(session_factory, emitter, users["alice"], users["bob"], "Logo Design", "Web Development")
    async with session_factory() as db:
        await swap_engine.respond(db, emitter, users["bob"], swap_id, "accept")

    later = datetime.now(timezone.utc) + timedelta(days=30)
    assert await expire_pending_once(session_factory, emitter, TTL, now=later) == []


@pytest.mark.asyncio
async def test_expired_pair_can_be_proposed_again(session_factory, emitter, users):
    await _propose(session_factory, emitter, users["alice"], users["bob"], "Logo Design", "Web Development")
    later = datetime.now(timezone.utc) + timedelta(days=2)
    await expire_pending_once(session_factory, emitter, TTL, now=later)

    again = await _propose(session_factory, emitter, users["alice"], users["bob"], "Logo Design", "Web Development")
    assert again is not None


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_expiry(session_factory, emitter, users):
    swap_id = await _propose(session_factory, emitter, users["alice"], users["bob"], "Logo Design", "Web Development")
    emitter.fail = True

    later = datetime.now(timezone.utc) + timedelta(days=2)
    assert await expire_pending_once(session_factory, emitter, TTL, now=later) == [swap_id]

    async with session_factory() as db:
        assert (await swap_store.get(db, swap_id)).status == SwapStatus.CANCELLED
