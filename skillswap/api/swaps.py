"""Swap routes: propose, respond, cancel, complete (rate), progress, and the per-user views."""
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.database import get_db
from skillswap.deps import get_current_user
from skillswap.models.swap import SwapStatus
from skillswap.models.user import User
from skillswap.schemas.swap import (
    ActiveSwapResponse,
    CandidateResponse,
    CompletedSwapResponse,
    RecentSwapResponse,
    SwapCompleteRequest,
    SwapCompleteResponse,
    SwapDetailResponse,
    SwapProgressRequest,
    SwapProposeRequest,
    SwapRespondRequest,
    SwapResponse,
    SwapStatsResponse,
)
from skillswap.services import projections, swap_engine, swap_store
from skillswap.services.matcher import CANDIDATE_LIMIT, find_candidates
from skillswap.services.notifier import Emitter, get_emitter

router = APIRouter(prefix="/swaps", tags=["swaps"])

RECENT_LIMIT = 10


@router.post("", response_model=SwapResponse, status_code=status.HTTP_201_CREATED)
async def propose_swap(
    body: SwapProposeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    emitter: Emitter = Depends(get_emitter),
):
    """Propose a swap: I perform skill_offered for counterpart_id, they perform skill_requested for me."""
    swap = await swap_engine.propose(
        db,
        emitter,
        current_user,
        counterpart_id=body.counterpart_id,
        skill_offered=body.skill_offered,
        skill_requested=body.skill_requested,
        message=body.message,
    )
    # the proposer is the caller; current_user may be expired if the insert was retried
    return projections.to_swap_response(swap, swap.proposer_id)


@router.get("/active", response_model=list[ActiveSwapResponse])
async def list_active_swaps(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Pending and accepted swaps I'm part of, most recently updated first, with rating status."""
    swaps = await swap_store.find_active_for_user(db, current_user.id)
    return [projections.to_active(s, current_user.id) for s in swaps]


@router.get("/completed", response_model=list[CompletedSwapResponse])
async def list_completed_swaps(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Completed swaps I'm part of, newest completion first, with both ratings."""
    swaps = await swap_store.find_completed_for_user(db, current_user.id)
    return [projections.to_completed(s, current_user.id) for s in swaps]


@router.get("/candidates", response_model=list[CandidateResponse])
async def list_candidates(
    limit: int = Query(default=CANDIDATE_LIMIT, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Users whose skills overlap what I want to learn, or who want what I offer."""
    cards = await find_candidates(db, current_user, limit=limit)
    return [CandidateResponse.model_validate(c) for c in cards]


@router.get("/recent", response_model=list[RecentSwapResponse])
async def list_recent_swaps(
    limit: int = Query(default=RECENT_LIMIT, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """My most recently proposed swaps in any status, for the dashboard."""
    swaps = await swap_store.find_recent_for_user(db, current_user.id, limit)
    return [projections.to_recent(s, current_user.id) for s in swaps]


@router.get("/stats", response_model=SwapStatsResponse)
async def swap_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Dashboard counters: accepted, new this week, completed, and my average rating received."""
    now = datetime.now(timezone.utc)
    user_id = current_user.id
    received = await swap_store.ratings_received(db, [user_id])
    return projections.to_stats(
        current_user,
        active_swaps=await swap_store.count_for_user(db, user_id, status=SwapStatus.ACCEPTED),
        new_this_week=await swap_store.count_for_user(db, user_id, created_since=now - timedelta(days=7)),
        completed_swaps=await swap_store.count_for_user(db, user_id, status=SwapStatus.COMPLETED),
        completed_this_month=await swap_store.count_for_user(
            db, user_id, status=SwapStatus.COMPLETED, completed_since=now - timedelta(days=30)
        ),
        ratings=received[user_id],
    )


@router.get("/{swap_id}", response_model=SwapDetailResponse)
async def get_swap(
    swap_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    swap = await swap_engine.get_for_participant(db, current_user.id, swap_id)
    return projections.to_detail(swap, current_user.id)


@router.post("/{swap_id}/respond", response_model=SwapResponse)
async def respond_to_swap(
    swap_id: int,
    body: SwapRespondRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    emitter: Emitter = Depends(get_emitter),
):
    """Counterpart accepts or rejects a pending proposal."""
    swap = await swap_engine.respond(db, emitter, current_user.id, swap_id, body.decision)
    return projections.to_swap_response(swap, current_user.id)


@router.post("/{swap_id}/accept", response_model=SwapResponse)
async def accept_swap(
    swap_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    emitter: Emitter = Depends(get_emitter),
):
    """Move swap from pending to accepted."""
    swap = await swap_engine.respond(db, emitter, current_user.id, swap_id, "accept")
    return projections.to_swap_response(swap, current_user.id)


@router.post("/{swap_id}/reject", response_model=SwapResponse)
async def reject_swap(
    swap_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    emitter: Emitter = Depends(get_emitter),
):
    """Move swap from pending to rejected."""
    swap = await swap_engine.respond(db, emitter, current_user.id, swap_id, "reject")
    return projections.to_swap_response(swap, current_user.id)


@router.post("/{swap_id}/cancel", response_model=SwapResponse)
async def cancel_swap(
    swap_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    emitter: Emitter = Depends(get_emitter),
):
    """Move swap to cancelled (from pending or accepted)."""
    swap = await swap_engine.cancel(db, emitter, current_user.id, swap_id)
    return projections.to_swap_response(swap, current_user.id)


@router.post("/{swap_id}/complete", response_model=SwapCompleteResponse)
async def complete_swap(
    swap_id: int,
    body: SwapCompleteRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    emitter: Emitter = Depends(get_emitter),
):
    """Submit my rating of the other party. The swap completes once both have rated."""
    result = await swap_engine.complete(db, emitter, current_user.id, swap_id, body.rating, body.feedback)
    message = (
        "Swap completed successfully! Both users have rated."
        if result.both_rated
        else "Rating submitted successfully! Waiting for the other user to rate."
    )
    return SwapCompleteResponse(
        swap=projections.to_swap_response(result.swap, current_user.id),
        both_rated=result.both_rated,
        message=message,
    )


@router.post("/{swap_id}/progress", response_model=SwapResponse)
async def update_swap_progress(
    swap_id: int,
    body: SwapProgressRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Set the advisory progress (0-100) on an accepted swap."""
    swap = await swap_engine.update_progress(db, current_user.id, swap_id, body.progress)
    return projections.to_swap_response(swap, current_user.id)
