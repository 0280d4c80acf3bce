"""Per-viewer read projections of a swap. Pure: nothing here touches the database or mutates a swap.

Rating flags follow the engine's attribution: when the viewer is the proposer,
"my rating" is ``rating_of_counterpart``; when the viewer is the counterpart,
"my rating" is ``rating_of_proposer``.
"""
from skillswap.models.swap import Swap
from skillswap.models.user import User
from skillswap.schemas.swap import (
    ActiveSwapResponse,
    CompletedSwapResponse,
    PublicUser,
    RatingView,
    RecentSwapResponse,
    SwapDetailResponse,
    SwapResponse,
    SwapStatsResponse,
)


def role_of(swap: Swap, viewer_id: int) -> str | None:
    if viewer_id == swap.proposer_id:
        return "proposer"
    if viewer_id == swap.counterpart_id:
        return "counterpart"
    return None


def _rating_of_proposer(swap: Swap) -> RatingView | None:
    if swap.rating_of_proposer is None:
        return None
    return RatingView(value=swap.rating_of_proposer, feedback=swap.feedback_on_proposer, rated_at=swap.proposer_rated_at)


def _rating_of_counterpart(swap: Swap) -> RatingView | None:
    if swap.rating_of_counterpart is None:
        return None
    return RatingView(
        value=swap.rating_of_counterpart, feedback=swap.feedback_on_counterpart, rated_at=swap.counterpart_rated_at
    )


def rating_flags(swap: Swap, viewer_id: int) -> tuple[bool, bool, bool]:
    """(has_user_rated, has_other_user_rated, both_rated) from the viewer's side."""
    if viewer_id == swap.proposer_id:
        mine, theirs = swap.counterpart_rated, swap.proposer_rated
    else:
        mine, theirs = swap.proposer_rated, swap.counterpart_rated
    return mine, theirs, mine and theirs


def public_user(user: User) -> PublicUser:
    return PublicUser(id=user.id, name=user.name, email=user.email, avatar_url=user.avatar_url)


def _other_user(swap: Swap, viewer_id: int) -> PublicUser:
    other = swap.counterpart if viewer_id == swap.proposer_id else swap.proposer
    return public_user(other)


def _skills_for(swap: Swap, viewer_id: int) -> tuple[str, str]:
    """(skill I provide, skill I receive)."""
    if viewer_id == swap.proposer_id:
        return swap.skill_offered, swap.skill_requested
    return swap.skill_requested, swap.skill_offered


def _base_fields(swap: Swap, viewer_id: int) -> dict:
    return dict(
        id=swap.id,
        proposer_id=swap.proposer_id,
        counterpart_id=swap.counterpart_id,
        skill_offered=swap.skill_offered,
        skill_requested=swap.skill_requested,
        message=swap.message or "",
        match_score=swap.match_score,
        status=swap.status,
        progress=swap.progress,
        rating_of_proposer=_rating_of_proposer(swap),
        rating_of_counterpart=_rating_of_counterpart(swap),
        created_at=swap.created_at,
        updated_at=swap.updated_at,
        responded_at=swap.responded_at,
        completed_at=swap.completed_at,
        my_role=role_of(swap, viewer_id),
    )


def to_swap_response(swap: Swap, viewer_id: int) -> SwapResponse:
    return SwapResponse(**_base_fields(swap, viewer_id))


def to_detail(swap: Swap, viewer_id: int) -> SwapDetailResponse:
    """Requires swap.proposer and swap.counterpart to be loaded."""
    mine, theirs, both = rating_flags(swap, viewer_id)
    return SwapDetailResponse(
        **_base_fields(swap, viewer_id),
        other_user=_other_user(swap, viewer_id),
        has_user_rated=mine,
        has_other_user_rated=theirs,
        both_rated=both,
    )


def to_active(swap: Swap, viewer_id: int) -> ActiveSwapResponse:
    mine, theirs, both = rating_flags(swap, viewer_id)
    provide, receive = _skills_for(swap, viewer_id)
    return ActiveSwapResponse(
        id=swap.id,
        other_user=_other_user(swap, viewer_id),
        my_role=role_of(swap, viewer_id),
        skill_offered=swap.skill_offered,
        skill_requested=swap.skill_requested,
        skill_i_provide=provide,
        skill_i_receive=receive,
        status=swap.status,
        progress=swap.progress or 0,
        updated_at=swap.updated_at,
        has_user_rated=mine,
        has_other_user_rated=theirs,
        both_rated=both,
    )


def to_completed(swap: Swap, viewer_id: int) -> CompletedSwapResponse:
    provide, receive = _skills_for(swap, viewer_id)
    if viewer_id == swap.proposer_id:
        given, received = _rating_of_counterpart(swap), _rating_of_proposer(swap)
    else:
        given, received = _rating_of_proposer(swap), _rating_of_counterpart(swap)
    return CompletedSwapResponse(
        id=swap.id,
        other_user=_other_user(swap, viewer_id),
        my_role=role_of(swap, viewer_id),
        skill_offered=swap.skill_offered,
        skill_requested=swap.skill_requested,
        skill_i_provide=provide,
        skill_i_receive=receive,
        completed_at=swap.completed_at or swap.updated_at,
        rating_given=given,
        rating_received=received,
    )


def to_recent(swap: Swap, viewer_id: int) -> RecentSwapResponse:
    provide, receive = _skills_for(swap, viewer_id)
    return RecentSwapResponse(
        id=swap.id,
        other_user=_other_user(swap, viewer_id),
        my_role=role_of(swap, viewer_id),
        status=swap.status,
        skill_i_provide=provide,
        skill_i_receive=receive,
        created_at=swap.created_at,
    )


def to_stats(
    user: User,
    *,
    active_swaps: int,
    new_this_week: int,
    completed_swaps: int,
    completed_this_month: int,
    ratings: list[int],
) -> SwapStatsResponse:
    """``ratings`` are the values others gave ``user`` (see ``swap_store.ratings_received``)."""
    return SwapStatsResponse(
        skills_offered=len(user.skills or []),
        skills_learning=len(user.learning or []),
        active_swaps=active_swaps,
        new_this_week=new_this_week,
        completed_swaps=completed_swaps,
        completed_this_month=completed_this_month,
        average_rating=round(sum(ratings) / len(ratings), 2) if ratings else None,
        ratings_count=len(ratings),
    )
