"""Pydantic schemas for swaps: request bodies and the per-viewer projections."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from skillswap.models.swap import SwapStatus

Role = Literal["proposer", "counterpart"]


class SwapProposeRequest(BaseModel):
    """Request body for POST /swaps. skill_offered is what I do for them, skill_requested what they do for me."""
    counterpart_id: int
    skill_offered: str = Field(..., min_length=1, max_length=255)
    skill_requested: str = Field(..., min_length=1, max_length=255)
    message: str | None = Field(default=None, max_length=2000)


class SwapRespondRequest(BaseModel):
    decision: Literal["accept", "reject"]


class SwapCompleteRequest(BaseModel):
    """My rating (1-5) of the other party's work."""
    rating: int = Field(..., ge=1, le=5)
    feedback: str | None = Field(default=None, max_length=2000)


class SwapProgressRequest(BaseModel):
    progress: int = Field(..., ge=0, le=100)


class PublicUser(BaseModel):
    """The only fields of the other party a swap view may expose."""
    id: int
    name: str | None = None
    email: str
    avatar_url: str | None = None


class RatingView(BaseModel):
    value: int
    feedback: str | None = None
    rated_at: datetime | None = None


class SwapResponse(BaseModel):
    """A swap as returned from lifecycle calls."""
    id: int
    proposer_id: int
    counterpart_id: int
    skill_offered: str
    skill_requested: str
    message: str = ""
    match_score: int
    status: SwapStatus
    progress: int
    rating_of_proposer: RatingView | None = None
    rating_of_counterpart: RatingView | None = None
    created_at: datetime
    updated_at: datetime
    responded_at: datetime | None = None
    completed_at: datetime | None = None
    my_role: Role | None = None


class SwapDetailResponse(SwapResponse):
    other_user: PublicUser
    has_user_rated: bool
    has_other_user_rated: bool
    both_rated: bool


class SwapCompleteResponse(BaseModel):
    swap: SwapResponse
    both_rated: bool
    message: str


class ActiveSwapResponse(BaseModel):
    """Row of GET /swaps/active."""
    id: int
    other_user: PublicUser
    my_role: Role
    skill_offered: str
    skill_requested: str
    skill_i_provide: str
    skill_i_receive: str
    status: SwapStatus
    progress: int
    updated_at: datetime
    has_user_rated: bool
    has_other_user_rated: bool
    both_rated: bool


class CompletedSwapResponse(BaseModel):
    """Row of GET /swaps/completed. rating_given is mine about them, rating_received theirs about me."""
    id: int
    other_user: PublicUser
    my_role: Role
    skill_offered: str
    skill_requested: str
    skill_i_provide: str
    skill_i_receive: str
    completed_at: datetime | None
    rating_given: RatingView | None
    rating_received: RatingView | None


class CandidateResponse(BaseModel):
    """A user I could propose a swap to."""
    user_id: int
    name: str | None = None
    email: str
    avatar_url: str | None = None
    offers_skill: str | None = None
    needs_skill: str | None = None
    all_offered_skills: list[str]
    all_needed_skills: list[str]
    match_score: int
    can_swap: bool
    past_rating_avg: float | None = None

    class Config:
        from_attributes = True


class RecentSwapResponse(BaseModel):
    """Row of GET /swaps/recent: my latest swaps in any status."""
    id: int
    other_user: PublicUser
    my_role: Role
    status: SwapStatus
    skill_i_provide: str
    skill_i_receive: str
    created_at: datetime


class SwapStatsResponse(BaseModel):
    """Dashboard counters. average_rating is over ratings other users gave me on completed swaps."""
    skills_offered: int
    skills_learning: int
    active_swaps: int
    new_this_week: int
    completed_swaps: int
    completed_this_month: int
    average_rating: float | None = None
    ratings_count: int = 0
