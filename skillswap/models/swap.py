"""Swap model: a proposed barter of one skill for another between two users."""
import enum
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillswap.models.base import Base


class SwapStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ACTIVE_STATUSES = (SwapStatus.PENDING, SwapStatus.ACCEPTED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def pair_key(user_a_id: int, skill_a: str, user_b_id: int, skill_b: str) -> str:
    """Canonical key for "user A performs skill_a, user B performs skill_b", independent of who proposed."""
    sides = sorted([(user_a_id, skill_a), (user_b_id, skill_b)])
    return "|".join(f"{uid}:{skill}" for uid, skill in sides)


class Swap(Base):
    __tablename__ = "swaps"
    __table_args__ = (
        CheckConstraint("proposer_id <> counterpart_id", name="ck_swaps_distinct_parties"),
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_swaps_progress_range"),
        CheckConstraint(
            "rating_of_proposer IS NULL OR (rating_of_proposer >= 1 AND rating_of_proposer <= 5)",
            name="ck_swaps_rating_of_proposer_range",
        ),
        CheckConstraint(
            "rating_of_counterpart IS NULL OR (rating_of_counterpart >= 1 AND rating_of_counterpart <= 5)",
            name="ck_swaps_rating_of_counterpart_range",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    proposer_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    counterpart_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # what the proposer performs for the counterpart / what the counterpart performs for the proposer
    skill_offered: Mapped[str] = mapped_column(String(255), nullable=False)
    skill_requested: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    match_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[SwapStatus] = mapped_column(
        Enum(SwapStatus), nullable=False, default=SwapStatus.PENDING, index=True
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Written by the counterpart: their evaluation of the proposer's work.
    rating_of_proposer: Mapped[int | None] = mapped_column(Integer, nullable=True)
    feedback_on_proposer: Mapped[str | None] = mapped_column(Text, nullable=True)
    proposer_rated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Written by the proposer: their evaluation of the counterpart's work.
    rating_of_counterpart: Mapped[int | None] = mapped_column(Integer, nullable=True)
    feedback_on_counterpart: Mapped[str | None] = mapped_column(Text, nullable=True)
    counterpart_rated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # pair_key(...) while pending/accepted, NULL once terminal; unique so duplicates cannot race in
    active_key: Mapped[str | None] = mapped_column(String(600), nullable=True, unique=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow, index=True
    )
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    proposer = relationship("User", foreign_keys=[proposer_id], lazy="raise")
    counterpart = relationship("User", foreign_keys=[counterpart_id], lazy="raise")

    __mapper_args__ = {"version_id_col": version}

    @property
    def proposer_rated(self) -> bool:
        return self.rating_of_proposer is not None

    @property
    def counterpart_rated(self) -> bool:
        return self.rating_of_counterpart is not None

    @property
    def both_rated(self) -> bool:
        return self.proposer_rated and self.counterpart_rated

    def is_participant(self, user_id: int) -> bool:
        return user_id in (self.proposer_id, self.counterpart_id)

    def other_party(self, user_id: int) -> int:
        return self.counterpart_id if user_id == self.proposer_id else self.proposer_id
