"""Skill overlap scoring: the informational match score stored on a proposal, and candidate cards for starting one."""
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.models.user import User
from skillswap.services import swap_store

CANDIDATE_LIMIT = 20


def _overlap(have: list[str] | None, want: list[str] | None) -> list[str]:
    wanted = set(want or [])
    return [s for s in (have or []) if s in wanted]


def has_skill(user: User, skill: str) -> bool:
    """Skill listing lookup. Read-only: the swap core never edits a user's skills."""
    return skill in (user.skills or [])


def proposal_score(proposer: User, counterpart: User) -> int:
    """
    50 with no overlap, 70 when only one side can help the other,
    90 + min(total overlaps, 10) when both can.
    """
    i_help = len(_overlap(proposer.skills, counterpart.learning))
    they_help = len(_overlap(counterpart.skills, proposer.learning))
    if i_help and they_help:
        return min(90 + min(i_help + they_help, 10), 100)
    if i_help or they_help:
        return 70
    return 50


@dataclass
class CandidateCard:
    user_id: int
    name: str | None
    email: str
    avatar_url: str | None
    offers_skill: str | None
    needs_skill: str | None
    all_offered_skills: list[str] = field(default_factory=list)
    all_needed_skills: list[str] = field(default_factory=list)
    match_score: int = 0
    can_swap: bool = False
    past_rating_avg: float | None = None


def candidate_score(they_can_do_for_me: list[str], i_can_do_for_them: list[str]) -> int:
    if they_can_do_for_me and i_can_do_for_them:
        score = 90
    elif they_can_do_for_me or i_can_do_for_them:
        score = 70
    else:
        score = 40
    score += min(len(they_can_do_for_me) * 2, 10)
    return min(score, 100)


async def find_candidates(db: AsyncSession, me: User, limit: int = CANDIDATE_LIMIT) -> list[CandidateCard]:
    """Users who can teach something I want, or want something I can teach."""
    others = (await db.execute(select(User).where(User.id != me.id).order_by(User.id))).scalars().all()
    cards: list[CandidateCard] = []
    for other in others:
        they_can_do_for_me = _overlap(other.skills, me.learning)
        i_can_do_for_them = _overlap(me.skills, other.learning)
        if not they_can_do_for_me and not i_can_do_for_them:
            continue
        cards.append(
            CandidateCard(
                user_id=other.id,
                name=other.name,
                email=other.email,
                avatar_url=other.avatar_url,
                offers_skill=they_can_do_for_me[0] if they_can_do_for_me else next(iter(other.skills or []), None),
                needs_skill=i_can_do_for_them[0] if i_can_do_for_them else next(iter(other.learning or []), None),
                all_offered_skills=they_can_do_for_me,
                all_needed_skills=i_can_do_for_them,
                match_score=candidate_score(they_can_do_for_me, i_can_do_for_them),
                can_swap=bool(they_can_do_for_me and i_can_do_for_them),
            )
        )
    cards.sort(key=lambda c: c.match_score, reverse=True)
    cards = cards[:limit]

    received = await swap_store.ratings_received(db, [c.user_id for c in cards])
    for card in cards:
        scores = received.get(card.user_id) or []
        card.past_rating_avg = round(sum(scores) / len(scores), 1) if scores else None
    return cards
