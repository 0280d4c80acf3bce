"""Per-viewer projections over in-memory swaps; no database involved."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from skillswap.models import Swap, SwapStatus, User
from skillswap.services import projections

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _users():
    alice = User(id=1, email="alice@example.com", name="Alice", hashed_password="x", skills=["Logo Design"], learning=[])
    bob = User(id=2, email="bob@example.com", name="Bob", hashed_password="x", skills=["Web Development"], learning=[])
    return alice, bob


def _swap(**overrides) -> Swap:
    alice, bob = _users()
    fields = dict(
        id=7,
        proposer_id=1,
        counterpart_id=2,
        skill_offered="Logo Design",
        skill_requested="Web Development",
        message="",
        match_score=92,
        status=SwapStatus.ACCEPTED,
        progress=0,
        version=2,
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    swap = Swap(**fields)
    swap.proposer = alice
    swap.counterpart = bob
    return swap


def test_role_of():
    swap = _swap()
    assert projections.role_of(swap, 1) == "proposer"
    assert projections.role_of(swap, 2) == "counterpart"
    assert projections.role_of(swap, 3) is None


def test_proposer_rating_goes_to_counterpart_slot():
    # Proposer (1) has rated: the value lives in rating_of_counterpart
    swap = _swap(rating_of_counterpart=5)

    assert projections.rating_flags(swap, 1) == (True, False, False)
    assert projections.rating_flags(swap, 2) == (False, True, False)


def test_both_rated_from_either_side():
    swap = _swap(rating_of_counterpart=5, rating_of_proposer=3)
    assert projections.rating_flags(swap, 1) == (True, True, True)
    assert projections.rating_flags(swap, 2) == (True, True, True)


def test_active_view_for_counterpart():
    view = projections.to_active(_swap(progress=30), 2)

    assert view.my_role == "counterpart"
    assert view.skill_i_provide == "Web Development"
    assert view.skill_i_receive == "Logo Design"
    assert view.other_user.id == 1
    assert view.other_user.name == "Alice"
    assert view.progress == 30


def test_other_user_never_exposes_skills_or_password():
    view = projections.to_active(_swap(), 1)
    dumped = view.other_user.model_dump()
    assert set(dumped) == {"id", "name", "email", "avatar_url"}


def test_completed_view_splits_given_and_received():
    done = NOW + timedelta(days=2)
    swap = _swap(
        status=SwapStatus.COMPLETED,
        rating_of_counterpart=5,
        feedback_on_counterpart="Fast and clear",
        rating_of_proposer=2,
        feedback_on_proposer="Late",
        completed_at=done,
    )

    proposer_view = projections.to_completed(swap, 1)
    assert proposer_view.rating_given.value == 5
    assert proposer_view.rating_given.feedback == "Fast and clear"
    assert proposer_view.rating_received.value == 2
    assert proposer_view.completed_at == done

    counterpart_view = projections.to_completed(swap, 2)
    assert counterpart_view.rating_given.value == 2
    assert counterpart_view.rating_received.feedback == "Fast and clear"


def test_unrated_slots_render_as_none():
    response = projections.to_swap_response(_swap(message=None), 1)
    assert response.rating_of_proposer is None
    assert response.rating_of_counterpart is None
    assert response.message == ""
    assert response.my_role == "proposer"


def test_detail_carries_flags_and_other_user():
    detail = projections.to_detail(_swap(rating_of_proposer=4), 2)
    assert detail.other_user.email == "alice@example.com"
    assert detail.has_user_rated is True
    assert detail.has_other_user_rated is False
    assert detail.rating_of_proposer.value == 4


def test_projection_does_not_mutate_swap():
    swap = _swap(rating_of_counterpart=5)
    before = (swap.status, swap.rating_of_proposer, swap.rating_of_counterpart, swap.version)
    projections.to_detail(swap, 1)
    projections.to_active(swap, 2)
    assert (swap.status, swap.rating_of_proposer, swap.rating_of_counterpart, swap.version) == before
