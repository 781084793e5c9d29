import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from sage_requests.errors import (
    AlreadyAcceptedError,
    CollaboratorError,
    DuplicateRatingError,
    RequestNotFoundError,
)
from sage_requests.models import AssistanceRequest, ExpertRating, RequestStatus

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _pending(created_at=BASE_TIME, request_id=None):
    return AssistanceRequest(
        request_id=request_id or str(uuid.uuid4()),
        user_id="user-1",
        status=RequestStatus.PENDING,
        summary="Printer is offline.",
        chat_session_id="CH-" + (request_id or "x"),
        created_at=created_at,
    )


def test_insert_and_get_roundtrip(repo):
    request = _pending()
    repo.insert_request(request)

    stored = repo.get_request(request.request_id)

    assert stored == request
    assert stored.created_at.tzinfo is not None


def test_get_missing_request_raises_not_found(repo):
    with pytest.raises(RequestNotFoundError):
        repo.get_request("does-not-exist")


def test_duplicate_request_id_is_a_storage_error(repo):
    request = _pending()
    repo.insert_request(request)

    with pytest.raises(CollaboratorError):
        repo.insert_request(request)


def test_pending_ordering_uses_created_at_then_id(repo):
    later = _pending(BASE_TIME + timedelta(minutes=5), request_id="a-later")
    tie_b = _pending(BASE_TIME, request_id="b-tie")
    tie_a = _pending(BASE_TIME, request_id="a-tie")
    for request in (later, tie_b, tie_a):
        repo.insert_request(request)

    assert [r.request_id for r in repo.fetch_pending_requests()] == ["a-tie", "b-tie", "a-later"]


def test_transitions_only_from_expected_state(repo):
    request = _pending()
    repo.insert_request(request)
    now = BASE_TIME + timedelta(minutes=1)

    assert repo.mark_resolved(request.request_id, now) is False
    assert repo.mark_active(request.request_id, "expert-a", now) is True
    assert repo.mark_active(request.request_id, "expert-b", now) is False
    assert repo.mark_resolved(request.request_id, now, expert_id="expert-b") is False
    assert repo.mark_resolved(request.request_id, now, expert_id="expert-a") is True
    assert repo.mark_resolved(request.request_id, now) is False

    stored = repo.get_request(request.request_id)
    assert stored.status == RequestStatus.RESOLVED
    assert stored.expert_id == "expert-a"
    assert stored.accepted_at == now
    assert stored.resolved_at == now


def test_transitions_on_missing_request_affect_nothing(repo):
    assert repo.mark_active("missing", "expert-a", BASE_TIME) is False
    assert repo.mark_resolved("missing", BASE_TIME) is False


def test_accepted_request_leaves_pending_queue(repo):
    first, second = _pending(BASE_TIME), _pending(BASE_TIME + timedelta(seconds=1))
    repo.insert_request(first)
    repo.insert_request(second)

    repo.mark_active(first.request_id, "expert-a", BASE_TIME + timedelta(minutes=1))

    assert [r.request_id for r in repo.fetch_pending_requests()] == [second.request_id]


def test_one_rating_per_request(repo):
    request = _pending()
    repo.insert_request(request)
    rating = ExpertRating(
        rating_id=str(uuid.uuid4()),
        request_id=request.request_id,
        user_id="user-1",
        expert_id="expert-a",
        score=4,
    )
    repo.insert_rating(rating)

    with pytest.raises(DuplicateRatingError):
        repo.insert_rating(
            ExpertRating(
                rating_id=str(uuid.uuid4()),
                request_id=request.request_id,
                user_id="user-1",
                expert_id="expert-a",
                score=1,
            )
        )


def test_rating_for_unknown_request_is_not_found(repo):
    with pytest.raises(RequestNotFoundError):
        repo.insert_rating(
            ExpertRating(
                rating_id=str(uuid.uuid4()),
                request_id="no-such-request",
                user_id="user-1",
                expert_id="expert-a",
                score=5,
            )
        )



def test_concurrent_mark_active_has_single_winner(repo):
    request = _pending()
    repo.insert_request(request)
    experts = [f"expert-{idx}" for idx in range(8)]
    barrier = threading.Barrier(len(experts))

    def claim(expert_id):
        barrier.wait()
        return expert_id, repo.mark_active(request.request_id, expert_id, BASE_TIME)

    with ThreadPoolExecutor(max_workers=len(experts)) as pool:
        results = list(pool.map(claim, experts))

    winners = [expert_id for expert_id, won in results if won]
    assert len(winners) == 1
    assert repo.get_request(request.request_id).expert_id == winners[0]


def test_concurrent_accept_through_service(service, chat):
    created = service.create_request("user-1", "CH-race")
    barrier = threading.Barrier(2)

    def accept(expert_id):
        barrier.wait()
        try:
            return service.accept_request(created.request_id, expert_id)
        except AlreadyAcceptedError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = list(pool.map(accept, ["expert-a", "expert-b"]))

    accepted = [o for o in outcomes if isinstance(o, AssistanceRequest)]
    conflicts = [o for o in outcomes if isinstance(o, AlreadyAcceptedError)]
    assert len(accepted) == 1
    assert len(conflicts) == 1
    winner = accepted[0].expert_id
    assert service.get_request(created.request_id).expert_id == winner
    assert chat.added == [("CH-race", winner)]


def test_full_lifecycle_scenario(service, billing, chat):
    created = service.create_request("user-1", "CH-wifi")

    assert billing.balances["user-1"] == 2
    assert created.status == RequestStatus.PENDING
    assert created.summary == "User needs help with their Wi-Fi."
    assert [r.request_id for r in service.get_pending_requests()] == [created.request_id]

    barrier = threading.Barrier(2)

    def accept(expert_id):
        barrier.wait()
        try:
            return service.accept_request(created.request_id, expert_id)
        except AlreadyAcceptedError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = list(pool.map(accept, ["expert-a", "expert-b"]))

    winner = next(o for o in outcomes if isinstance(o, AssistanceRequest))
    assert winner.status == RequestStatus.ACTIVE
    assert service.get_pending_requests() == []

    service.resolve_request(created.request_id, winner.expert_id)

    resolved = service.get_request(created.request_id)
    assert resolved.status == RequestStatus.RESOLVED
    assert resolved.resolved_at is not None
    assert service.get_pending_requests() == []

    rating = service.submit_rating(created.request_id, "user-1", winner.expert_id, 5)
    assert rating.score == 5
