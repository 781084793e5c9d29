from datetime import datetime, timedelta, timezone

import pytest

from sage_requests.adapters import (
    SQLAlchemyRequestRepository,
    build_engine,
    build_session_factory,
    create_schema,
)
from sage_requests.errors import CollaboratorError, InsufficientFundsError, UserNotFoundError
from sage_requests.service import RequestService


class FakeBilling:
    def __init__(self, balances=None):
        self.balances = dict(balances or {})
        self.debits = []
        self.credits = []
        self.fail_with = None

    def debit_token(self, user_id):
        self.debits.append(user_id)
        if self.fail_with is not None:
            raise self.fail_with
        if self.balances.get(user_id, 0) <= 0:
            raise InsufficientFundsError("insufficient funds or user not found")
        self.balances[user_id] -= 1
        return self.balances[user_id]

    def credit_token(self, user_id, amount):
        self.credits.append((user_id, amount))
        if user_id not in self.balances:
            raise UserNotFoundError(f"user {user_id} not found")
        self.balances[user_id] += amount
        return self.balances[user_id]


class FakeSummarizer:
    def __init__(self, summary="User needs help with their Wi-Fi."):
        self.summary = summary
        self.calls = []
        self.fail = False

    def summarize(self, chat_session_id):
        self.calls.append(chat_session_id)
        if self.fail:
            raise CollaboratorError("llm gateway unavailable")
        return self.summary


class FakeChat:
    def __init__(self):
        self.removed = []
        self.added = []
        self.fail_remove = False
        self.fail_add = False

    def remove_participant(self, chat_session_id, identity):
        if self.fail_remove:
            raise CollaboratorError("chat gateway unavailable")
        self.removed.append((chat_session_id, identity))

    def add_participant(self, chat_session_id, identity):
        if self.fail_add:
            raise CollaboratorError("chat gateway unavailable")
        self.added.append((chat_session_id, identity))


class StepClock:
    """Returns strictly increasing timestamps, one second apart."""

    def __init__(self, start=None):
        self.current = start or datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        value = self.current
        self.current = value + timedelta(seconds=1)
        return value


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'requests.db'}")
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def repo(engine):
    return SQLAlchemyRequestRepository(build_session_factory(engine))


@pytest.fixture
def billing():
    return FakeBilling({"user-1": 3, "user-2": 1})


@pytest.fixture
def summarizer():
    return FakeSummarizer()


@pytest.fixture
def chat():
    return FakeChat()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def service(repo, billing, summarizer, chat, clock):
    return RequestService(repo, billing, summarizer, chat, clock=clock)
