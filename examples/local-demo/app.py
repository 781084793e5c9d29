"""Local demo: the request service on SQLite with in-process stand-ins for the other services.

Run with ``uvicorn app:app --reload`` from this directory.
"""

from sage_requests.adapters import (
    SQLAlchemyRequestRepository,
    build_engine,
    build_session_factory,
    create_schema,
)
from sage_requests.api import create_app
from sage_requests.errors import InsufficientFundsError, UserNotFoundError
from sage_requests.log import get_logger, setup_logging
from sage_requests.service import RequestService

setup_logging("DEBUG")
logger = get_logger("local_demo")

STARTING_TOKENS = 3


class DemoBilling:
    """Every user starts with a few tokens the first time they are seen."""

    def __init__(self):
        self.balances = {}

    def debit_token(self, user_id: str) -> int:
        balance = self.balances.setdefault(user_id, STARTING_TOKENS)
        if balance <= 0:
            raise InsufficientFundsError("insufficient funds or user not found")
        self.balances[user_id] = balance - 1
        return self.balances[user_id]

    def credit_token(self, user_id: str, amount: int) -> int:
        if user_id not in self.balances:
            raise UserNotFoundError(f"user {user_id} not found")
        self.balances[user_id] += amount
        return self.balances[user_id]


class DemoSummarizer:
    def summarize(self, chat_session_id: str) -> str:
        return "User needs help with their Wi-Fi."


class DemoChat:
    def remove_participant(self, chat_session_id: str, identity: str) -> None:
        logger.info("demo_participant_removed", chat_session_id=chat_session_id, identity=identity)

    def add_participant(self, chat_session_id: str, identity: str) -> None:
        logger.info("demo_participant_added", chat_session_id=chat_session_id, identity=identity)


engine = build_engine("sqlite:///./data/local-demo.db")
create_schema(engine)

app = create_app(
    RequestService(
        SQLAlchemyRequestRepository(build_session_factory(engine)),
        DemoBilling(),
        DemoSummarizer(),
        DemoChat(),
    )
)
