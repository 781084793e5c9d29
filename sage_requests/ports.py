"""Port definitions for the store and the collaborator services."""

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .models import AssistanceRequest, ExpertRating


class RequestRepository(Protocol):
    """Storage interface. Transitions must be atomic in the storage engine itself."""

    def insert_request(self, request: AssistanceRequest) -> None:
        """Persist a new request record."""

    def get_request(self, request_id: str) -> AssistanceRequest:
        """Return one request or raise RequestNotFoundError."""

    def fetch_pending_requests(self) -> Sequence[AssistanceRequest]:
        """Return pending requests, oldest first."""

    def mark_active(self, request_id: str, expert_id: str, accepted_at: datetime) -> bool:
        """Move pending -> active. Return False when no row matched."""

    def mark_resolved(
        self,
        request_id: str,
        resolved_at: datetime,
        expert_id: Optional[str] = None,
    ) -> bool:
        """Move active -> resolved, optionally only for the assigned expert."""

    def insert_rating(self, rating: ExpertRating) -> None:
        """Persist a rating. Raise DuplicateRatingError if the request already has one, RequestNotFoundError if the request is missing."""


class BillingClient(Protocol):
    def debit_token(self, user_id: str) -> int:
        """Take one token and return the new balance, or raise InsufficientFundsError."""

    def credit_token(self, user_id: str, amount: int) -> int:
        """Add tokens and return the new balance, or raise a SageError."""


class SummaryClient(Protocol):
    def summarize(self, chat_session_id: str) -> str:
        """Return a text summary of the chat history."""


class ChatClient(Protocol):
    def remove_participant(self, chat_session_id: str, identity: str) -> None:
        """Remove a participant (the LLM bot) from a chat session."""

    def add_participant(self, chat_session_id: str, identity: str) -> None:
        """Add a participant (an expert) to a chat session."""
