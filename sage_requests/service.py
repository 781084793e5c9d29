"""Application service orchestrating the store and the collaborator services."""

import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .errors import (
    AlreadyAcceptedError,
    CollaboratorError,
    CriticalInconsistencyError,
    ExpertMismatchError,
    NotActiveError,
    NotRequesterError,
    RequestNotFoundError,
    SageError,
    ValidationError,
)
from .log import get_logger
from .models import AssistanceRequest, ExpertRating, RequestStatus
from .ports import BillingClient, ChatClient, RequestRepository, SummaryClient

logger = get_logger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5


class RequestService:
    """Request lifecycle orchestrator: pending -> active -> resolved.

    Holds no mutable state of its own. Concurrent callers are serialized only
    by the repository's conditional updates.
    """

    def __init__(
        self,
        repo: RequestRepository,
        billing: BillingClient,
        summarizer: SummaryClient,
        chat: ChatClient,
        *,
        bot_identity: str = "LLM_BOT_IDENTITY",
        refund_on_failure: bool = False,
        strict_ratings: bool = True,
        restrict_resolve_to_assignee: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repo = repo
        self.billing = billing
        self.summarizer = summarizer
        self.chat = chat
        self.bot_identity = bot_identity
        self.refund_on_failure = refund_on_failure
        self.strict_ratings = strict_ratings
        self.restrict_resolve_to_assignee = restrict_resolve_to_assignee
        self.clock = clock or _utcnow

    def create_request(self, user_id: str, chat_session_id: str) -> AssistanceRequest:
        """Debit a token, summarize the chat, persist the request, then drop the bot.

        Steps run in that order and stop at the first fatal failure. Only the
        bot removal is allowed to fail without failing the call.
        """
        log = logger.bind(user_id=user_id, chat_session_id=chat_session_id)

        try:
            balance = self.billing.debit_token(user_id)
        except SageError as exc:
            log.info("token_debit_rejected", kind=exc.kind.value, error=str(exc))
            raise exc.with_step("debit")
        log.info("token_debited", new_balance=balance)

        try:
            summary = self.summarizer.summarize(chat_session_id)
        except SageError as exc:
            log.warning("summary_failed_after_debit", error=str(exc))
            self._refund(user_id)
            raise CollaboratorError(f"could not summarize chat: {exc.message}", step="summarize") from exc

        request = AssistanceRequest(
            request_id=str(uuid.uuid4()),
            user_id=user_id,
            status=RequestStatus.PENDING,
            summary=summary,
            chat_session_id=chat_session_id,
            created_at=self.clock(),
        )
        try:
            self.repo.insert_request(request)
        except SageError as exc:
            log.error("request_save_failed_after_debit", error=str(exc))
            self._refund(user_id)
            raise CollaboratorError(f"could not save request: {exc.message}", step="save") from exc

        try:
            self.chat.remove_participant(chat_session_id, self.bot_identity)
        except SageError as exc:
            log.warning("bot_removal_failed", request_id=request.request_id, error=str(exc))

        log.info("request_created", request_id=request.request_id)
        return request

    def accept_request(self, request_id: str, expert_id: str) -> AssistanceRequest:
        """Claim a pending request for an expert and add them to the chat."""
        log = logger.bind(request_id=request_id, expert_id=expert_id)

        if not self.repo.mark_active(request_id, expert_id, self.clock()):
            log.info("accept_conflict")
            raise AlreadyAcceptedError(
                "request not found or was already accepted", step="accept"
            )

        request = self.repo.get_request(request_id)

        try:
            self.chat.add_participant(request.chat_session_id, expert_id)
        except SageError as exc:
            log.critical(
                "expert_join_failed",
                chat_session_id=request.chat_session_id,
                error=str(exc),
            )
            raise CriticalInconsistencyError(
                f"request is active but expert could not join chat: {exc.message}",
                step="add_expert",
            ) from exc

        log.info("request_accepted")
        return request

    def resolve_request(self, request_id: str, expert_id: str) -> None:
        """Mark an active request resolved."""
        required_expert = expert_id if self.restrict_resolve_to_assignee else None
        if self.repo.mark_resolved(request_id, self.clock(), expert_id=required_expert):
            logger.info("request_resolved", request_id=request_id, expert_id=expert_id)
            return

        # The update already lost; this read only picks the error to report.
        try:
            current = self.repo.get_request(request_id)
        except RequestNotFoundError as exc:
            raise NotActiveError("request not found or was not active", step="resolve") from exc
        if current.status != RequestStatus.ACTIVE:
            raise NotActiveError(
                f"request {request_id} is {current.status.value}, not active", step="resolve"
            )
        raise ExpertMismatchError(
            f"request {request_id} is assigned to another expert", step="resolve"
        )

    def get_pending_requests(self) -> List[AssistanceRequest]:
        return list(self.repo.fetch_pending_requests())

    def get_request(self, request_id: str) -> AssistanceRequest:
        return self.repo.get_request(request_id)

    def submit_rating(
        self,
        request_id: str,
        user_id: str,
        expert_id: str,
        score: int,
    ) -> ExpertRating:
        if not MIN_SCORE <= score <= MAX_SCORE:
            raise ValidationError(f"score must be between {MIN_SCORE} and {MAX_SCORE}", step="rate")

        if self.strict_ratings:
            self._check_rating_target(request_id, user_id, expert_id)

        rating = ExpertRating(
            rating_id=str(uuid.uuid4()),
            request_id=request_id,
            user_id=user_id,
            expert_id=expert_id,
            score=score,
        )
        self.repo.insert_rating(rating)
        logger.info("rating_submitted", request_id=request_id, expert_id=expert_id, score=score)
        return rating

    def _check_rating_target(self, request_id: str, user_id: str, expert_id: str) -> None:
        request = self.repo.get_request(request_id)
        if request.status != RequestStatus.RESOLVED:
            raise NotActiveError(f"request {request_id} is not resolved", step="rate")
        if request.user_id != user_id:
            raise NotRequesterError("only the requesting user can rate this request", step="rate")
        if request.expert_id != expert_id:
            raise ExpertMismatchError("expert did not handle this request", step="rate")

    def _refund(self, user_id: str) -> None:
        if not self.refund_on_failure:
            return
        try:
            balance = self.billing.credit_token(user_id, 1)
        except SageError as exc:
            logger.error("token_refund_failed", user_id=user_id, error=str(exc))
            return
        logger.info("token_refunded", user_id=user_id, new_balance=balance)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

