"""FastAPI surface for the request service."""

from typing import List
from uuid import UUID

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .errors import ErrorKind, SageError
from .log import get_logger
from .service import RequestService

logger = get_logger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.PAYMENT_REQUIRED: 402,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.COLLABORATOR: 503,
    ErrorKind.CRITICAL: 500,
}

# Client-facing text per (step, kind). Anything unlisted gets the generic retry message.
_MESSAGES = {
    ("debit", ErrorKind.PAYMENT_REQUIRED): "Insufficient assistance tokens",
    ("accept", ErrorKind.CONFLICT): "Request already accepted",
    ("resolve", ErrorKind.CONFLICT): "Request is not active",
    ("resolve", ErrorKind.FORBIDDEN): "Request is assigned to another expert",
    ("rate", ErrorKind.CONFLICT): "Request cannot be rated",
    ("rate", ErrorKind.FORBIDDEN): "Not allowed to rate this request",
}


class CreateRequestPayload(BaseModel):
    chat_session_id: str = Field(min_length=1)


class AcceptRequestPayload(BaseModel):
    request_id: UUID


class ResolveRequestPayload(BaseModel):
    request_id: UUID


class RateRequestPayload(BaseModel):
    request_id: UUID
    expert_id: UUID
    score: int = Field(ge=1, le=5)


def create_app(service: RequestService) -> FastAPI:
    """Build the HTTP app around an already-wired service.

    Caller identity comes from the X-User-ID / X-Expert-ID headers set by the
    gateway in front of this service.
    """
    app = FastAPI(title="Sage Request Service", version="0.1.0")
    app.state.service = service

    @app.exception_handler(SageError)
    async def handle_sage_error(request: Request, exc: SageError) -> JSONResponse:
        status = _STATUS_BY_KIND.get(exc.kind, 500)
        message = _MESSAGES.get((exc.step, exc.kind))
        if message is None:
            message = exc.message if status < 500 else "Something went wrong, please try again later"
        if status >= 500:
            logger.error("request_failed", path=request.url.path, kind=exc.kind.value, error=str(exc))
        return JSONResponse(status_code=status, content={"error": message, "kind": exc.kind.value})

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "service": "requestservice"}

    @app.post("/request/create", status_code=201)
    def create_request(
        payload: CreateRequestPayload,
        user_id: UUID = Header(alias="X-User-ID"),
    ) -> dict:
        request = service.create_request(str(user_id), payload.chat_session_id)
        return request.to_dict()

    @app.post("/request/rate")
    def rate_request(
        payload: RateRequestPayload,
        user_id: UUID = Header(alias="X-User-ID"),
    ) -> dict:
        service.submit_rating(
            str(payload.request_id),
            str(user_id),
            str(payload.expert_id),
            payload.score,
        )
        return {"status": "rating received"}

    @app.get("/request/pending")
    def pending_requests() -> List[dict]:
        return [request.to_dict() for request in service.get_pending_requests()]

    @app.post("/request/accept")
    def accept_request(
        payload: AcceptRequestPayload,
        expert_id: UUID = Header(alias="X-Expert-ID"),
    ) -> dict:
        request = service.accept_request(str(payload.request_id), str(expert_id))
        return request.to_dict()

    @app.post("/request/resolve")
    def resolve_request(
        payload: ResolveRequestPayload,
        expert_id: UUID = Header(alias="X-Expert-ID"),
    ) -> dict:
        service.resolve_request(str(payload.request_id), str(expert_id))
        return {"status": "resolved"}

    @app.get("/request/{request_id}")
    def get_request(request_id: UUID) -> dict:
        return service.get_request(str(request_id)).to_dict()

    return app
