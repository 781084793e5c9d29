"""httpx clients for the billing, LLM gateway and chat gateway services."""

from typing import Optional

import httpx

from .errors import CollaboratorError, InsufficientFundsError
from .log import get_logger

logger = get_logger(__name__)


class _JsonServiceClient:
    """Posts JSON to one backend service and turns failures into CollaboratorError."""

    service_name = "service"

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._http = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def _post(self, path: str, payload: dict) -> httpx.Response:
        try:
            return self._http.post(path, json=payload)
        except httpx.TimeoutException as exc:
            raise CollaboratorError(f"{self.service_name} timed out on {path}") from exc
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"{self.service_name} request to {path} failed: {exc}") from exc

    def _unexpected(self, path: str, response: httpx.Response) -> CollaboratorError:
        logger.warning(
            "collaborator_bad_status",
            service=self.service_name,
            path=path,
            status=response.status_code,
        )
        return CollaboratorError(
            f"{self.service_name} returned status {response.status_code} for {path}"
        )

    def _json_field(self, response: httpx.Response, field: str, convert=str):
        try:
            return convert(response.json()[field])
        except (ValueError, KeyError, TypeError) as exc:
            raise CollaboratorError(
                f"{self.service_name} response has no usable '{field}'"
            ) from exc


class HTTPBillingClient(_JsonServiceClient):
    service_name = "billing"

    def debit_token(self, user_id: str) -> int:
        response = self._post("/token/debit", {"user_id": user_id})
        if response.status_code == httpx.codes.CONFLICT:
            raise InsufficientFundsError("insufficient funds or user not found")
        if response.status_code != httpx.codes.OK:
            raise self._unexpected("/token/debit", response)
        return self._json_field(response, "new_balance", int)

    def credit_token(self, user_id: str, amount: int) -> int:
        # The billing service reports an unknown user as a plain 500.
        response = self._post("/token/add", {"user_id": user_id, "amount": amount})
        if response.status_code != httpx.codes.OK:
            raise self._unexpected("/token/add", response)
        return self._json_field(response, "new_balance", int)


class HTTPSummaryClient(_JsonServiceClient):
    service_name = "llm"

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(base_url, timeout=timeout, transport=transport)

    def summarize(self, chat_session_id: str) -> str:
        response = self._post("/chat/summarize", {"twilio_conversation_sid": chat_session_id})
        if response.status_code != httpx.codes.OK:
            raise self._unexpected("/chat/summarize", response)
        return self._json_field(response, "summary")


class HTTPChatClient(_JsonServiceClient):
    """Chat gateway client. The gateway knows its own bot identity, so removal only names the session."""

    service_name = "chat"

    def remove_participant(self, chat_session_id: str, identity: str) -> None:
        self._call("/chat/remove-bot", {"twilio_conversation_sid": chat_session_id})

    def add_participant(self, chat_session_id: str, identity: str) -> None:
        self._call(
            "/chat/add-expert",
            {"twilio_conversation_sid": chat_session_id, "expert_id": identity},
        )

    def _call(self, path: str, payload: dict) -> None:
        response = self._post(path, payload)
        if not response.is_success:
            raise self._unexpected(path, response)
