"""Composition root: wires storage, collaborator clients and the service."""

from .adapters import SQLAlchemyRequestRepository, build_engine, build_session_factory, create_schema
from .clients import HTTPBillingClient, HTTPChatClient, HTTPSummaryClient
from .config import Settings
from .log import get_logger
from .service import RequestService

logger = get_logger(__name__)


def build_service(settings: Settings) -> RequestService:
    engine = build_engine(settings.database.url, echo=settings.database.echo)
    if settings.database.create_schema:
        create_schema(engine)

    services = settings.services
    policy = settings.policy
    service = RequestService(
        SQLAlchemyRequestRepository(build_session_factory(engine)),
        HTTPBillingClient(services.billing.base_url, timeout=services.billing.timeout),
        HTTPSummaryClient(services.llm.base_url, timeout=services.llm.timeout),
        HTTPChatClient(services.chat.base_url, timeout=services.chat.timeout),
        bot_identity=policy.bot_identity,
        refund_on_failure=policy.refund_on_failure,
        strict_ratings=policy.strict_ratings,
        restrict_resolve_to_assignee=policy.restrict_resolve_to_assignee,
    )
    logger.info(
        "request_service_built",
        billing=services.billing.base_url,
        llm=services.llm.base_url,
        chat=services.chat.base_url,
        refund_on_failure=policy.refund_on_failure,
    )
    return service
