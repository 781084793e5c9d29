"""SQLAlchemy repository adapter for assistance requests and ratings."""

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Sequence

from sqlalchemy import create_engine, event, insert, select, update
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import CollaboratorError, DuplicateRatingError, RequestNotFoundError
from ..log import get_logger
from ..models import AssistanceRequest, ExpertRating, RequestStatus
from .tables import assistance_requests, expert_ratings

logger = get_logger(__name__)


class SQLAlchemyRequestRepository:
    """Stores requests in relational tables and maps rows to domain models.

    Every state transition is a single conditional UPDATE whose WHERE clause
    names the expected prior status, so the database decides the winner when
    two workers race. One session is opened per call; no connection is shared
    between workers.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session: Session = self.session_factory()
        try:
            yield session
        except SQLAlchemyError as exc:
            session.rollback()
            raise CollaboratorError(f"storage error: {exc}") from exc
        finally:
            session.close()

    def insert_request(self, request: AssistanceRequest) -> None:
        with self._session() as db:
            db.execute(
                insert(assistance_requests).values(
                    request_id=request.request_id,
                    user_id=request.user_id,
                    expert_id=request.expert_id,
                    status=request.status.value,
                    llm_summary=request.summary,
                    chat_session_id=request.chat_session_id,
                    created_at=request.created_at,
                    accepted_at=request.accepted_at,
                    resolved_at=request.resolved_at,
                )
            )
            db.commit()

    def get_request(self, request_id: str) -> AssistanceRequest:
        with self._session() as db:
            row = db.execute(
                select(assistance_requests).where(
                    assistance_requests.c.request_id == request_id
                )
            ).one_or_none()

        if row is None:
            raise RequestNotFoundError(f"request {request_id} not found")
        return _row_to_request(row)

    def fetch_pending_requests(self) -> Sequence[AssistanceRequest]:
        with self._session() as db:
            rows = db.execute(
                select(assistance_requests)
                .where(assistance_requests.c.status == RequestStatus.PENDING.value)
                .order_by(
                    assistance_requests.c.created_at.asc(),
                    assistance_requests.c.request_id.asc(),
                )
            ).fetchall()

        return [_row_to_request(row) for row in rows]

    def mark_active(self, request_id: str, expert_id: str, accepted_at: datetime) -> bool:
        with self._session() as db:
            result = db.execute(
                update(assistance_requests)
                .where(assistance_requests.c.request_id == request_id)
                .where(assistance_requests.c.status == RequestStatus.PENDING.value)
                .values(
                    status=RequestStatus.ACTIVE.value,
                    expert_id=expert_id,
                    accepted_at=accepted_at,
                )
            )
            updated = result.rowcount
            db.commit()
        return updated == 1

    def mark_resolved(
        self,
        request_id: str,
        resolved_at: datetime,
        expert_id: Optional[str] = None,
    ) -> bool:
        stmt = (
            update(assistance_requests)
            .where(assistance_requests.c.request_id == request_id)
            .where(assistance_requests.c.status == RequestStatus.ACTIVE.value)
        )
        if expert_id is not None:
            stmt = stmt.where(assistance_requests.c.expert_id == expert_id)

        with self._session() as db:
            result = db.execute(
                stmt.values(status=RequestStatus.RESOLVED.value, resolved_at=resolved_at)
            )
            updated = result.rowcount
            db.commit()
        return updated == 1

    def insert_rating(self, rating: ExpertRating) -> None:
        with self._session() as db:
            try:
                db.execute(
                    insert(expert_ratings).values(
                        rating_id=rating.rating_id,
                        request_id=rating.request_id,
                        user_id=rating.user_id,
                        expert_id=rating.expert_id,
                        score=rating.score,
                    )
                )
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                exists = db.execute(
                    select(assistance_requests.c.request_id).where(
                        assistance_requests.c.request_id == rating.request_id
                    )
                ).first()
                if exists is None:
                    raise RequestNotFoundError(
                        f"request {rating.request_id} not found"
                    ) from exc
                raise DuplicateRatingError(
                    f"request {rating.request_id} already has a rating"
                ) from exc


def build_engine(url: str, echo: bool = False) -> Engine:
    connect_args = {}
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        # Pooled connections are handed to different worker threads.
        connect_args["check_same_thread"] = False
        if parsed.database and parsed.database != ":memory:":
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(url, echo=echo, connect_args=connect_args)
    if parsed.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    logger.info("database_engine_created", dialect=engine.dialect.name)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def _row_to_request(row) -> AssistanceRequest:
    return AssistanceRequest(
        request_id=row.request_id,
        user_id=row.user_id,
        expert_id=row.expert_id,
        status=RequestStatus(row.status),
        summary=row.llm_summary,
        chat_session_id=row.chat_session_id,
        created_at=_as_utc(row.created_at),
        accepted_at=_as_utc(row.accepted_at),
        resolved_at=_as_utc(row.resolved_at),
    )


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back out.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
