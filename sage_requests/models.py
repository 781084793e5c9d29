"""Core domain models for assistance requests and expert ratings."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class RequestStatus(str, Enum):
    """Lifecycle states. Transitions only move forward: pending -> active -> resolved."""

    PENDING = "pending"
    ACTIVE = "active"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class AssistanceRequest:
    """One instance of a user asking for expert help."""

    request_id: str
    user_id: str
    status: RequestStatus
    summary: str
    chat_session_id: str
    created_at: datetime
    expert_id: Optional[str] = None
    accepted_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "user_id": self.user_id,
            "expert_id": self.expert_id,
            "status": self.status.value,
            "summary": self.summary,
            "chat_session_id": self.chat_session_id,
            "created_at": self.created_at.isoformat(),
            "accepted_at": self.accepted_at.isoformat() if self.accepted_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


@dataclass(frozen=True)
class ExpertRating:
    """A 1-5 score a user gives the expert who handled their request."""

    rating_id: str
    request_id: str
    user_id: str
    expert_id: str
    score: int

    def to_dict(self) -> dict:
        return {
            "rating_id": self.rating_id,
            "request_id": self.request_id,
            "user_id": self.user_id,
            "expert_id": self.expert_id,
            "score": self.score,
        }
