"""Sage request service - assistance request lifecycle orchestration."""

from .errors import ErrorKind, SageError
from .models import AssistanceRequest, ExpertRating, RequestStatus
from .service import RequestService

__all__ = [
    "AssistanceRequest",
    "ErrorKind",
    "ExpertRating",
    "RequestService",
    "RequestStatus",
    "SageError",
]

__version__ = "0.1.0"
