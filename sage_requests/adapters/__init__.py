"""Adapters for integrating the request service with storage and collaborators."""

from .sqlalchemy_repo import SQLAlchemyRequestRepository, build_engine, build_session_factory
from .tables import create_schema

__all__ = [
    "SQLAlchemyRequestRepository",
    "build_engine",
    "build_session_factory",
    "create_schema",
]
