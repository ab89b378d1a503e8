"""
BaseService -- abstract base for session-bound kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for the
    SQL-backed services.  Services use ``session.flush()`` -- never
    ``session.commit()``.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (batch runner, session_scope, or test harness) owns commit/rollback.
    - Connectivity failures are translated to StoreUnavailableError at this
      boundary so callers never depend on driver exception types.
"""

from abc import ABC
from functools import wraps
from typing import Callable, Generic, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from deadline_kernel.db.base import Base
from deadline_kernel.exceptions import StoreUnavailableError

ModelType = TypeVar("ModelType", bound=Base)
F = TypeVar("F", bound=Callable)


def translate_store_errors(operation: str) -> Callable[[F], F]:
    """Re-raise DBAPI connectivity errors as StoreUnavailableError."""

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except (OperationalError, InterfaceError) as exc:
                raise StoreUnavailableError(operation, str(exc.orig or exc)) from exc

        return wrapper  # type: ignore[return-value]

    return decorator


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for session-bound services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session):
        self.session = session
