"""
BaseService -- abstract base for flush-only services.

Responsibility:
    Common constructor and session-handling contract for every service
    that writes through a caller-owned SQLAlchemy ``Session``.

Invariants enforced:
    Services flush within the caller's transaction and never commit or
    roll back.  The unit of work at the command boundary owns both, which
    is what makes a multi-lot amendment or a multi-line void atomic.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from wms_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for flush-only services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT provide read-only query methods; those belong in
          ``wms_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
