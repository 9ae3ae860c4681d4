"""
UnitOfWork -- one atomic database transaction per command.

Responsibility:
    Opens a session for one amend/void request, commits it exactly once at
    the end of the pipeline, and rolls it back on any failure, including a
    cooperative cancellation observed before commit.

Architecture position:
    Kernel > Services -- used only by the command boundary
    (wms_services.vas_commands).  Flush-only services run inside it.

Invariants enforced:
    - All-or-nothing: lot mutations, line updates, and audit rows of one
      request are committed together or not at all.
    - Cancellation is checked immediately before commit; a cancelled
      request leaves no partial state.
    - Optimistic concurrency: a StaleDataError (lot version changed by a
      concurrent request) surfaces as OptimisticLockError after rollback.

Failure modes:
    - Any exception raised inside the block propagates after rollback.
    - OperationCancelledError if the token was cancelled before commit.
    - OptimisticLockError on a version conflict at flush or commit.
"""

from __future__ import annotations

from types import TracebackType

from sqlalchemy import inspect
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from wms_kernel.domain.cancellation import NEVER_CANCELLED, CancellationToken
from wms_kernel.exceptions import OptimisticLockError
from wms_kernel.logging_config import get_logger

logger = get_logger("services.unit_of_work")


def _stale_entity(session: Session) -> tuple[str, str]:
    """Best-effort identification of the versioned row that went stale."""
    for obj in session.dirty:
        if inspect(obj).mapper.version_id_col is not None:
            return type(obj).__name__, str(getattr(obj, "id", "unknown"))
    return "unknown", "unknown"


class UnitOfWork:
    """
    Context manager owning one session and one transaction.

    Usage:
        with UnitOfWork(session_factory, cancellation) as uow:
            service = AmendmentService(uow.session, ...)
            service.amend_line(...)
            uow.checkpoint("amendment_applied")
        # committed here
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        cancellation: CancellationToken | None = None,
    ):
        self._session_factory = session_factory
        self._cancellation = cancellation or NEVER_CANCELLED
        self._session: Session | None = None

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError("UnitOfWork is not active")
        return self._session

    def checkpoint(self, stage: str) -> None:
        """Raise OperationCancelledError if cancellation was requested."""
        self._cancellation.raise_if_cancelled(stage)

    def __enter__(self) -> UnitOfWork:
        self._session = self._session_factory()
        logger.debug("unit_of_work_started")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        session = self.session
        try:
            if exc is not None:
                if isinstance(exc, StaleDataError):
                    entity_type, entity_id = _stale_entity(session)
                    self._rollback(exc)
                    raise OptimisticLockError(entity_type, entity_id) from exc
                self._rollback(exc)
                return

            try:
                self.checkpoint("before_commit")
                session.commit()
            except StaleDataError as stale:
                entity_type, entity_id = _stale_entity(session)
                self._rollback(stale)
                raise OptimisticLockError(entity_type, entity_id) from stale
            except Exception as commit_exc:
                self._rollback(commit_exc)
                raise
            logger.debug("unit_of_work_committed")
        finally:
            session.close()
            self._session = None

    def _rollback(self, exc: BaseException) -> None:
        self.session.rollback()
        logger.warning(
            "unit_of_work_rolled_back",
            extra={
                "error_type": type(exc).__name__,
                "error_code": getattr(exc, "code", None),
            },
        )
