"""
wms_services.vas_commands -- command boundary for amend and void requests.

Responsibility:
    Resolves the acting user, opens one UnitOfWork per request, wires the
    lot ledger, audit trail and amendment/void engines onto its session,
    checks cancellation between stages, and commits once at the end.

Architecture position:
    Services -- top of the service layer.  This is the only place where the
    reconciliation services are constructed and composed, and the only
    place a transaction is committed.

Invariants enforced:
    - Unauthenticated requests fail before any database work.
    - One request is one atomic unit: every lot movement, line update and
      audit row commits together or not at all.
    - Cancellation is honoured at every checkpoint and immediately before
      commit; a cancelled request persists nothing.

Failure modes:
    - Every typed error of the amendment and void engines propagates after
      rollback.  None are retried.
    - UnauthenticatedError, OperationCancelledError, OptimisticLockError.

Usage:
    commands = VasCommandService(
        session_factory=get_session_factory(),
        current_user=StaticCurrentUser(user_id),
    )
    commands.amend_line(txn_id, line_id, new_quantity=Decimal("30"), reason="Recount")
    commands.void_transaction(txn_id, reason="Entered against wrong pallet")
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from wms_config import ReconciliationConfig, get_active_config
from wms_engines.allocation import LotAllocationEngine
from wms_kernel.domain.cancellation import CancellationToken
from wms_kernel.domain.clock import Clock, SystemClock
from wms_kernel.logging_config import LogContext, get_logger
from wms_kernel.services.audit_trail import AuditTrailService
from wms_kernel.services.current_user import CurrentUserAccessor
from wms_kernel.services.unit_of_work import UnitOfWork
from wms_services.amendment_service import AmendmentService
from wms_services.lot_ledger import LotLedgerService
from wms_services.void_service import VoidService

logger = get_logger("services.vas_commands")


class _RequestServices:
    """Services wired onto one unit of work's session."""

    def __init__(
        self,
        session: Session,
        config: ReconciliationConfig,
        clock: Clock,
        engine: LotAllocationEngine,
    ):
        audit = AuditTrailService(session, clock=clock)
        ledger = LotLedgerService(session, audit, config=config, engine=engine)
        self.amendments = AmendmentService(session, ledger, audit, config=config, clock=clock)
        self.voids = VoidService(session, ledger, audit, config=config, clock=clock)


class VasCommandService:
    """
    Amend and void commands.

    Contract:
        Each command returns True once its unit of work has committed, and
        raises a typed WmsKernelError otherwise.

    Non-goals:
        - Does NOT expose an HTTP or CLI surface.
        - Does NOT retry on OptimisticLockError; the caller resubmits.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        current_user: CurrentUserAccessor,
        clock: Clock | None = None,
        config: ReconciliationConfig | None = None,
    ):
        self._session_factory = session_factory
        self._current_user = current_user
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._engine = LotAllocationEngine()

    def _services(self, uow: UnitOfWork) -> _RequestServices:
        return _RequestServices(uow.session, self._config, self._clock, self._engine)

    def amend_line(
        self,
        transaction_id: UUID,
        line_id: UUID,
        new_quantity: Decimal | None = None,
        new_weight: Decimal | None = None,
        *,
        reason: str,
        cancellation: CancellationToken | None = None,
    ) -> bool:
        """
        Amend one line and commit.

        Raises:
            UnauthenticatedError: no acting user.
            OperationCancelledError: cancelled before commit.
            Any error raised by AmendmentService.amend_line().
        """
        user_id = self._current_user.require_user_id()

        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(user_id),
            transaction_id=str(transaction_id),
            line_id=str(line_id),
        ):
            logger.info("amend_line_requested")
            with UnitOfWork(self._session_factory, cancellation) as uow:
                uow.checkpoint("amend_line_started")
                result = self._services(uow).amendments.amend_line(
                    transaction_id=transaction_id,
                    line_id=line_id,
                    user_id=user_id,
                    reason=reason,
                    new_quantity=new_quantity,
                    new_weight=new_weight,
                )
                uow.checkpoint("amendment_applied")
            logger.info(
                "amend_line_committed",
                extra={
                    "amendment_id": str(result.amendment_id),
                    "inventory_applied": result.inventory_applied,
                },
            )
        return True

    def void_transaction(
        self,
        transaction_id: UUID,
        *,
        reason: str,
        cancellation: CancellationToken | None = None,
    ) -> bool:
        """
        Void a transaction and commit.

        Raises:
            UnauthenticatedError: no acting user.
            OperationCancelledError: cancelled before commit.
            Any error raised by VoidService.void_transaction().
        """
        user_id = self._current_user.require_user_id()

        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(user_id),
            transaction_id=str(transaction_id),
        ):
            logger.info("void_requested")
            with UnitOfWork(self._session_factory, cancellation) as uow:
                uow.checkpoint("void_started")
                result = self._services(uow).voids.void_transaction(
                    transaction_id=transaction_id,
                    user_id=user_id,
                    reason=reason,
                )
                uow.checkpoint("void_applied")
            logger.info(
                "void_committed",
                extra={
                    "amendment_id": str(result.amendment_id),
                    "lines_applied": result.lines_applied,
                },
            )
        return True
