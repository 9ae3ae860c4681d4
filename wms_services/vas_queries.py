"""
Read side of VAS transactions.

Each query opens its own short-lived session and returns frozen DTOs, so
callers never hold ORM objects past the session that loaded them.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from wms_kernel.exceptions import TransactionNotFoundError
from wms_kernel.selectors.inventory_selector import InventorySelector, LotDTO
from wms_kernel.selectors.vas_selector import (
    AmendmentDTO,
    VasSelector,
    VasTransactionDTO,
)


class VasQueryService:
    """Queries over transactions, amendment history and pallet stock."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def list_for_account(
        self,
        account_id: UUID,
        start: datetime,
        end: datetime,
        include_voided: bool = False,
    ) -> list[VasTransactionDTO]:
        """Transactions of an account in [start, end), oldest first."""
        with self._session_factory() as session:
            return VasSelector(session).list_for_account(
                account_id, start, end, include_voided=include_voided
            )

    def get_transaction(self, transaction_id: UUID) -> VasTransactionDTO:
        """
        Raises:
            TransactionNotFoundError: no such transaction.
        """
        with self._session_factory() as session:
            dto = VasSelector(session).get(transaction_id)
        if dto is None:
            raise TransactionNotFoundError(str(transaction_id))
        return dto

    def get_amendment_history(self, transaction_id: UUID) -> list[AmendmentDTO]:
        """Amendments and the void of a transaction, newest first."""
        with self._session_factory() as session:
            return VasSelector(session).amendment_history(transaction_id)

    def lots_on_pallet(
        self, pallet_id: UUID, material_id: UUID | None = None
    ) -> list[LotDTO]:
        with self._session_factory() as session:
            return InventorySelector(session).lots_on_pallet(pallet_id, material_id)
