"""
Transaction handling and auto-commit management.

Outside a transaction every statement commits on its own. Opening a
`Transaction` switches the driver out of auto-commit through the dialect
strategy; finishing it (either way) switches auto-commit back on.
"""
import logging
from typing import Any

from dbwrapper.exceptions import TransactionError

logger = logging.getLogger(__name__)


class Transaction:
    """One open transaction on a `Connection`.

    Nested transactions on the same connection are not supported.

    Examples
        with Transaction(cn) as tx:
            cn.prepare('delete from ...').execute(args)
            cn.prepare('update ...').execute(args)
    """

    def __init__(self, cn: Any) -> None:
        if cn.in_transaction:
            raise TransactionError('Nested transactions are not supported')
        self.connection = cn
        self.active = False

    def __enter__(self):
        if not self.active:
            self.begin()
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        if not self.active:
            return
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()

    def begin(self) -> 'Transaction':
        """Leave auto-commit mode; statements now accumulate until commit."""
        if self.active:
            raise TransactionError('Transaction already started')
        self.connection.strategy.disable_autocommit(self.connection.driver_connection)
        self.connection.in_transaction = True
        self.active = True
        logger.debug(f'Started transaction for connection {id(self.connection)}')
        return self

    def _require_active(self) -> None:
        if not self.active:
            raise TransactionError('No transaction in progress')

    def _finish(self) -> None:
        self.active = False
        self.connection.in_transaction = False
        self.connection.strategy.enable_autocommit(self.connection.driver_connection)

    def commit(self) -> None:
        self._require_active()
        try:
            self.connection.commit()
            logger.debug(f'Committed transaction for connection {id(self.connection)}')
        finally:
            self._finish()

    def rollback(self) -> None:
        self._require_active()
        try:
            self.connection.rollback()
            logger.warning('Rolling back the current transaction')
        finally:
            self._finish()
