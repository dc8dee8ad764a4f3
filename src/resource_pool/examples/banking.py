"""Banking transfer scenario running on a pool of mock database connections.

A high-traffic banking service shares one fixed pool of expensive
connections across every thread that handles a transfer. Each transfer
borrows a connection, runs a debit and a credit inside one transaction
and always hands the connection back.
"""

import itertools
import threading
from typing import Any, Callable, List, Optional

from ..core.constants import MOCK_CONNECTION_PREFIX
from ..core.pool import BoundedResourcePool
from ..exceptions import ResourcePoolError
from ..logging import get_logger

logger = get_logger(__name__)

DEBIT_SQL = "UPDATE accounts SET balance = balance - ? WHERE account_id = ?"
CREDIT_SQL = "UPDATE accounts SET balance = balance + ? WHERE account_id = ?"


class TransactionError(ResourcePoolError):
    """A transfer failed and was rolled back."""
    pass


class MockConnection:
    """In-memory stand-in for a database connection."""

    def __init__(self, connection_id: str):
        self.id = connection_id
        self.auto_commit = True
        self.closed = False
        self.executed: List[str] = []
        self.commits = 0
        self.rollbacks = 0

    def _ensure_open(self) -> None:
        if self.closed:
            raise RuntimeError(f"Connection {self.id} is closed")

    def set_auto_commit(self, auto_commit: bool) -> None:
        self._ensure_open()
        self.auto_commit = auto_commit
        logger.debug(f"[{self.id}] auto-commit set to {auto_commit}")

    def prepare_statement(self, sql: str) -> "MockPreparedStatement":
        self._ensure_open()
        return MockPreparedStatement(self, sql)

    def commit(self) -> None:
        self._ensure_open()
        self.commits += 1
        logger.debug(f"[{self.id}] transaction committed")

    def rollback(self) -> None:
        self._ensure_open()
        self.rollbacks += 1
        logger.debug(f"[{self.id}] transaction rolled back")

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return f"MockConnection({self.id!r})"


class MockPreparedStatement:
    """Prepared statement with 1-based positional parameters."""

    def __init__(self, connection: MockConnection, sql: str):
        self.connection = connection
        self.sql = sql
        self.parameters: dict = {}

    def set_parameter(self, index: int, value: Any) -> None:
        if index < 1:
            raise IndexError("statement parameters are 1-based")
        self.parameters[index] = value

    def execute_update(self) -> int:
        """Run the statement; reports one affected row."""
        self.connection._ensure_open()
        self.connection.executed.append(self.sql)
        logger.debug(f"[{self.connection.id}] executing: {self.sql}", parameters=self.parameters)
        return 1


def mock_connection_factory(prefix: str = MOCK_CONNECTION_PREFIX) -> Callable[[], MockConnection]:
    """Factory producing ``CONN-1``, ``CONN-2``, ... on successive calls."""
    counter = itertools.count(1)
    lock = threading.Lock()

    def factory() -> MockConnection:
        with lock:
            number = next(counter)
        return MockConnection(f"{prefix}-{number}")

    return factory


class TransactionService:
    """Moves money between accounts using connections from a shared pool."""

    def __init__(self, pool: BoundedResourcePool[MockConnection], timeout: Optional[float] = None):
        self.pool = pool
        self.timeout = timeout

    def transfer_funds(self, from_account: str, to_account: str, amount: float) -> None:
        """Debit ``from_account`` and credit ``to_account`` atomically.

        Pool errors (backpressure, closed pool) propagate unchanged; failures
        while the connection is held roll the transaction back and raise
        ``TransactionError``.
        """
        if amount <= 0:
            raise ValueError("transfer amount must be positive")

        with self.pool.connection(self.timeout) as conn:
            try:
                conn.set_auto_commit(False)

                debit = conn.prepare_statement(DEBIT_SQL)
                debit.set_parameter(1, amount)
                debit.set_parameter(2, from_account)
                debit.execute_update()

                credit = conn.prepare_statement(CREDIT_SQL)
                credit.set_parameter(1, amount)
                credit.set_parameter(2, to_account)
                credit.execute_update()

                conn.commit()
            except Exception as e:
                self._rollback(conn)
                raise TransactionError.from_exception(
                    "Transaction failed, rolled back",
                    e,
                    details={"from": from_account, "to": to_account, "amount": amount},
                )
            finally:
                if not conn.closed:
                    conn.auto_commit = True

        logger.info(f"Transfer of {amount:.2f} from {from_account} to {to_account} committed")

    def _rollback(self, conn: MockConnection) -> None:
        try:
            conn.rollback()
        except RuntimeError as e:
            # The original failure is what gets raised
            logger.error(f"Rollback failed on {conn.id}: {str(e)}")
