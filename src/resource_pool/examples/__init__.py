"""Scenarios built on top of the pools."""

from .banking import (
    MockConnection,
    MockPreparedStatement,
    TransactionError,
    TransactionService,
    mock_connection_factory,
)

__all__ = [
    "MockConnection",
    "MockPreparedStatement",
    "TransactionError",
    "TransactionService",
    "mock_connection_factory",
]
