"""
Points Ledger

Payers contribute points through timed transactions; spends are paid from
the oldest unconsumed credits first, and no payer's balance may go negative.

This package provides:
- An append-only ledger grouped by payer
- A timestamp-ordered allocation queue over unconsumed credit
- The spend allocator and transaction acceptance rules
- A FastAPI application exposing them over HTTP
"""

from .models import (
    Transaction,
    QueueEntry,
    AddTransactionRequest,
    SpendRequest,
)
from .ledger import Ledger
from .allocation_queue import AllocationQueue, EmptyQueueError
from .service import (
    PointsService,
    PointsServiceError,
    MalformedInputError,
    NegativeBalanceError,
    InsufficientBalanceError,
    InternalInconsistencyError,
)

__all__ = [
    "Transaction",
    "QueueEntry",
    "AddTransactionRequest",
    "SpendRequest",
    "Ledger",
    "AllocationQueue",
    "EmptyQueueError",
    "PointsService",
    "PointsServiceError",
    "MalformedInputError",
    "NegativeBalanceError",
    "InsufficientBalanceError",
    "InternalInconsistencyError",
]
