import logging
import threading
from collections import defaultdict
from typing import Mapping, Optional

from .allocation_queue import AllocationQueue, EmptyQueueError
from .ledger import Ledger
from .models import QueueEntry, Transaction, normalize_payer, utcnow

logger = logging.getLogger(__name__)


class PointsServiceError(Exception):
    kind = "PointsServiceError"


class MalformedInputError(PointsServiceError):
    kind = "MalformedInput"


class NegativeBalanceError(PointsServiceError):
    kind = "NegativeBalance"


class InsufficientBalanceError(PointsServiceError):
    kind = "InsufficientBalance"


class InternalInconsistencyError(RuntimeError):
    kind = "InternalInconsistency"


class PointsService:
    """Spend-allocation engine over a Ledger and an AllocationQueue.

    Every public method runs under one lock: the balance checks and the
    mutations that follow them must not interleave with another request.

    Manual debits go to the ledger only. The amount of each payer's manual
    debits not yet taken out of its queued credits is tracked in
    ``_unabsorbed``; the allocator removes it from the payer's oldest entry
    before spending that entry, so queued points minus unabsorbed debit
    always equals the payer's ledger balance.
    """

    def __init__(self, ledger: Optional[Ledger] = None, queue: Optional[AllocationQueue] = None):
        self.ledger = ledger or Ledger()
        self.queue = queue or AllocationQueue()
        self._unabsorbed: dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def add_transaction(self, transaction: Transaction) -> Transaction:
        with self._lock:
            if transaction.is_credit:
                self.ledger.append(transaction)
                self.queue.insert(QueueEntry.from_transaction(transaction))
                logger.debug("credit accepted: %s %+d", transaction.payer, transaction.points)
                return transaction

            balance = self.ledger.balance(transaction.payer)
            if balance + transaction.points < 0:
                logger.warning(
                    "debit rejected: %s %+d against balance %d",
                    transaction.payer, transaction.points, balance,
                )
                raise NegativeBalanceError(
                    f"Transaction not added because it would cause {transaction.payer}'s "
                    f"points to go negative (balance {balance}, points {transaction.points})"
                )

            self.ledger.append(transaction)
            self._unabsorbed[transaction.payer] -= transaction.points
            logger.debug("debit accepted: %s %+d", transaction.payer, transaction.points)
            return transaction

    def spend(self, points: int) -> dict[str, int]:
        """Deduct ``points`` from the oldest credits first.

        Returns payer -> negative deduction; the values sum to ``-points``.
        Raises InsufficientBalanceError before touching any state when the
        total balance cannot cover the request.
        """
        if points < 0:
            raise MalformedInputError(f"Spend amount must not be negative, got {points}")
        if points == 0:
            return {}

        with self._lock:
            total = self.ledger.total_balance()
            if total < points:
                logger.warning("spend rejected: requested %d, available %d", points, total)
                raise InsufficientBalanceError(
                    f"Not enough points to cover spend request (requested {points}, available {total})"
                )

            deductions: dict[str, int] = {}
            consumed = 0
            while consumed < points:
                try:
                    entry = self.queue.pop_oldest()
                except EmptyQueueError as e:
                    logger.error(
                        "allocation queue exhausted with %d of %d points allocated",
                        consumed, points,
                    )
                    raise InternalInconsistencyError(
                        f"Allocation queue exhausted after {consumed} of {points} points"
                    ) from e

                entry = self._absorb_debit(entry)
                if entry is None:
                    continue

                remaining = points - consumed
                taken = min(entry.points, remaining)
                self.ledger.append(Transaction(payer=entry.payer, points=-taken, timestamp=utcnow()))
                deductions[entry.payer] = deductions.get(entry.payer, 0) - taken
                consumed += taken

                if entry.points > taken:
                    self.queue.insert(entry.remainder(taken))

            logger.info("spent %d points: %s", points, deductions)
            return deductions

    def _absorb_debit(self, entry: QueueEntry) -> Optional[QueueEntry]:
        # Returns the entry with outstanding manual debit removed, or None
        # when nothing spendable is left in it.
        owed = self._unabsorbed.get(entry.payer, 0)
        if owed:
            absorbed = min(owed, entry.points)
            self._unabsorbed[entry.payer] = owed - absorbed
            entry = entry.remainder(absorbed)
        if entry.points == 0:
            return None
        return entry

    def balances(self) -> dict[str, int]:
        with self._lock:
            return self.ledger.balances()

    def balance(self, payer: str) -> dict[str, int]:
        payer = normalize_payer(payer)
        with self._lock:
            if not self.ledger.has_payer(payer):
                return {}
            return {payer: self.ledger.balance(payer)}

    def total_balance(self) -> int:
        with self._lock:
            return self.ledger.total_balance()

    def ledger_snapshot(self) -> Mapping[str, tuple[Transaction, ...]]:
        with self._lock:
            return self.ledger.snapshot()

    def queue_entries(self) -> list[QueueEntry]:
        with self._lock:
            return self.queue.entries()

    def queue_ordered(self) -> list[QueueEntry]:
        with self._lock:
            return self.queue.ordered()

    def spendable_by_payer(self) -> dict[str, int]:
        """Queued points per payer net of unabsorbed manual debits."""
        with self._lock:
            spendable = dict.fromkeys(self.ledger.balances(), 0)
            for entry in self.queue.entries():
                spendable[entry.payer] += entry.points
            for payer, owed in self._unabsorbed.items():
                spendable[payer] -= owed
            return spendable
