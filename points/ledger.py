from collections import defaultdict
from types import MappingProxyType
from typing import Mapping

from .models import Transaction, normalize_payer


class Ledger:
    """Append-only transaction history grouped by payer.

    Keeps a running total per payer so balance lookups do not rescan the
    history. Validation is the caller's job; ``append`` records whatever it
    is given.
    """

    def __init__(self):
        self._transactions: dict[str, list[Transaction]] = defaultdict(list)
        self._totals: dict[str, int] = defaultdict(int)
        self._count = 0

    def append(self, transaction: Transaction) -> None:
        self._transactions[transaction.payer].append(transaction)
        self._totals[transaction.payer] += transaction.points
        self._count += 1

    def balance(self, payer: str) -> int:
        return self._totals.get(normalize_payer(payer), 0)

    def total_balance(self) -> int:
        return sum(self._totals.values())

    def balances(self) -> dict[str, int]:
        return dict(self._totals)

    def has_payer(self, payer: str) -> bool:
        return normalize_payer(payer) in self._transactions

    def snapshot(self) -> Mapping[str, tuple[Transaction, ...]]:
        return MappingProxyType({
            payer: tuple(transactions)
            for payer, transactions in self._transactions.items()
        })

    def __len__(self) -> int:
        return self._count
