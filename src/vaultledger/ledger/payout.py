"""
Payout collaborators: the external value transfer a withdrawal performs.

The ledger treats a payout as untrusted. It may refuse (return False), raise,
or call back into the ledger before returning. Subclasses implement `send`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Tuple


class Payout:
    """Base payout interface. The default implementation accepts everything."""

    def send(self, account: str, amount: int) -> bool:
        """Move `amount` smallest units to `account`.

        Returns:
            True when the transfer went through, False when it was refused.
        """
        return True


class NullPayout(Payout):
    """Accepts every transfer without moving anything (offline / tests)."""


class CallbackPayout(Payout):
    """Adapt a plain callable `fn(account, amount) -> bool` into a Payout.

    Only a literal True counts as a completed transfer; None (a callback that
    forgot to return) or any other value is a refusal.
    """

    def __init__(self, fn: Callable[[str, int], object]):
        self.fn = fn

    def send(self, account: str, amount: int) -> bool:
        return self.fn(account, amount) is True


@dataclass
class PayoutRecord:
    account: str
    amount: int


class RecordingPayout(Payout):
    """Accept transfers and keep an in-memory record of them.

    Set `refuse=True` to make every transfer fail.
    """

    def __init__(self, refuse: bool = False):
        self.refuse = refuse
        self.sent: List[PayoutRecord] = []

    def send(self, account: str, amount: int) -> bool:
        if self.refuse:
            return False
        self.sent.append(PayoutRecord(account=account, amount=amount))
        return True

    def total_sent(self) -> int:
        return sum(r.amount for r in self.sent)

    def as_tuples(self) -> List[Tuple[str, int]]:
        return [(r.account, r.amount) for r in self.sent]
