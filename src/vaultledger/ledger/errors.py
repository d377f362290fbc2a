"""Ledger error taxonomy.

Every rejection carries the numbers a caller needs to correct the request
(attempted vs. available/limit). Callers branch on the class or on ``kind``.
"""
from __future__ import annotations

from typing import Any, Dict


class LedgerError(Exception):
    """Base class for all vault ledger rejections."""

    kind = "ledger_error"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind}


class InvalidAmount(LedgerError, ValueError):
    """Amount is not an int, is a bool, or lies outside 0..2**256 - 1."""

    kind = "invalid_amount"

    def __init__(self, amount: Any):
        self.amount = amount
        super().__init__(f"amount must be an integer in [0, 2**256 - 1], got {_describe(amount)}")

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "amount": _describe(self.amount)}


class ZeroAmount(LedgerError, ValueError):
    kind = "zero_amount"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} amount must be greater than zero")

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "operation": self.operation}


class CapacityExceeded(LedgerError, ValueError):
    """Deposit would push held assets above capacity.

    ``available`` is measured against holdings before the deposit, so it is the
    largest amount that would have been accepted.
    """

    kind = "capacity_exceeded"

    def __init__(self, attempted: int, available: int):
        self.attempted = attempted
        self.available = available
        super().__init__(f"deposit of {attempted} exceeds available capacity {available}")

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "attempted": self.attempted, "available": self.available}


class LimitExceeded(LedgerError, ValueError):
    kind = "limit_exceeded"

    def __init__(self, attempted: int, limit: int):
        self.attempted = attempted
        self.limit = limit
        super().__init__(f"withdrawal of {attempted} exceeds per-operation limit {limit}")

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "attempted": self.attempted, "limit": self.limit}


class InsufficientBalance(LedgerError, ValueError):
    kind = "insufficient_balance"

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(f"withdrawal of {requested} exceeds balance {available}")

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "requested": self.requested, "available": self.available}


class TransferFailed(LedgerError):
    """Payout was refused or raised; the withdrawal was rolled back."""

    kind = "transfer_failed"

    def __init__(self, account: str, amount: int):
        self.account = account
        self.amount = amount
        super().__init__(f"payout of {amount} to {account} failed")

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "account": self.account, "amount": self.amount}


def _describe(amount: Any) -> str:
    # int -> str conversion is capped at 4300 digits on recent interpreters
    if isinstance(amount, int) and not isinstance(amount, bool) and amount.bit_length() > 256:
        return f"<int of {amount.bit_length()} bits>"
    return repr(amount)
