"""Ledger package.

Public API:
- VaultLedger: balances, capacity, per-operation withdrawal limit, counters, notifications.
- Payout / NullPayout / CallbackPayout / RecordingPayout: external value transfer.
- LedgerError and its kinds: ZeroAmount, CapacityExceeded, LimitExceeded,
  InsufficientBalance, TransferFailed, InvalidAmount.
"""

from .ledger import MAX_AMOUNT, PER_OPERATION_WITHDRAWAL_LIMIT, UNIT, LedgerSnapshot, VaultLedger  # re-export
from .payout import CallbackPayout, NullPayout, Payout, RecordingPayout  # re-export
from .errors import (  # re-export
    CapacityExceeded,
    InsufficientBalance,
    InvalidAmount,
    LedgerError,
    LimitExceeded,
    TransferFailed,
    ZeroAmount,
)
