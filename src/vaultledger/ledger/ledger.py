from __future__ import annotations

from typing import Callable, Dict, List, Optional
import json
import logging
import os
import threading
import time

import pandas as pd
from pydantic import BaseModel

from ..events.schema import BaseEvent, Deposit, EventEnvelope, Withdrawal
from ..events.bus import publish as publish_event
from ..metrics.vault import (
    get_deposits_total,
    get_withdrawals_total,
    get_deposited_units_total,
    get_withdrawn_units_total,
    get_operations_rejected_total,
    get_transfer_failures_total,
    set_holdings_gauges,
)
from .errors import (
    CapacityExceeded,
    InsufficientBalance,
    InvalidAmount,
    LedgerError,
    LimitExceeded,
    TransferFailed,
    ZeroAmount,
)
from .payout import NullPayout, Payout

# Smallest units per whole unit of the asset (wei per ether).
UNIT = 10**18
PER_OPERATION_WITHDRAWAL_LIMIT = 1 * UNIT
# uint256 ceiling for amounts and capacity
MAX_AMOUNT = 2**256 - 1

log = logging.getLogger("vaultledger.ledger")

Listener = Callable[[EventEnvelope], None]


class LedgerSnapshot(BaseModel):
    vault: str
    capacity: int
    withdrawal_limit: int
    held_assets: int
    available_capacity: int
    total_deposits: int
    total_withdrawals: int
    balances: Dict[str, int]


class VaultLedger:
    """Single-asset custodial ledger with a fixed capacity.

    Every operation runs under one re-entrant lock, including the payout step
    of a withdrawal. A withdrawal validates, debits, pays out, then notifies;
    a payout that calls back into the ledger sees the debited balance.
    """

    withdrawal_limit = PER_OPERATION_WITHDRAWAL_LIMIT

    def __init__(self, capacity: int, payout: Optional[Payout] = None, name: str = "default"):
        if isinstance(capacity, bool) or not isinstance(capacity, int) or not 0 <= capacity <= MAX_AMOUNT:
            raise ValueError(f"capacity must be an integer in [0, 2**256 - 1], got {capacity!r}")
        self._capacity = capacity
        self.name = name
        self.payout = payout if payout is not None else NullPayout()
        self._balances: Dict[str, int] = {}
        self._held = 0
        # Units debited but not yet confirmed sent; still in custody
        self._pending_payouts = 0
        self._deposit_count = 0
        self._withdrawal_count = 0
        self._sequence = 0
        self.events: List[EventEnvelope] = []
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()
        # Metrics
        self._deposits_counter = get_deposits_total()
        self._withdrawals_counter = get_withdrawals_total()
        self._deposited_units = get_deposited_units_total()
        self._withdrawn_units = get_withdrawn_units_total()
        self._rejected_counter = get_operations_rejected_total()
        self._transfer_failures = get_transfer_failures_total()
        self._update_gauges()

    @property
    def capacity(self) -> int:
        return self._capacity

    # ---- state-changing operations ----

    def deposit(self, account: str, amount: int) -> int:
        """Credit `amount` received from `account`; return the new balance."""
        _check_account(account)
        with self._lock:
            self._check_amount("deposit", account, amount)
            in_custody = self._held + self._pending_payouts
            if in_custody + amount > self._capacity:
                raise self._rejected(
                    "deposit", account, CapacityExceeded(attempted=amount, available=self._capacity - in_custody)
                )
            balance = self._balances.get(account, 0) + amount
            self._balances[account] = balance
            self._held += amount
            self._deposit_count += 1
            self._count_success(self._deposits_counter, self._deposited_units, amount)
            self._update_gauges()
            self._emit(Deposit(ts=_now_ms(), vault=self.name, account=account, amount=amount, balance=balance))
            return balance

    def withdraw(self, account: str, amount: int) -> int:
        """Debit `amount` from `account` and pay it out; return the new balance.

        Raises TransferFailed (with state restored) if the payout refuses or raises.
        """
        _check_account(account)
        with self._lock:
            self._check_amount("withdraw", account, amount)
            if amount > self.withdrawal_limit:
                raise self._rejected(
                    "withdraw", account, LimitExceeded(attempted=amount, limit=self.withdrawal_limit)
                )
            available = self._balances.get(account, 0)
            if amount > available:
                raise self._rejected(
                    "withdraw", account, InsufficientBalance(requested=amount, available=available)
                )

            # Effects before the payout
            self._balances[account] = available - amount
            self._held -= amount
            self._withdrawal_count += 1
            self._pending_payouts += amount
            try:
                sent = self.payout.send(account, amount)
            except Exception as exc:
                self._rollback_withdrawal(account, amount)
                raise self._transfer_failed(account, amount, repr(exc)) from exc
            except BaseException:
                # KeyboardInterrupt, SystemExit: restore state, let it propagate
                self._rollback_withdrawal(account, amount)
                raise
            if not sent:
                self._rollback_withdrawal(account, amount)
                raise self._transfer_failed(account, amount, "refused")
            self._pending_payouts -= amount

            balance = self._balances[account]
            self._count_success(self._withdrawals_counter, self._withdrawn_units, amount)
            self._update_gauges()
            self._emit(Withdrawal(ts=_now_ms(), vault=self.name, account=account, amount=amount, balance=balance))
            return balance

    # ---- reads ----

    def get_balance(self, account: str) -> int:
        with self._lock:
            return self._balances.get(account, 0)

    def get_total_deposits(self) -> int:
        with self._lock:
            return self._deposit_count

    def get_total_withdrawals(self) -> int:
        with self._lock:
            return self._withdrawal_count

    def get_held_assets(self) -> int:
        with self._lock:
            return self._held

    def get_available_capacity(self) -> int:
        with self._lock:
            return max(0, self._capacity - self._held - self._pending_payouts)

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                vault=self.name,
                capacity=self._capacity,
                withdrawal_limit=self.withdrawal_limit,
                held_assets=self._held,
                available_capacity=self.get_available_capacity(),
                total_deposits=self._deposit_count,
                total_withdrawals=self._withdrawal_count,
                balances=dict(self._balances),
            )

    def reconcile(self) -> Dict[str, int]:
        """Compare the sum of balances with the tracked held-assets total."""
        with self._lock:
            expected = sum(self._balances.values())
            return {"expected": expected, "recorded": self._held, "delta": self._held - expected}

    # ---- notifications ----

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def write_parquet(self, base_dir: str = "data") -> None:
        os.makedirs(base_dir, exist_ok=True)
        with self._lock:
            event_rows = [
                {"sequence": env.sequence, "correlation_id": env.correlation_id, **env.event.model_dump()}
                for env in self.events
            ]
            balance_rows = [
                {"vault": self.name, "account": acct, "balance": bal}
                for acct, bal in sorted(self._balances.items())
            ]
        events_df = pd.DataFrame(
            event_rows,
            columns=["sequence", "correlation_id", "event_type", "ts", "vault", "account", "amount", "balance"],
        )
        balances_df = pd.DataFrame(balance_rows, columns=["vault", "account", "balance"])
        # Amounts can exceed int64 (wei); store as decimal strings
        for col in ("amount", "balance"):
            events_df[col] = events_df[col].astype(str)
        balances_df["balance"] = balances_df["balance"].astype(str)
        events_df.to_parquet(os.path.join(base_dir, "vault_events.parquet"))
        balances_df.to_parquet(os.path.join(base_dir, "vault_balances.parquet"))

    # ---- internals ----

    def _check_amount(self, operation: str, account: str, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or not 0 <= amount <= MAX_AMOUNT:
            raise self._rejected(operation, account, InvalidAmount(amount))
        if amount == 0:
            raise self._rejected(operation, account, ZeroAmount(operation))

    def _rejected(self, operation: str, account: str, err: LedgerError) -> LedgerError:
        self._rejected_counter.labels(self.name, operation, err.kind).inc()
        payload = {
            "event": "vault_operation_rejected",
            "vault": self.name,
            "operation": operation,
            "account": account,
            **err.to_dict(),
        }
        log.warning(json.dumps(payload, separators=(",", ":")))
        return err

    def _count_success(self, ops_counter, units_counter, amount: int) -> None:
        try:
            ops_counter.labels(self.name).inc()
            units_counter.labels(self.name).inc(amount)
        except Exception:
            # Metrics are optional; the operation is already committed
            log.debug("vault metrics update failed", exc_info=True)

    def _rollback_withdrawal(self, account: str, amount: int) -> None:
        self._pending_payouts -= amount
        self._balances[account] += amount
        self._held += amount
        self._withdrawal_count -= 1

    def _transfer_failed(self, account: str, amount: int, cause: str) -> TransferFailed:
        self._transfer_failures.labels(self.name).inc()
        log.error(json.dumps({
            "event": "vault_payout_failed",
            "vault": self.name,
            "account": account,
            "amount": amount,
            "cause": cause,
        }, separators=(",", ":")))
        return self._rejected("withdraw", account, TransferFailed(account=account, amount=amount))  # type: ignore[return-value]

    def _emit(self, event: BaseEvent) -> None:
        self._sequence += 1
        env = EventEnvelope(
            correlation_id=f"{self.name}:{event.account}:{self._sequence}",
            sequence=self._sequence,
            event=event,
        )
        self.events.append(env)
        for listener in list(self._listeners):
            try:
                listener(env)
            except Exception:
                # The operation is already committed; a broken listener cannot undo it
                log.exception("vault listener failed on %s #%d", event.event_type, env.sequence)
        publish_event(env)

    def _update_gauges(self) -> None:
        set_holdings_gauges(self.name, self._held, max(0, self._capacity - self._held - self._pending_payouts))


def _check_account(account: str) -> None:
    if not isinstance(account, str) or not account:
        raise ValueError(f"account must be a non-empty string, got {account!r}")


def _now_ms() -> int:
    return int(time.time() * 1000)
