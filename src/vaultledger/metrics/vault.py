from __future__ import annotations

from typing import Optional
import os
from prometheus_client import Counter, Gauge, REGISTRY

_deposits_total: Optional[Counter] = None
_withdrawals_total: Optional[Counter] = None
_deposited_units_total: Optional[Counter] = None
_withdrawn_units_total: Optional[Counter] = None
_operations_rejected: Optional[Counter] = None
_transfer_failures: Optional[Counter] = None
_held_assets: Optional[Gauge] = None
_available_capacity: Optional[Gauge] = None


class _NoOp:
    def labels(self, *args, **kwargs):
        return self
    def inc(self, *args, **kwargs):
        return None
    def set(self, *args, **kwargs):
        return None


def _find_collector(name: str):
    coll = getattr(REGISTRY, "_names_to_collectors", {}).get(name)
    if coll is not None:
        return coll
    for coll in list(getattr(REGISTRY, "_collector_to_names", {}).keys()):  # type: ignore[attr-defined]
        if getattr(coll, "_name", None) == name:
            return coll
    return None


def _safe_counter(name: str, doc: str, labelnames):
    if os.getenv("DISABLE_PROMETHEUS", "0") == "1":
        return _NoOp()
    try:
        return Counter(name, doc, labelnames)
    except ValueError:
        # Already registered (module re-import, second ledger in tests)
        coll = _find_collector(name)
        return coll if coll is not None else _NoOp()


def _safe_gauge_labels(name: str, doc: str, labelnames):
    if os.getenv("DISABLE_PROMETHEUS", "0") == "1":
        return _NoOp()
    try:
        return Gauge(name, doc, labelnames)
    except ValueError:
        coll = _find_collector(name)
        if isinstance(coll, Gauge):
            return coll
        return _NoOp()


def get_deposits_total():
    global _deposits_total
    if _deposits_total is None:
        _deposits_total = _safe_counter("vault_deposits_total", "Successful deposits", ["vault"])
    return _deposits_total


def get_withdrawals_total():
    global _withdrawals_total
    if _withdrawals_total is None:
        _withdrawals_total = _safe_counter("vault_withdrawals_total", "Successful withdrawals", ["vault"])
    return _withdrawals_total


def get_deposited_units_total():
    """Counter: smallest units credited by successful deposits."""
    global _deposited_units_total
    if _deposited_units_total is None:
        _deposited_units_total = _safe_counter(
            "vault_deposited_units_total", "Units credited by deposits", ["vault"]
        )
    return _deposited_units_total


def get_withdrawn_units_total():
    """Counter: smallest units paid out by successful withdrawals."""
    global _withdrawn_units_total
    if _withdrawn_units_total is None:
        _withdrawn_units_total = _safe_counter(
            "vault_withdrawn_units_total", "Units paid out by withdrawals", ["vault"]
        )
    return _withdrawn_units_total


def get_operations_rejected_total():
    """Counter: vault_operations_rejected_total{vault,operation,reason}"""
    global _operations_rejected
    if _operations_rejected is None:
        _operations_rejected = _safe_counter(
            "vault_operations_rejected_total",
            "Ledger operations rejected",
            ["vault", "operation", "reason"],
        )
    return _operations_rejected


def get_transfer_failures_total():
    global _transfer_failures
    if _transfer_failures is None:
        _transfer_failures = _safe_counter(
            "vault_transfer_failures_total", "Payouts that failed and were rolled back", ["vault"]
        )
    return _transfer_failures


def get_held_assets_gauge():
    global _held_assets
    if _held_assets is None:
        _held_assets = _safe_gauge_labels("vault_held_assets", "Units currently held", ["vault"])
    return _held_assets


def get_available_capacity_gauge():
    global _available_capacity
    if _available_capacity is None:
        _available_capacity = _safe_gauge_labels(
            "vault_available_capacity", "Units that can still be deposited", ["vault"]
        )
    return _available_capacity


def set_holdings_gauges(vault: str, held: int, available: int) -> None:
    """Set held/available gauges for one vault.

    Values are smallest units; Prometheus stores them as floats.
    """
    try:
        get_held_assets_gauge().labels(vault=vault).set(float(held))  # type: ignore[attr-defined]
        get_available_capacity_gauge().labels(vault=vault).set(float(available))  # type: ignore[attr-defined]
    except Exception:
        # Metrics are optional in constrained environments
        return
