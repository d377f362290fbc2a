from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional
import logging
import time

from ..events.schema import EventEnvelope
from ..metrics.vault import _safe_counter


def _get_append_counters():
    app = _safe_counter("vault_journal_appends_total", "Journal records appended", ["vault"])
    err = _safe_counter("vault_journal_errors_total", "Journal append errors", ["reason", "vault"])
    return app, err


REQUIRED_KEYS = {
    "ts", "vault", "event_type", "account", "amount", "balance", "sequence",
}


def validate_record(rec: Dict[str, Any]) -> List[str]:
    missing = [k for k in REQUIRED_KEYS if k not in rec]
    return missing


def record_from_envelope(env: EventEnvelope) -> Dict[str, Any]:
    evt = env.event
    return {
        "ts": evt.ts,
        "vault": evt.vault,
        "event_type": evt.event_type,
        "account": evt.account,
        # wei amounts overflow most JSON consumers; keep them as strings
        "amount": str(evt.amount),
        "balance": str(evt.balance),
        "sequence": env.sequence,
        "correlation_id": env.correlation_id,
    }


def append_jsonl(path: str, rec: Dict[str, Any]) -> None:
    vault = str(rec.get("vault", "unknown"))
    app, err = _get_append_counters()
    missing = validate_record(rec)
    if missing:
        err.labels("missing_fields", vault).inc()
        return
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")
        app.labels(vault).inc()
    except OSError:
        err.labels("io_error", vault).inc()


def journal_listener(path: str):
    """Return a ledger listener that appends every envelope to `path`."""

    def _append(env: EventEnvelope) -> None:
        append_jsonl(path, record_from_envelope(env))

    return _append


def log_ledger_event(
    event_type: str,
    vault: str,
    account: Optional[str] = None,
    amount: Optional[int] = None,
    ts: Optional[int] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """Emit a structured JSON log line for ledger observability.

    Keys: event, vault, account, amount, ts, severity, component, schema_version
    """
    try:
        logger = logging.getLogger("vaultledger.activity")
        payload: Dict[str, Any] = {
            "event": str(event_type),
            "vault": str(vault),
            "account": str(account) if account is not None else None,
            "amount": str(amount) if amount is not None else None,
            "ts": int(ts if ts is not None else int(time.time() * 1000)),
            "severity": "INFO",
            "component": "ledger",
            "schema_version": "v1",
        }
        if extra:
            payload["extra"] = extra
        logger.info(json.dumps(payload, separators=(",", ":")))
    except Exception:
        # Logging must never throw
        pass
