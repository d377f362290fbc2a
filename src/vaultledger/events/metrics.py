from __future__ import annotations

from ..metrics.vault import _safe_counter

_events_total = None


def get_events_total():
    global _events_total
    if _events_total is None:
        _events_total = _safe_counter("vault_events_total", "Vault notifications published", ["type"])
    return _events_total
