"""Vault notifications.

Public API:
- Deposit, Withdrawal, EventEnvelope: pydantic notification models.
- publish: best-effort fan-out to Redis Streams plus a JSON log line.
"""

from .schema import BaseEvent, Deposit, EventEnvelope, Withdrawal  # re-export
from .bus import publish  # re-export
