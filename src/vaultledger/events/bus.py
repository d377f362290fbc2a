from __future__ import annotations

import json
import os
import logging
from typing import Optional

try:
    import redis
except Exception:  # pragma: no cover
    redis = None  # type: ignore

from .schema import EventEnvelope
from .metrics import get_events_total


STREAM_EVENTS = os.getenv("EVENTS_STREAM", "vaultledger.events")
STREAM_DLQ = os.getenv("EVENTS_DLQ", "vaultledger.dlq")

log = logging.getLogger("vaultledger.events")


def _stream_disabled() -> bool:
    return os.getenv("DISABLE_EVENT_STREAM", "0") == "1"


def _get_redis(socket_timeout: Optional[float] = None):
    if redis is None:
        raise RuntimeError("redis client not available")
    url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    timeout = float(os.getenv("REDIS_SOCKET_TIMEOUT_S", "0.5"))
    # publish runs inside the ledger lock; a silent host must not stall operations
    return redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=timeout,
        socket_timeout=timeout if socket_timeout is None else socket_timeout,
    )


def to_line(env: EventEnvelope) -> str:
    return json.dumps({
        "schema_version": env.schema_version,
        "correlation_id": env.correlation_id,
        "sequence": env.sequence,
        "event": env.event.model_dump(),
    }, separators=(",", ":"))


def publish(env: EventEnvelope) -> None:
    """Publish an event to Redis Streams and log a single-line JSON for Loki.

    Safe: never raises. Notifications are already committed to the ledger's
    journal by the time they reach the bus.
    """
    try:
        get_events_total().labels(env.event.event_type).inc()
    except Exception:
        pass

    line = to_line(env)
    if not _stream_disabled():
        try:
            r = _get_redis()
            r.xadd(STREAM_EVENTS, {"json": line})
        except Exception:
            try:
                # best-effort DLQ
                r = _get_redis()
                r.xadd(STREAM_DLQ, {"json": line})
            except Exception:
                log.debug("event stream unavailable; logged only")
    log.info(line)


def ensure_group(group: str) -> None:
    try:
        r = _get_redis()
        r.xgroup_create(name=STREAM_EVENTS, groupname=group, id="$", mkstream=True)
    except Exception as e:
        if "BUSYGROUP" in str(e):
            return
        raise


def consume(group: str, consumer: str, block_ms: int = 15000):
    """Generator yielding (id, json_str) from Redis Stream consumer group.

    Yields None when a read times out. Caller is responsible for XACK.
    """
    # blocking reads need a socket timeout longer than the block window
    r = _get_redis(socket_timeout=block_ms / 1000.0 + 5.0)
    ensure_group(group)
    while True:
        resp = r.xreadgroup(group, consumer, {STREAM_EVENTS: ">"}, count=100, block=block_ms)
        if not resp:
            yield None
            continue
        # resp is list[(stream, [(id, {field:value}), ...])]
        for _stream, entries in resp:
            for msg_id, fields in entries:
                yield (msg_id, fields.get("json", ""))
