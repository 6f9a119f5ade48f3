# pyright: reportMissingTypeStubs=false
# pyright: reportUnknownMemberType=false

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, generate_latest


_BEACONS = Counter(
    "chittybeacon_beacons_total",
    "Beacons accepted by /track.",
    labelnames=("event",),
)
_BEACONS_REJECTED = Counter(
    "chittybeacon_beacons_rejected_total",
    "Beacons rejected by /track.",
    labelnames=("reason",),
)
_BATCH_ITEMS = Counter(
    "chittybeacon_batch_items_total",
    "Items stored by batch sync endpoints.",
    labelnames=("kind",),
)
_BATCH_FAILURES = Counter(
    "chittybeacon_batch_failures_total",
    "Batch sync calls aborted by a persistence failure.",
    labelnames=("kind",),
)

# Event names are free-form; keep label cardinality bounded.
_KNOWN_EVENTS = frozenset(
    {"startup", "shutdown", "heartbeat", "package_install", "package_sync", "error"}
)


def record_beacon(event: str) -> None:
    label = event if event in _KNOWN_EVENTS else "other"
    _BEACONS.labels(label).inc()


def record_beacon_rejected(reason: str) -> None:
    _BEACONS_REJECTED.labels(reason).inc()


def record_batch(kind: str, *, stored: int, failed: bool) -> None:
    if stored > 0:
        _BATCH_ITEMS.labels(kind).inc(stored)
    if failed:
        _BATCH_FAILURES.labels(kind).inc()


def metrics_payload() -> tuple[bytes, str]:
    payload = generate_latest(REGISTRY)
    return payload, str(CONTENT_TYPE_LATEST)
