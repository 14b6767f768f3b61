import threading
import time
from typing import Any


_lock = threading.Lock()
_metrics: dict[str, float] = {
    "sessions_active": 0.0,
    "sessions_started": 0.0,
    "sessions_ended": 0.0,
    "replies_generated": 0.0,
    "oracle_fallbacks": 0.0,
    "echoes_rejected": 0.0,
    "duplicates_rejected": 0.0,
    "overlapping_triggers_ignored": 0.0,
    "synthesis_errors": 0.0,
    "score_snapshots_computed": 0.0,
    "emotion_samples_received": 0.0,
    "reply_latency_total_ms": 0.0,
    "reply_latency_samples": 0.0,
    "score_compute_total_ms": 0.0,
    "score_compute_samples": 0.0,
}

_COUNTER_KEYS = (
    "sessions_active",
    "sessions_started",
    "sessions_ended",
    "replies_generated",
    "oracle_fallbacks",
    "echoes_rejected",
    "duplicates_rejected",
    "overlapping_triggers_ignored",
    "synthesis_errors",
    "score_snapshots_computed",
    "emotion_samples_received",
)


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def decrement_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        next_value = float(_metrics.get(key, 0.0)) - float(amount)
        _metrics[key] = max(0.0, next_value)


def get_metric(name: str) -> float:
    with _lock:
        return float(_metrics.get(str(name or "").strip(), 0.0))


def observe_reply_latency_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["reply_latency_total_ms"] = float(_metrics.get("reply_latency_total_ms", 0.0)) + latency
        _metrics["reply_latency_samples"] = float(_metrics.get("reply_latency_samples", 0.0)) + 1.0


def observe_score_compute_ms(value_ms: float) -> None:
    elapsed = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["score_compute_total_ms"] = float(_metrics.get("score_compute_total_ms", 0.0)) + elapsed
        _metrics["score_compute_samples"] = float(_metrics.get("score_compute_samples", 0.0)) + 1.0


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    latency_samples = max(1.0, float(data.get("reply_latency_samples") or 0.0))
    compute_samples = max(1.0, float(data.get("score_compute_samples") or 0.0))

    payload: dict[str, Any] = {"generated_at": time.time()}
    for key in _COUNTER_KEYS:
        payload[key] = int(data.get(key) or 0.0)

    # Raw totals are kept so callers can compute deltas over a test window
    payload.update({
        "reply_latency_total_ms": float(data.get("reply_latency_total_ms") or 0.0),
        "reply_latency_samples": int(data.get("reply_latency_samples") or 0.0),
        "score_compute_total_ms": float(data.get("score_compute_total_ms") or 0.0),
        "score_compute_samples": int(data.get("score_compute_samples") or 0.0),
        "avg_reply_latency_ms": round(float(data.get("reply_latency_total_ms") or 0.0) / latency_samples, 2),
        "avg_score_compute_ms": round(float(data.get("score_compute_total_ms") or 0.0) / compute_samples, 2),
    })

    if extra:
        payload.update(extra)
    return payload
