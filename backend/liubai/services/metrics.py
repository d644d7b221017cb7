"""Prometheus metrics for the check-in flow (exposed on /metrics)."""

from prometheus_client import Counter, Histogram

CHECK_INS_PERSISTED = Counter(
    "liubai_check_ins_persisted_total",
    "Check-ins written after their reply stream finished",
    ["level"],
)
CHECK_IN_PERSIST_FAILURES = Counter(
    "liubai_check_in_persist_failures_total",
    "Check-in or daily summary writes that failed and were dropped",
    ["stage"],
)
REPLY_FALLBACKS = Counter(
    "liubai_reply_fallbacks_total",
    "Coach replies replaced by a canned fallback",
    ["reason"],
)
REPLY_DURATION_SECONDS = Histogram(
    "liubai_reply_duration_seconds",
    "Time from submission to the end of the reply stream",
    buckets=(0.25, 0.5, 1, 2, 4, 8, 16, 32),
)
