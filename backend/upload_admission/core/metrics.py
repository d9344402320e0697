"""Prometheus metrics: admission decisions by check/result, policy fallbacks, quota outcomes."""
from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST

ADMISSION_DECISIONS_TOTAL = Counter(
    "upload_admission_decisions_total",
    "Admission decisions",
    ["check", "result"],  # result: allowed | <error kind>
)
POLICY_FALLBACK_TOTAL = Counter(
    "upload_policy_fallback_total",
    "Policy fields resolved from defaults",
    ["field", "reason"],  # reason: absent | malformed | unavailable
)
QUOTA_CHECKS_TOTAL = Counter(
    "upload_quota_checks_total",
    "Daily quota checks",
    ["outcome"],  # unlimited | within | exceeded
)


def record_decision(check: str, result: str) -> None:
    ADMISSION_DECISIONS_TOTAL.labels(check=check, result=result).inc()


def record_policy_fallback(field: str, reason: str) -> None:
    POLICY_FALLBACK_TOTAL.labels(field=field, reason=reason).inc()


def record_quota_check(outcome: str) -> None:
    QUOTA_CHECKS_TOTAL.labels(outcome=outcome).inc()


def get_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
