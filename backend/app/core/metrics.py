from collections import Counter
from threading import Lock
from typing import Dict, Counter as CounterType

_metrics: CounterType[str] = Counter()
_lock = Lock()


def _inc(key: str) -> None:
    with _lock:
        _metrics[key] += 1


def record_order_created() -> None:
    _inc("orders_created")


def record_order_updated() -> None:
    _inc("orders_updated")


def record_coupon_accepted() -> None:
    _inc("coupon_validations_accepted")


def record_coupon_rejected(reason: str) -> None:
    _inc("coupon_validations_rejected")
    _inc(f"coupon_rejected_{reason}")


def record_coupon_usage_claimed() -> None:
    _inc("coupon_usage_claims")


def record_notification_failure() -> None:
    _inc("notification_failures")


def snapshot() -> Dict[str, int]:
    with _lock:
        return dict(_metrics)


def reset() -> None:
    with _lock:
        _metrics.clear()
