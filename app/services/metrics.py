from collections import defaultdict
from typing import Dict, Any

# Métricas básicas (in-memory)

_verifications_total = 0
_verifications_failed = 0
_provider_calls: Dict[str, int] = defaultdict(int)
_provider_failures: Dict[str, int] = defaultdict(int)


def record(metric_name: str, value: int = 1):
    global _verifications_total, _verifications_failed
    if metric_name == "verifications_total":
        _verifications_total += value
    elif metric_name == "verifications_failed":
        _verifications_failed += value
    elif metric_name.startswith("provider_calls:"):
        service = metric_name.split(":", 1)[1]
        _provider_calls[service] += value
    elif metric_name.startswith("provider_failures:"):
        service = metric_name.split(":", 1)[1]
        _provider_failures[service] += value


def snapshot() -> dict[str, Any]:
    return {
        "verifications_total": _verifications_total,
        "verifications_failed": _verifications_failed,
        "provider_calls": dict(_provider_calls),
        "provider_failures": dict(_provider_failures),
    }


def reset() -> None:
    global _verifications_total, _verifications_failed
    _verifications_total = 0
    _verifications_failed = 0
    _provider_calls.clear()
    _provider_failures.clear()
