"""Merge push and SMS outcomes into the single response of a dispatch."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from app.types.notification_contract import AggregatedResult, DeliveryCounts, DeliveryResult


def merge(
    push_results: Iterable[DeliveryResult],
    sms_results: Iterable[DeliveryResult] = (),
    message: str = "",
    extra: Optional[Mapping[str, Any]] = None,
) -> AggregatedResult:
    """Combine per-recipient results without dropping any of them.

    `success` only says the pipeline ran end to end. Individual delivery
    failures show up in `counts` and `results`.
    """
    results = list(push_results) + list(sms_results)
    ok = sum(1 for r in results if r.ok)
    return AggregatedResult(
        success=True,
        message=message,
        counts=DeliveryCounts(ok=ok, error=len(results) - ok),
        results=results,
        extra=dict(extra or {}),
    )


def no_op(message: str, extra: Optional[Mapping[str, Any]] = None) -> AggregatedResult:
    """Nothing to deliver (empty audience, nobody reachable)."""
    return merge([], [], message=message, extra=extra)
