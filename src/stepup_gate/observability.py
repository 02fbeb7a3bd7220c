"""Gate metrics for Prometheus integration.

Usage:
    ```python
    from prometheus_client import CollectorRegistry

    from stepup_gate.observability import GateMetrics

    metrics = GateMetrics(registry=CollectorRegistry())
    gate = AuthorizationGate(..., metrics=metrics)
    ```

Without an explicit instance the gate uses :func:`get_metrics`, which
registers its collectors on the default Prometheus registry on first use.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from prometheus_client import REGISTRY, CollectorRegistry, Counter

if TYPE_CHECKING:
    from .gate.state import GatePhase
    from .outcome import CallKind

_logger = logging.getLogger(__name__)


class GateMetrics:
    """Prometheus counters for gate transitions and backend calls.

    Counters:
        ``stepup_gate_transitions_total{phase}``: states entered.
        ``stepup_gate_backend_calls_total{call,result}``: backend calls.
        ``stepup_gate_fail_open_total{call}``: failures resolved by failing open.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        registry = registry if registry is not None else REGISTRY
        self._transitions = Counter(
            "stepup_gate_transitions",
            "Gate states entered",
            ["phase"],
            registry=registry,
        )
        self._calls = Counter(
            "stepup_gate_backend_calls",
            "Backend calls made by the gate",
            ["call", "result"],
            registry=registry,
        )
        self._fail_open = Counter(
            "stepup_gate_fail_open",
            "Backend failures resolved by failing open",
            ["call"],
            registry=registry,
        )

    def record_transition(self, phase: GatePhase) -> None:
        self._transitions.labels(phase=phase.value).inc()

    def record_call(self, kind: CallKind, *, success: bool) -> None:
        result = "success" if success else "failure"
        self._calls.labels(call=kind.value, result=result).inc()

    def record_fail_open(self, kind: CallKind) -> None:
        _logger.debug("Fail-open recorded for %s", kind.value)
        self._fail_open.labels(call=kind.value).inc()


_default_metrics: GateMetrics | None = None


def get_metrics() -> GateMetrics:
    """Return the process-wide metrics instance, creating it lazily."""
    global _default_metrics
    if _default_metrics is None:
        _default_metrics = GateMetrics()
    return _default_metrics


__all__: list[str] = ["GateMetrics", "get_metrics"]
