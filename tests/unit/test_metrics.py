"""Tests for gate metrics."""

from __future__ import annotations

from prometheus_client import CollectorRegistry

from stepup_gate import GatePhase
from stepup_gate.observability import GateMetrics, get_metrics
from stepup_gate.outcome import CallKind


class TestGateMetrics:
    def test_counters_are_registered_on_given_registry(self) -> None:
        registry = CollectorRegistry()
        metrics = GateMetrics(registry=registry)

        metrics.record_transition(GatePhase.NEEDS_VERIFICATION)
        metrics.record_transition(GatePhase.NEEDS_VERIFICATION)
        metrics.record_call(CallKind.MFA_VERIFY, success=False)
        metrics.record_fail_open(CallKind.MFA_STATUS)

        assert (
            registry.get_sample_value(
                "stepup_gate_transitions_total", {"phase": "needs_verification"}
            )
            == 2.0
        )
        assert (
            registry.get_sample_value(
                "stepup_gate_backend_calls_total",
                {"call": "mfa_verify", "result": "failure"},
            )
            == 1.0
        )
        assert (
            registry.get_sample_value(
                "stepup_gate_fail_open_total", {"call": "mfa_status"}
            )
            == 1.0
        )

    def test_separate_registries_do_not_collide(self) -> None:
        first = CollectorRegistry()
        second = CollectorRegistry()
        GateMetrics(registry=first).record_call(CallKind.MFA_STATUS, success=True)
        GateMetrics(registry=second)

        labels = {"call": "mfa_status", "result": "success"}
        assert first.get_sample_value("stepup_gate_backend_calls_total", labels) == 1.0
        assert (
            second.get_sample_value("stepup_gate_backend_calls_total", labels) is None
        )

    def test_default_instance_is_shared(self) -> None:
        assert get_metrics() is get_metrics()
