"""Tests for the gate reducer and render mapping."""

from __future__ import annotations

import pytest

from stepup_gate import Identity, MfaStatus
from stepup_gate.gate.state import (
    Allowed,
    AwaitingPolicy,
    ChallengePassed,
    EnrollmentCompleted,
    GatePhase,
    GateView,
    IdentityChanged,
    IdentityRefreshed,
    Loading,
    NeedsEnrollment,
    NeedsVerification,
    PolicyAcceptanceRequired,
    PolicyCheckFailed,
    PolicySatisfied,
    Retry,
    StatusFailed,
    StatusLoaded,
    initial_state,
    reduce,
    render,
)

ENROLLED = MfaStatus(enabled=True, verified=True)
POLICY_ROUTE = "/policy-acceptance"


@pytest.fixture
def loading(identity: Identity) -> Loading:
    return Loading(identity=identity, epoch=1)


class TestIdentityEvents:
    def test_initial_state_is_signed_out(self) -> None:
        state = initial_state()

        assert isinstance(state, Loading)
        assert state.identity is None
        assert state.phase is GatePhase.LOADING

    def test_identity_change_bumps_epoch(self, identity: Identity) -> None:
        state = reduce(initial_state(), IdentityChanged(identity))

        assert state == Loading(identity=identity, epoch=1)

    def test_logout_from_allowed(self, identity: Identity) -> None:
        state = reduce(Allowed(identity=identity, epoch=3), IdentityChanged(None))

        assert state == Loading(identity=None, epoch=4)

    def test_refresh_keeps_phase(self, identity: Identity) -> None:
        state = AwaitingPolicy(identity=identity, epoch=2)
        refreshed = identity.model_copy(update={"organization_id": "cmp_2"})

        new_state = reduce(state, IdentityRefreshed(refreshed))

        assert isinstance(new_state, AwaitingPolicy)
        assert new_state.identity.organization_id == "cmp_2"
        assert new_state.epoch == 2

    def test_refresh_for_other_user_is_ignored(
        self, identity: Identity, other_identity: Identity
    ) -> None:
        state = Allowed(identity=identity, epoch=2)

        assert reduce(state, IdentityRefreshed(other_identity)) is state


class TestLoading:
    @pytest.mark.parametrize("fresh", [True, False])
    def test_enrollment_wins_over_trust_cache(
        self, loading: Loading, fresh: bool
    ) -> None:
        status = MfaStatus(enabled=True, verified=False)

        state = reduce(loading, StatusLoaded(1, status, verification_fresh=fresh))

        assert isinstance(state, NeedsEnrollment)
        assert state.status == status

    def test_fresh_verification_skips_challenge(self, loading: Loading) -> None:
        state = reduce(loading, StatusLoaded(1, ENROLLED, verification_fresh=True))

        assert isinstance(state, AwaitingPolicy)

    def test_stale_verification_needs_challenge(self, loading: Loading) -> None:
        state = reduce(loading, StatusLoaded(1, ENROLLED, verification_fresh=False))

        assert isinstance(state, NeedsVerification)

    def test_late_status_for_old_epoch_is_ignored(self, loading: Loading) -> None:
        assert reduce(loading, StatusLoaded(0, ENROLLED, True)) is loading

    def test_status_for_signed_out_state_is_ignored(self) -> None:
        state = Loading(identity=None, epoch=1)

        assert reduce(state, StatusLoaded(1, ENROLLED, True)) is state

    def test_failure_then_retry(self, loading: Loading) -> None:
        failed = reduce(loading, StatusFailed(1, "Failed to get MFA status"))

        assert isinstance(failed, Loading)
        assert failed.error == "Failed to get MFA status"
        assert reduce(failed, Retry(1)) == loading

    def test_retry_without_error_is_ignored(self, loading: Loading) -> None:
        assert reduce(loading, Retry(1)) is loading


class TestTransitions:
    def test_enrollment_completion_reloads_status(self, identity: Identity) -> None:
        state = NeedsEnrollment(identity=identity, epoch=1, status=ENROLLED)

        assert reduce(state, EnrollmentCompleted(1)) == Loading(
            identity=identity, epoch=1
        )

    def test_retry_from_enrollment_reloads_status(self, identity: Identity) -> None:
        state = NeedsEnrollment(identity=identity, epoch=1, status=ENROLLED)

        assert reduce(state, Retry(1)) == Loading(identity=identity, epoch=1)
        assert reduce(state, Retry(0)) is state

    def test_challenge_passed(self, identity: Identity) -> None:
        state = NeedsVerification(identity=identity, epoch=1)

        assert reduce(state, ChallengePassed(1)) == AwaitingPolicy(
            identity=identity, epoch=1
        )

    def test_policy_satisfied(self, identity: Identity) -> None:
        state = AwaitingPolicy(identity=identity, epoch=1)

        assert reduce(state, PolicySatisfied(1)) == Allowed(identity=identity, epoch=1)

    def test_acceptance_required_marks_redirect(self, identity: Identity) -> None:
        state = AwaitingPolicy(identity=identity, epoch=1, error="x")

        new_state = reduce(state, PolicyAcceptanceRequired(1))

        assert isinstance(new_state, AwaitingPolicy)
        assert new_state.redirected
        assert new_state.error is None

    def test_policy_failure_then_retry(self, identity: Identity) -> None:
        state = AwaitingPolicy(identity=identity, epoch=1)

        failed = reduce(state, PolicyCheckFailed(1, "down"))
        assert isinstance(failed, AwaitingPolicy)
        assert failed.error == "down"
        assert reduce(failed, Retry(1)) == state

    @pytest.mark.parametrize(
        "event",
        [
            ChallengePassed(1),
            EnrollmentCompleted(1),
            PolicySatisfied(1),
            StatusLoaded(1, ENROLLED, True),
        ],
    )
    def test_allowed_ignores_flow_events(self, identity: Identity, event) -> None:
        state = Allowed(identity=identity, epoch=1)

        assert reduce(state, event) is state

    def test_challenge_cannot_skip_to_allowed(self, identity: Identity) -> None:
        state = NeedsVerification(identity=identity, epoch=1)

        assert reduce(state, PolicySatisfied(1)) is state


class TestRender:
    def test_views(self, identity: Identity) -> None:
        route = "/client/dashboard"

        assert render(Loading(identity, 1), route, POLICY_ROUTE) is GateView.LOADING
        assert (
            render(NeedsEnrollment(identity, 1, ENROLLED), route, POLICY_ROUTE)
            is GateView.ENROLLMENT
        )
        assert (
            render(NeedsVerification(identity, 1), route, POLICY_ROUTE)
            is GateView.CHALLENGE
        )
        assert render(Allowed(identity, 1), route, POLICY_ROUTE) is GateView.CONTENT

    def test_awaiting_policy_blocks_other_routes(self, identity: Identity) -> None:
        state = AwaitingPolicy(identity=identity, epoch=1, redirected=True)

        assert render(state, "/client/dashboard", POLICY_ROUTE) is GateView.LOADING

    def test_acceptance_page_stays_reachable(self, identity: Identity) -> None:
        state = AwaitingPolicy(identity=identity, epoch=1, redirected=True)

        assert render(state, POLICY_ROUTE, POLICY_ROUTE) is GateView.CONTENT

    def test_acceptance_page_never_bypasses_challenge(
        self, identity: Identity
    ) -> None:
        state = NeedsVerification(identity=identity, epoch=1)

        assert render(state, POLICY_ROUTE, POLICY_ROUTE) is GateView.CHALLENGE
