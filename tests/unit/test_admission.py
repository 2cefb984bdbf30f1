"""
Unit tests for the admission controller.
"""

import pytest

from voxwarp.domain.admission import Admit, Reject, RejectReason, admit
from voxwarp.domain.usage import AccountQuota, Plan
from voxwarp.infrastructure.exceptions import (
    AdmissionError,
    InsufficientRemainingError,
    QuotaExhaustedError,
)


def quota(used: int, limit: int = 5000, plan: Plan = Plan.TRIAL) -> AccountQuota:
    return AccountQuota(user_id="user-1", tokens_used=used, tokens_limit=limit, plan=plan)


class TestAdmit:

    def test_admits_when_cost_fits_exactly(self):
        decision = admit(quota(4800), 200)
        assert isinstance(decision, Admit)
        assert decision.admitted is True

    def test_admits_fresh_account(self):
        assert admit(quota(0), 700).admitted

    def test_admits_zero_cost(self):
        assert admit(quota(4999), 0).admitted

    def test_unlimited_plan_always_admitted(self):
        decision = admit(quota(10**9, limit=0, plan=Plan.UNLIMITED), 10**6)
        assert isinstance(decision, Admit)


class TestReject:

    def test_rejects_when_cost_exceeds_remaining(self):
        decision = admit(quota(4800), 201)

        assert isinstance(decision, Reject)
        assert decision.admitted is False
        assert decision.reason == RejectReason.INSUFFICIENT_REMAINING
        assert decision.remaining == 200
        assert decision.required == 201

    def test_rejects_exhausted_quota(self):
        decision = admit(quota(5000), 1)

        assert decision.reason == RejectReason.QUOTA_EXHAUSTED
        assert decision.remaining == 0

    def test_overshoot_counts_as_exhausted(self):
        # Concurrent admissions can push tokens_used past the limit
        decision = admit(quota(5400), 200)
        assert decision.reason == RejectReason.QUOTA_EXHAUSTED

    def test_zero_limit_is_exhausted(self):
        decision = admit(quota(0, limit=0), 1)
        assert decision.reason == RejectReason.QUOTA_EXHAUSTED

    def test_negative_cost_is_invalid(self):
        with pytest.raises(ValueError):
            admit(quota(0), -1)


class TestRejectionErrors:

    def test_exhausted_maps_to_quota_exhausted_error(self):
        error = admit(quota(5000), 200).to_error()

        assert isinstance(error, QuotaExhaustedError)
        assert isinstance(error, AdmissionError)
        assert error.remaining == 0

    def test_insufficient_maps_with_remaining_and_required(self):
        error = admit(quota(4800), 700).to_error()

        assert isinstance(error, InsufficientRemainingError)
        body = error.to_dict()
        assert body["details"]["remaining"] == 200
        assert body["details"]["required"] == 700
