# tests/test_policies.py
"""
Tests for budget-window policies.
"""

from chuk_rag_session.models import ProviderFamily
from chuk_rag_session.policies import (
    CumulativeWindowPolicy,
    RefreshedWindowPolicy,
    WindowSnapshot,
    default_policy_for,
)


class TestRefreshedWindowPolicy:
    def test_used_is_last_turn(self):
        policy = RefreshedWindowPolicy(reserved_response_buffer=1024)
        snapshot = WindowSnapshot(limit=4096, cumulative_tokens=5000, last_turn_tokens=50)
        assert policy.used(snapshot) == 50

    def test_available_ignores_history(self):
        policy = RefreshedWindowPolicy(reserved_response_buffer=1024)
        assert policy.available(WindowSnapshot(limit=4096, cumulative_tokens=0)) == 3072
        assert policy.available(WindowSnapshot(limit=4096, cumulative_tokens=100000)) == 3072

    def test_always_continues(self):
        policy = RefreshedWindowPolicy(reserved_response_buffer=1024)
        assert policy.can_continue(WindowSnapshot(limit=10, cumulative_tokens=10**6))


class TestCumulativeWindowPolicy:
    def test_available(self):
        policy = CumulativeWindowPolicy(cushion=1024, min_tokens_for_exchange=500)
        assert policy.used(WindowSnapshot(limit=9216, cumulative_tokens=7000)) == 7000
        assert policy.available(WindowSnapshot(limit=9216, cumulative_tokens=7000)) == 1192

    def test_available_never_negative(self):
        policy = CumulativeWindowPolicy(cushion=1024, min_tokens_for_exchange=500)
        assert policy.available(WindowSnapshot(limit=9216, cumulative_tokens=9000)) == 0

    def test_can_continue_threshold(self):
        policy = CumulativeWindowPolicy(cushion=1024, min_tokens_for_exchange=500)
        assert policy.can_continue(WindowSnapshot(limit=9216, cumulative_tokens=7000))
        # 9216 - 1024 - 7692 == 500, which is not strictly more than the minimum
        assert not policy.can_continue(WindowSnapshot(limit=9216, cumulative_tokens=7692))


class TestDefaultPolicy:
    def test_by_family(self):
        stateless = default_policy_for(
            ProviderFamily.STATELESS_REPLAY, cushion=512, min_tokens_for_exchange=500, reserved_response_buffer=256
        )
        stateful = default_policy_for(
            ProviderFamily.STATEFUL_SESSION, cushion=512, min_tokens_for_exchange=500, reserved_response_buffer=256
        )
        assert isinstance(stateless, RefreshedWindowPolicy)
        assert stateless.reserved_response_buffer == 256
        assert isinstance(stateful, CumulativeWindowPolicy)
        assert stateful.cushion == 512
        assert "cushion=512" in repr(stateful)
