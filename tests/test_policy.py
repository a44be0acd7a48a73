"""Tests for the Admission Policy."""

from query_shaper.learning.policy import AdmissionPolicy
from query_shaper.ledger.store import UsageLedger
from query_shaper.models.config import ShaperConfig
from query_shaper.models.ledger import LedgerEntry


def _train(ledger: UsageLedger, surface: str, n_with: int, n_without: int) -> None:
    """Record n_with responses containing user.email and n_without lacking it."""
    for _ in range(n_with):
        ledger.record(surface, "user", {"data": {"user": {"name": "Ada", "email": "a@x"}}})
    for _ in range(n_without):
        ledger.record(surface, "user", {"data": {"user": {"name": "Ada"}}})


class TestAdmissionPolicy:
    def setup_method(self):
        self.ledger = UsageLedger()
        self.policy = AdmissionPolicy(self.ledger)

    def test_no_entry_means_no_decision(self):
        assert self.policy.decide("home", "user") is None

    def test_minimum_observations_gate(self):
        _train(self.ledger, "home", n_with=2, n_without=0)
        assert self.policy.decide("home", "user") is None

    def test_decision_after_minimum_observations(self):
        _train(self.ledger, "home", n_with=3, n_without=0)
        assert self.policy.decide("home", "user") == frozenset({"user.name", "user.email"})

    def test_threshold_is_strict(self):
        # 8/10 = 0.8 is not > 0.8
        _train(self.ledger, "home", n_with=8, n_without=2)
        allowed = self.policy.decide("home", "user")
        assert "user.email" not in allowed
        assert "user.name" in allowed

    def test_threshold_admits_above(self):
        _train(self.ledger, "home", n_with=9, n_without=1)
        assert "user.email" in self.policy.decide("home", "user")

    def test_surface_isolation(self):
        _train(self.ledger, "A", n_with=0, n_without=3)
        _train(self.ledger, "B", n_with=3, n_without=0)

        assert self.policy.decide("A", "user") == frozenset({"user.name"})
        assert self.policy.decide("B", "user") == frozenset({"user.name", "user.email"})

    def test_each_path_judged_independently(self):
        entry = LedgerEntry(
            observation_count=10,
            field_counts={"user.address": 5, "user.address.city": 10},
        )
        assert self.policy.allow_list_for(entry) == frozenset({"user.address.city"})

    def test_empty_allow_list_is_distinct_from_no_decision(self):
        entry = LedgerEntry(observation_count=5, field_counts={})
        assert self.policy.allow_list_for(entry) == frozenset()

    def test_usage_ratios(self):
        entry = LedgerEntry(observation_count=4, field_counts={"user.name": 4, "user.email": 1})
        assert AdmissionPolicy.usage_ratios(entry) == {"user.name": 1.0, "user.email": 0.25}

    def test_usage_ratios_of_empty_entry(self):
        assert AdmissionPolicy.usage_ratios(LedgerEntry()) == {}

    def test_from_config(self):
        policy = AdmissionPolicy.from_config(
            self.ledger, ShaperConfig(min_observations=5, admission_threshold=0.5)
        )
        _train(self.ledger, "home", n_with=3, n_without=1)
        assert policy.decide("home", "user") is None

        _train(self.ledger, "home", n_with=0, n_without=1)
        # email: 3/5 = 0.6 > 0.5
        assert policy.decide("home", "user") == frozenset({"user.name", "user.email"})
