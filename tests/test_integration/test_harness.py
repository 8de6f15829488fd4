"""Tests for the randomized interleaving harness."""

from __future__ import annotations

import numpy as np

from ticket_lock import (
    ActionKind,
    HarnessConfig,
    InterleavingHarness,
    Phase,
    PriorityDriver,
    Step,
    TicketProtocol,
)
from ticket_lock.drivers import Driver


class TestInterleavingHarness:
    """Stress runs over many seeded interleavings."""

    def test_all_trials_pass(self, small_harness_config):
        """No invariant or lifecycle violation in any trial."""
        report = InterleavingHarness(small_harness_config).run()
        assert report.ok
        assert len(report.trials) == 20
        assert report.total_steps == 20 * 150
        assert report.total_admissions > 0

    def test_admission_counts(self, small_harness_config):
        """Per-participant admission counts add up to the total."""
        report = InterleavingHarness(small_harness_config).run()
        counts = report.admission_counts
        assert isinstance(counts, np.ndarray)
        assert counts.shape == (3,)
        assert int(counts.sum()) == report.total_admissions

    def test_seeded_runs_reproducible(self, small_harness_config):
        """Same master seed, same traces."""
        first = InterleavingHarness(small_harness_config).run()
        second = InterleavingHarness(small_harness_config).run()
        assert [t.trace for t in first.trials] == [t.trace for t in second.trials]

    def test_trial_to_dict(self):
        """Trial results serialize to plain data."""
        harness = InterleavingHarness(HarnessConfig(participants=2, max_steps=10))
        data = harness.run_trial(42).to_dict()
        assert data["seed"] == 42
        assert data["participants"] == ["P0", "P1"]
        assert data["steps"] == 10
        assert len(data["trace"]) == 10
        assert data["violations"] == []
        assert sum(data["admission_counts"]) == data["admissions"]

    def test_summary(self, small_harness_config):
        """summary aggregates counts and the pass/fail verdict."""
        summary = InterleavingHarness(small_harness_config).run().summary()
        assert summary["trials"] == 20
        assert summary["failed_trials"] == 0
        assert summary["ok"] is True
        assert summary["min_admissions"] <= summary["max_admissions"]

    def test_many_participants(self):
        """Mutual exclusion holds with eight contenders."""
        config = HarnessConfig(participants=8, trials=10, max_steps=300, seed=7)
        assert InterleavingHarness(config).run().ok

    def test_exhausted_domain_stalls_cleanly(self):
        """With a tiny ticket domain, trials stop issuing but stay consistent."""
        config = HarnessConfig(participants=3, trials=5, max_steps=100, ticket_capacity=4)
        report = InterleavingHarness(config).run()
        assert report.ok
        for trial in report.trials:
            assert trial.admissions <= 4
            assert trial.steps < 100

    def test_custom_driver_factory(self):
        """A deterministic driver can replace the random one."""
        harness = InterleavingHarness(
            HarnessConfig(participants=2, trials=3, max_steps=50),
            driver_factory=lambda protocol, rng: PriorityDriver(protocol),
        )
        assert harness.run().ok


class CheatingDriver(Driver):
    """Lets a participant into the region without waiting its turn."""

    def choose(self, enabled: list[Step]) -> Step:
        return enabled[0]

    def step(self, participant):
        protocol: TicketProtocol = self.protocol
        if protocol.phase_of(participant) == Phase.AWAITING:
            protocol.state.registry.set_phase(participant, Phase.CRITICAL)
            return Step(
                ActionKind.ENTER,
                participant,
                protocol.ticket_of(participant),
            )
        return super().step(participant)


class TestHarnessDetectsDefects:
    """The harness is an oracle: a broken protocol must fail it."""

    def test_cheating_driver_caught(self):
        """Bypassing the admission test breaks mutual exclusion."""
        config = HarnessConfig(participants=3, trials=5, max_steps=100, seed=3)
        harness = InterleavingHarness(
            config, driver_factory=lambda protocol, rng: CheatingDriver(protocol)
        )
        report = harness.run()
        assert not report.ok
        names = {name for trial in report.failed_trials for _, name in trial.violations}
        assert "mutual_exclusion" in names or "admission_correctness" in names
        # trials stop at the first violating step
        for trial in report.failed_trials:
            first_index = trial.violations[0][0]
            assert all(index == first_index for index, _ in trial.violations)
