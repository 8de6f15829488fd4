"""Randomized interleaving harness.

Each trial starts a fresh protocol over ``participants`` participants
and runs ``max_steps`` steps. At every step a seeded NumPy generator
picks the participant to move, the driver applies one of its enabled
actions, and the full state and transition invariant battery is
re-checked along with the lifecycle monitor.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ticket_lock.domain import UNSIGNED_64_MAX, TicketDomain
from ticket_lock.drivers import Driver, RandomDriver
from ticket_lock.protocol import TicketLockState, TicketProtocol
from ticket_lock.snapshot import Step
from ticket_lock.types import ActionKind, ParticipantId
from ticket_lock.verification.invariant_checker import LifecycleMonitor
from ticket_lock.verification.invariants import ProtocolVerifier

if TYPE_CHECKING:
    import numpy as np

logger = logging.getLogger(__name__)

DriverFactory = Callable[[TicketProtocol, "np.random.Generator"], Driver]


@dataclass
class HarnessConfig:
    """Configuration for the interleaving harness."""

    participants: int = 3
    """Number of participants per trial"""

    trials: int = 100
    """Number of independent trials"""

    max_steps: int = 200
    """Steps per trial"""

    seed: int | None = 0
    """Master seed; trial seeds are derived from it (None: nondeterministic)"""

    stop_on_violation: bool = True
    """End a trial at its first violation"""

    ticket_capacity: int = UNSIGNED_64_MAX
    """Bound next_ticket may reach, so capacity tickets are issued at most;
    small values exercise domain exhaustion"""


@dataclass
class TrialResult:
    """Outcome of one trial.

    Attributes:
        seed: Seed the trial ran with
        participants: Participant ids, in index order
        steps: Steps actually applied
        admissions: Number of ENTER steps
        admission_counts: ENTER steps per participant (NumPy int array)
        violations: ``(step_index, invariant_name)`` pairs
        invalid_transitions: Lifecycle moves rejected by the monitor
        trace: Executed steps, in order
    """

    seed: int
    participants: list[ParticipantId]
    steps: int = 0
    admissions: int = 0
    admission_counts: Any = None
    violations: list[tuple[int, str]] = field(default_factory=list)
    invalid_transitions: list[tuple[ParticipantId, str, str]] = field(default_factory=list)
    trace: list[Step] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations and not self.invalid_transitions

    def to_dict(self) -> dict[str, Any]:
        from ticket_lock.serialization import trace_to_dict

        return {
            "seed": self.seed,
            "participants": list(self.participants),
            "steps": self.steps,
            "admissions": self.admissions,
            "admission_counts": [int(c) for c in self.admission_counts],
            "violations": [list(v) for v in self.violations],
            "invalid_transitions": [list(t) for t in self.invalid_transitions],
            "trace": trace_to_dict(self.trace),
        }


@dataclass
class HarnessReport:
    """Aggregate over all trials."""

    trials: list[TrialResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(t.ok for t in self.trials)

    @property
    def total_steps(self) -> int:
        return sum(t.steps for t in self.trials)

    @property
    def total_admissions(self) -> int:
        return sum(t.admissions for t in self.trials)

    @property
    def admission_counts(self) -> np.ndarray:
        """Admissions per participant index, summed over trials."""
        import numpy as np

        if not self.trials:
            return np.zeros(0, dtype=np.int64)
        return np.sum([t.admission_counts for t in self.trials], axis=0)

    @property
    def failed_trials(self) -> list[TrialResult]:
        return [t for t in self.trials if not t.ok]

    def summary(self) -> dict[str, Any]:
        counts = self.admission_counts
        return {
            "trials": len(self.trials),
            "failed_trials": len(self.failed_trials),
            "total_steps": self.total_steps,
            "total_admissions": self.total_admissions,
            "admission_counts": [int(c) for c in counts],
            "min_admissions": int(counts.min()) if counts.size else 0,
            "max_admissions": int(counts.max()) if counts.size else 0,
            "ok": self.ok,
        }


def _random_driver(protocol: TicketProtocol, rng: np.random.Generator) -> Driver:
    return RandomDriver(protocol, rng)


class InterleavingHarness:
    """Runs seeded random interleavings and checks every invariant at every step.

    Usage:
        report = InterleavingHarness(HarnessConfig(participants=4)).run()
        assert report.ok
    """

    def __init__(
        self,
        config: HarnessConfig | None = None,
        driver_factory: DriverFactory | None = None,
    ):
        self._config = config or HarnessConfig()
        self._driver_factory = driver_factory or _random_driver

    @property
    def config(self) -> HarnessConfig:
        return self._config

    def participant_ids(self) -> list[ParticipantId]:
        return [f"P{i}" for i in range(self._config.participants)]

    def run_trial(self, seed: int) -> TrialResult:
        """Run one trial from a fresh protocol."""
        import numpy as np

        config = self._config
        rng = np.random.default_rng(seed)
        participants = self.participant_ids()
        domain = TicketDomain(config.ticket_capacity)
        protocol = TicketProtocol(TicketLockState(participants, domain))
        driver = self._driver_factory(protocol, rng)
        verifier = ProtocolVerifier(domain)
        monitor = LifecycleMonitor(f"trial-{seed}")

        result = TrialResult(
            seed=seed,
            participants=participants,
            admission_counts=np.zeros(len(participants), dtype=np.int64),
        )

        snapshot = protocol.snapshot()
        monitor.observe({p: snapshot.phase_of(p) for p in participants})
        failed = verifier.verify_state(snapshot, context={"seed": seed, "step_index": 0})
        result.violations.extend((0, name) for name in failed)

        for index in range(1, config.max_steps + 1):
            if result.violations and config.stop_on_violation:
                break
            who = int(rng.integers(len(participants)))
            before = snapshot
            step = driver.step(participants[who])
            if step is None:
                continue
            snapshot = protocol.snapshot()
            result.steps += 1
            result.trace.append(step)
            if step.action == ActionKind.ENTER:
                result.admissions += 1
                result.admission_counts[who] += 1

            rejected = monitor.observe({p: snapshot.phase_of(p) for p in participants})
            for participant in rejected:
                previous = before.phase_of(participant)
                current = snapshot.phase_of(participant)
                result.invalid_transitions.append(
                    (participant, previous.value, current.value)
                )
            failed = verifier.verify(
                before, step, snapshot, context={"seed": seed, "step_index": index}
            )
            result.violations.extend((index, name) for name in failed)

        logger.debug(
            f"Trial seed={seed}: {result.steps} steps, {result.admissions} admissions, "
            f"{len(result.violations)} violations"
        )
        return result

    def run(self) -> HarnessReport:
        """Run ``trials`` trials with seeds derived from the master seed."""
        import numpy as np

        config = self._config
        seeds = np.random.default_rng(config.seed).integers(0, 2**32, size=config.trials)
        report = HarnessReport()
        for seed in seeds:
            report.trials.append(self.run_trial(int(seed)))
        if not report.ok:
            logger.warning(
                f"{len(report.failed_trials)} of {len(report.trials)} trials violated invariants"
            )
        return report


__all__ = [
    "DriverFactory",
    "HarnessConfig",
    "HarnessReport",
    "InterleavingHarness",
    "TrialResult",
]
