"""Runtime invariant checking for the ticket lock.

This module provides the machinery the invariant battery runs on:

- Named invariants with a severity, collected in a registry
- Violation recording, logging and handler notification
- Per-participant lifecycle monitoring (IDLE -> AWAITING -> CRITICAL -> IDLE)

Thread Safety:
    All mutable state in InvariantRegistry and LifecycleMonitor is
    protected by an RLock, so a registry may be shared by a harness and
    by real threads driving a TicketLock.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ticket_lock.types import ParticipantId, Phase

logger = logging.getLogger(__name__)


class ViolationSeverity(str, Enum):
    """Severity levels for invariant violations."""

    WARNING = "warning"  # log and continue
    ERROR = "error"  # log; harness reports failure
    FATAL = "fatal"  # assert_invariant raises


_LOG_LEVELS = {
    ViolationSeverity.WARNING: logging.WARNING,
    ViolationSeverity.ERROR: logging.ERROR,
    ViolationSeverity.FATAL: logging.CRITICAL,
}


@dataclass
class Invariant:
    """A named predicate over protocol state.

    Attributes:
        name: Registry key, e.g. ``"mutual_exclusion"``
        condition: Returns True if the invariant holds
        severity: Severity level if violated
        message: Message logged on violation
        enabled: Whether the invariant is evaluated
    """

    name: str
    condition: Callable[..., bool]
    severity: ViolationSeverity = ViolationSeverity.ERROR
    message: str = ""
    enabled: bool = True

    def check(self, *args: Any, **kwargs: Any) -> bool:
        """Evaluate the condition; disabled invariants always hold."""
        if not self.enabled:
            return True
        return self.condition(*args, **kwargs)


@dataclass
class Violation:
    """Record of an invariant violation.

    Attributes:
        invariant_name: Name of violated invariant
        severity: Severity of violation
        message: Violation message
        context: Caller-supplied context (step, snapshot, trial seed, ...)
        timestamp: When the violation was recorded
    """

    invariant_name: str
    severity: ViolationSeverity
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class InvariantRegistry:
    """A named collection of invariants sharing one call signature.

    State invariants take a snapshot, transition invariants take
    ``(before, step, after)`` and order axioms take three tickets; each
    kind lives in its own registry.

    Thread Safety:
        RLock (vs Lock) so violation handlers may call back into the
        registry.
    """

    def __init__(self, name: str = "default"):
        self.name = name
        self._lock = threading.RLock()
        self._invariants: dict[str, Invariant] = {}
        self._violations: list[Violation] = []
        self._check_count = 0
        self._violation_count = 0
        self._enabled = True
        self._on_violation: list[Callable[[Violation], None]] = []

    def register(
        self,
        name: str,
        condition: Callable[..., bool],
        severity: ViolationSeverity = ViolationSeverity.ERROR,
        message: str = "",
    ) -> Invariant:
        """Register (or replace) an invariant.

        Args:
            name: Unique name for invariant
            condition: Function returning True if invariant holds
            severity: Severity level if violated
            message: Message to log on violation

        Returns:
            The registered Invariant
        """
        invariant = Invariant(
            name=name,
            condition=condition,
            severity=severity,
            message=message or f"Invariant '{name}' violated",
        )
        with self._lock:
            self._invariants[name] = invariant
        return invariant

    def unregister(self, name: str) -> bool:
        with self._lock:
            return self._invariants.pop(name, None) is not None

    def get(self, name: str) -> Invariant:
        """Return the invariant registered as ``name``.

        Raises:
            KeyError: If invariant not found
        """
        with self._lock:
            invariant = self._invariants.get(name)
        if invariant is None:
            raise KeyError(f"Invariant '{name}' not registered in '{self.name}'")
        return invariant

    @property
    def names(self) -> list[str]:
        with self._lock:
            return list(self._invariants)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._invariants

    def __len__(self) -> int:
        with self._lock:
            return len(self._invariants)

    def check(
        self,
        name: str,
        *args: Any,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> bool:
        """Check one invariant, recording a Violation if it fails.

        The condition is evaluated outside the lock.

        Raises:
            KeyError: If invariant not found
        """
        with self._lock:
            if not self._enabled:
                return True
            invariant = self._invariants.get(name)
            if invariant is None:
                raise KeyError(f"Invariant '{name}' not registered in '{self.name}'")
            self._check_count += 1
            handlers = list(self._on_violation)

        if invariant.check(*args, **kwargs):
            return True

        violation = Violation(
            invariant_name=name,
            severity=invariant.severity,
            message=invariant.message,
            context=context or {},
        )
        self.record_violation(violation)

        logger.log(
            _LOG_LEVELS.get(invariant.severity, logging.ERROR),
            f"Invariant violation [{self.name}]: {name} - {invariant.message}",
            extra={"context": context},
        )

        for handler in handlers:
            try:
                handler(violation)
            except (TypeError, ValueError) as e:
                logger.error(f"Error in violation handler: {e}")
            except Exception:
                logger.exception("Unexpected error in violation handler")

        return False

    def check_all(
        self,
        *args: Any,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> list[str]:
        """Check every registered invariant.

        Returns:
            Names of the violated invariants, in registration order
        """
        return [
            name
            for name in self.names
            if not self.check(name, *args, context=context, **kwargs)
        ]

    def on_violation(self, handler: Callable[[Violation], None]) -> None:
        with self._lock:
            self._on_violation.append(handler)

    def get_violations(
        self,
        since: float | None = None,
        severity: ViolationSeverity | None = None,
    ) -> list[Violation]:
        """Recorded violations, optionally filtered by time and severity."""
        with self._lock:
            violations = list(self._violations)

        if since is not None:
            violations = [v for v in violations if v.timestamp >= since]
        if severity is not None:
            violations = [v for v in violations if v.severity == severity]
        return violations

    def record_violation(self, violation: Violation) -> None:
        with self._lock:
            self._violations.append(violation)
            self._violation_count += 1

    def clear_violations(self) -> None:
        with self._lock:
            self._violations = []

    def enable(self) -> None:
        with self._lock:
            self._enabled = True

    def disable(self) -> None:
        with self._lock:
            self._enabled = False

    def stats(self) -> dict[str, Any]:
        """Check and violation counts for this registry."""
        with self._lock:
            return {
                "name": self.name,
                "invariant_count": len(self._invariants),
                "check_count": self._check_count,
                "violation_count": self._violation_count,
                "violation_rate": (
                    self._violation_count / self._check_count if self._check_count > 0 else 0
                ),
                "enabled": self._enabled,
            }


def assert_invariant(
    condition: bool,
    message: str = "Assertion failed",
    severity: ViolationSeverity = ViolationSeverity.ERROR,
    registry: InvariantRegistry | None = None,
    context: dict[str, Any] | None = None,
) -> None:
    """Assert a condition, recording a violation if it is false.

    Args:
        condition: Condition that should be true
        message: Message if condition is false
        severity: Severity of violation
        registry: Registry the violation is recorded in, if any
        context: Context attached to the violation

    Raises:
        AssertionError: If condition is false and severity is FATAL
    """
    if condition:
        return

    violation = Violation(
        invariant_name="assertion",
        severity=severity,
        message=message,
        context=context or {},
    )
    if registry is not None:
        registry.record_violation(violation)

    if severity == ViolationSeverity.FATAL:
        raise AssertionError(message)

    logger.log(_LOG_LEVELS.get(severity, logging.ERROR), f"Invariant assertion failed: {message}")


LIFECYCLE_TRANSITIONS: dict[Phase, set[Phase]] = {
    Phase.IDLE: {Phase.IDLE, Phase.AWAITING},
    Phase.AWAITING: {Phase.AWAITING, Phase.CRITICAL},
    Phase.CRITICAL: {Phase.CRITICAL, Phase.IDLE},
}
"""Admissible phase changes. Staying put is always allowed: a step by
another participant leaves this one's phase unchanged."""


class LifecycleMonitor:
    """Tracks each participant's phase sequence and flags illegal moves.

    Thread Safety:
        All mutable state is protected by RLock.
    """

    def __init__(
        self,
        name: str = "lifecycle",
        valid_transitions: dict[Phase, set[Phase]] | None = None,
    ):
        self.name = name
        self._lock = threading.RLock()
        self.valid_transitions = valid_transitions or LIFECYCLE_TRANSITIONS
        self._current: dict[ParticipantId, Phase] = {}
        self._history: list[tuple[ParticipantId, Phase | None, Phase]] = []
        self._invalid: list[tuple[ParticipantId, Phase, Phase]] = []

    def transition(self, participant: ParticipantId, new_phase: Phase) -> bool:
        """Record that ``participant`` is now in ``new_phase``.

        The first observation of a participant is always accepted.

        Returns:
            True if the move is admissible
        """
        with self._lock:
            previous = self._current.get(participant)
            is_valid = True
            if previous is not None and new_phase not in self.valid_transitions.get(
                previous, set()
            ):
                is_valid = False
                self._invalid.append((participant, previous, new_phase))
                logger.warning(
                    f"Invalid lifecycle transition for {participant!r}: "
                    f"{previous.value} -> {new_phase.value}"
                )
            if previous != new_phase:
                self._history.append((participant, previous, new_phase))
            self._current[participant] = new_phase
            return is_valid

    def observe(self, phases: dict[ParticipantId, Phase]) -> list[ParticipantId]:
        """Record a whole-system observation.

        Returns:
            Participants whose move was inadmissible
        """
        return [p for p, phase in phases.items() if not self.transition(p, phase)]

    def current_phase(self, participant: ParticipantId) -> Phase | None:
        with self._lock:
            return self._current.get(participant)

    def get_history(self) -> list[tuple[ParticipantId, Phase | None, Phase]]:
        """Phase changes as ``(participant, from_phase, to_phase)``."""
        with self._lock:
            return list(self._history)

    def get_invalid_transitions(self) -> list[tuple[ParticipantId, Phase, Phase]]:
        with self._lock:
            return list(self._invalid)

    def reset(self) -> None:
        with self._lock:
            self._current = {}
            self._history = []
            self._invalid = []


__all__ = [
    "LIFECYCLE_TRANSITIONS",
    "ViolationSeverity",
    "Invariant",
    "Violation",
    "InvariantRegistry",
    "assert_invariant",
    "LifecycleMonitor",
]
