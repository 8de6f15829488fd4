"""Verification tools for the ticket lock.

This module provides:
- Runtime invariant checking and lifecycle monitoring
- The ticket lock invariant battery (state, transition, order axioms)
- CTL temporal logic model checking over the reachable state graph
"""

from __future__ import annotations

from ticket_lock.verification.invariant_checker import (
    LIFECYCLE_TRANSITIONS,
    Invariant,
    InvariantRegistry,
    LifecycleMonitor,
    Violation,
    ViolationSeverity,
    assert_invariant,
)
from ticket_lock.verification.invariants import (
    CORE_STATE_INVARIANTS,
    SUPPORTING_STATE_INVARIANTS,
    TRANSITION_INVARIANTS,
    ProtocolVerifier,
    order_axioms,
    state_invariants,
    transition_invariants,
)
from ticket_lock.verification.temporal import (
    AF,
    AG,
    AX,
    EF,
    EG,
    EU,
    EX,
    And,
    Atomic,
    CTLFormula,
    Implies,
    ModelCheckResult,
    Not,
    Or,
    check_reachable,
    check_safety,
    model_check,
)

__all__ = [
    # --- Invariant Checker ---
    "ViolationSeverity",
    "Invariant",
    "Violation",
    "InvariantRegistry",
    "assert_invariant",
    "LifecycleMonitor",
    "LIFECYCLE_TRANSITIONS",
    # --- Invariant battery ---
    "CORE_STATE_INVARIANTS",
    "SUPPORTING_STATE_INVARIANTS",
    "TRANSITION_INVARIANTS",
    "ProtocolVerifier",
    "state_invariants",
    "transition_invariants",
    "order_axioms",
    # --- Temporal Logic (CTL) ---
    "CTLFormula",
    "Atomic",
    "Not",
    "And",
    "Or",
    "Implies",
    "EX",
    "EF",
    "EG",
    "EU",
    "AX",
    "AF",
    "AG",
    "ModelCheckResult",
    "model_check",
    "check_safety",
    "check_reachable",
]
