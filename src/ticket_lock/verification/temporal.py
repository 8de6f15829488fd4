"""CTL (Computation Tree Logic) model checking over the protocol state graph.

This module provides:
- CTL formula AST (Atomic, Not, And, Or, Implies, EX, EF, EG, EU, AX, AF, AG)
- Bottom-up model checking via backward fixpoint computation
- Shortest counterexample traces for failing properties

The Kripke structure is the ``StateGraph`` produced by
``ticket_lock.explorer.explore`` and the labeling comes from
``ticket_lock.graph.label_states``. Typical properties:

- AG mutex: mutual exclusion in every reachable state
- AG(awaiting:P -> EF critical:P): a waiting participant can always
  still be admitted
- AG(awaiting:P -> AF critical:P): does NOT hold; WAIT is a self-loop,
  so without a fairness assumption a path may spin forever

Algorithms from Baier & Katoen, "Principles of Model Checking", Ch. 6:
- EX: backward one-step
- EF: least fixpoint via backward BFS from sat(phi)
- EG: greatest fixpoint via iterative removal
- EU: least fixpoint combining sat(psi) and EX
- AX, AF, AG: duals of the existential operators
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from ticket_lock.graph import Labeling, StateGraph, Trace

# =============================================================================
# CTL Formula AST
# =============================================================================


class CTLFormula:
    """Base class for CTL formulas. Subclasses are frozen dataclasses."""


@dataclass(frozen=True)
class Atomic(CTLFormula):
    """Holds in states labeled with ``prop``."""

    prop: str

    def __repr__(self) -> str:
        return self.prop


@dataclass(frozen=True)
class Not(CTLFormula):
    formula: CTLFormula

    def __repr__(self) -> str:
        return f"¬({self.formula})"


@dataclass(frozen=True)
class And(CTLFormula):
    left: CTLFormula
    right: CTLFormula

    def __repr__(self) -> str:
        return f"({self.left} ∧ {self.right})"


@dataclass(frozen=True)
class Or(CTLFormula):
    left: CTLFormula
    right: CTLFormula

    def __repr__(self) -> str:
        return f"({self.left} ∨ {self.right})"


@dataclass(frozen=True)
class Implies(CTLFormula):
    """φ → ψ, i.e. ¬φ ∨ ψ."""

    left: CTLFormula
    right: CTLFormula

    def __repr__(self) -> str:
        return f"({self.left} → {self.right})"


@dataclass(frozen=True)
class EX(CTLFormula):
    """Some successor satisfies φ."""

    formula: CTLFormula

    def __repr__(self) -> str:
        return f"EX({self.formula})"


@dataclass(frozen=True)
class EF(CTLFormula):
    """Some path eventually reaches φ."""

    formula: CTLFormula

    def __repr__(self) -> str:
        return f"EF({self.formula})"


@dataclass(frozen=True)
class EG(CTLFormula):
    """Some infinite path stays in φ."""

    formula: CTLFormula

    def __repr__(self) -> str:
        return f"EG({self.formula})"


@dataclass(frozen=True)
class EU(CTLFormula):
    """Some path satisfies φ until ψ."""

    left: CTLFormula
    right: CTLFormula

    def __repr__(self) -> str:
        return f"E[{self.left} U {self.right}]"


@dataclass(frozen=True)
class AX(CTLFormula):
    """Every successor satisfies φ (vacuous in deadlock states)."""

    formula: CTLFormula

    def __repr__(self) -> str:
        return f"AX({self.formula})"


@dataclass(frozen=True)
class AF(CTLFormula):
    """Every path eventually reaches φ; ¬EG(¬φ)."""

    formula: CTLFormula

    def __repr__(self) -> str:
        return f"AF({self.formula})"


@dataclass(frozen=True)
class AG(CTLFormula):
    """φ holds in every reachable state; ¬EF(¬φ)."""

    formula: CTLFormula

    def __repr__(self) -> str:
        return f"AG({self.formula})"


# =============================================================================
# Model Check Result
# =============================================================================


@dataclass
class ModelCheckResult:
    """Result of CTL model checking.

    Attributes:
        satisfied: Whether the formula holds in the initial state.
        satisfying_states: States where the formula holds.
        counterexample: Shortest trace to a violating state (if not satisfied).
        formula: The formula that was checked.
    """

    satisfied: bool
    satisfying_states: set[int] = field(default_factory=set)
    counterexample: Trace | None = None
    formula: CTLFormula | None = None


# =============================================================================
# Model Checking Algorithm
# =============================================================================


def _pre_exists(graph: StateGraph, target_states: set[int]) -> set[int]:
    """States with at least one successor in ``target_states``."""
    return {
        s
        for s in graph.states
        if any(target in target_states for _, target in graph.successors(s))
    }


def _pre_forall(graph: StateGraph, target_states: set[int]) -> set[int]:
    """States all of whose successors are in ``target_states``."""
    return {
        s
        for s in graph.states
        if all(target in target_states for _, target in graph.successors(s))
    }


def _lfp_ef(graph: StateGraph, target: set[int]) -> set[int]:
    """EF φ = μZ. sat(φ) ∪ EX(Z): backward BFS from ``target``."""
    result = set(target)
    queue = deque(target)
    while queue:
        state_id = queue.popleft()
        for _, pred in graph.predecessors(state_id):
            if pred not in result:
                result.add(pred)
                queue.append(pred)
    return result


def _gfp_eg(graph: StateGraph, sat_phi: set[int]) -> set[int]:
    """EG φ = νZ. sat(φ) ∩ EX(Z): drop states with no successor left in the set."""
    current = set(sat_phi)
    changed = True
    while changed:
        to_remove = {
            s
            for s in current
            if not any(target in current for _, target in graph.successors(s))
        }
        changed = bool(to_remove)
        current -= to_remove
    return current


def _lfp_eu(graph: StateGraph, sat_phi: set[int], sat_psi: set[int]) -> set[int]:
    """E[φ U ψ] = μZ. sat(ψ) ∪ (sat(φ) ∩ EX(Z))."""
    result = set(sat_psi)
    queue = deque(sat_psi)
    while queue:
        state_id = queue.popleft()
        for _, pred in graph.predecessors(state_id):
            if pred not in result and pred in sat_phi:
                result.add(pred)
                queue.append(pred)
    return result


def _sat(graph: StateGraph, formula: CTLFormula, labeling: Labeling) -> set[int]:
    """Satisfaction set of ``formula``, evaluated bottom-up."""
    all_s = set(graph.states)

    if isinstance(formula, Atomic):
        return {s for s in all_s if formula.prop in labeling.get(s, set())}
    if isinstance(formula, Not):
        return all_s - _sat(graph, formula.formula, labeling)
    if isinstance(formula, And):
        return _sat(graph, formula.left, labeling) & _sat(graph, formula.right, labeling)
    if isinstance(formula, Or):
        return _sat(graph, formula.left, labeling) | _sat(graph, formula.right, labeling)
    if isinstance(formula, Implies):
        return (all_s - _sat(graph, formula.left, labeling)) | _sat(
            graph, formula.right, labeling
        )
    if isinstance(formula, EX):
        return _pre_exists(graph, _sat(graph, formula.formula, labeling))
    if isinstance(formula, AX):
        return _pre_forall(graph, _sat(graph, formula.formula, labeling))
    if isinstance(formula, EF):
        return _lfp_ef(graph, _sat(graph, formula.formula, labeling))
    if isinstance(formula, AF):
        not_phi = all_s - _sat(graph, formula.formula, labeling)
        return all_s - _gfp_eg(graph, not_phi)
    if isinstance(formula, EG):
        return _gfp_eg(graph, _sat(graph, formula.formula, labeling))
    if isinstance(formula, AG):
        not_phi = all_s - _sat(graph, formula.formula, labeling)
        return all_s - _lfp_ef(graph, not_phi)
    if isinstance(formula, EU):
        return _lfp_eu(
            graph,
            _sat(graph, formula.left, labeling),
            _sat(graph, formula.right, labeling),
        )

    raise TypeError(f"Unknown CTL formula type: {type(formula).__name__}")


def _find_counterexample_trace(
    graph: StateGraph,
    satisfying: set[int],
    max_length: int,
) -> Trace | None:
    """Shortest trace from the initial state to a state outside ``satisfying``."""
    queue: deque[tuple[int, Trace]] = deque([(graph.initial_state, ())])
    seen: set[int] = set()
    while queue:
        state_id, trace = queue.popleft()
        if state_id in seen:
            continue
        seen.add(state_id)
        if state_id not in satisfying:
            return trace
        if len(trace) >= max_length:
            continue
        for step, target in graph.successors(state_id):
            queue.append((target, trace + (step,)))
    return None


# =============================================================================
# Public API
# =============================================================================


def model_check(
    graph: StateGraph,
    formula: CTLFormula,
    labeling: Labeling,
    max_counterexample_length: int = 100,
) -> ModelCheckResult:
    """Check whether a CTL formula holds in the initial state.

    Args:
        graph: Reachable state graph.
        formula: The CTL formula to verify.
        labeling: Mapping from state IDs to sets of atomic propositions.
        max_counterexample_length: Maximum length for counterexample traces.

    Returns:
        ModelCheckResult with satisfaction status, satisfying states,
        and a counterexample trace if the property fails.

    Example:
        >>> result = explore(["A", "B"], ExplorationConfig(max_tickets=3))
        >>> model_check(result.graph, AG(Atomic("mutex")), label_states(result.graph)).satisfied
        True
    """
    sat_set = _sat(graph, formula, labeling)
    satisfied = graph.initial_state in sat_set

    counterexample: Trace | None = None
    if not satisfied:
        # for AG, lead to a state where the inner formula fails
        target = sat_set
        if isinstance(formula, AG):
            target = _sat(graph, formula.formula, labeling)
        counterexample = _find_counterexample_trace(graph, target, max_counterexample_length)

    return ModelCheckResult(
        satisfied=satisfied,
        satisfying_states=sat_set,
        counterexample=counterexample,
        formula=formula,
    )


def check_safety(graph: StateGraph, prop: str, labeling: Labeling) -> ModelCheckResult:
    """AG(prop): ``prop`` holds in every reachable state."""
    return model_check(graph, AG(Atomic(prop)), labeling)


def check_reachable(graph: StateGraph, prop: str, labeling: Labeling) -> ModelCheckResult:
    """EF(prop): some reachable state satisfies ``prop``."""
    return model_check(graph, EF(Atomic(prop)), labeling)


__all__ = [
    # Formula AST
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
    # Result
    "ModelCheckResult",
    # Model checking
    "model_check",
    "check_safety",
    "check_reachable",
]
