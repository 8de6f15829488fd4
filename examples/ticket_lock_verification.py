"""Ticket Lock Verification -- invariants, exploration and CTL.

Walks one contended round of the protocol by hand, explores the bounded
state space of three contenders, and model checks safety and liveness
properties over the resulting state graph.
"""

from ticket_lock import (
    ExplorationConfig,
    ProtocolContractViolation,
    TicketLockState,
    TicketProtocol,
    explore,
    label_states,
)
from ticket_lock.serialization import counterexample_to_dict
from ticket_lock.verification import (
    AF,
    AG,
    EF,
    Atomic,
    Implies,
    ProtocolVerifier,
    check_safety,
    model_check,
)

# =============================================================
# One contended round
# =============================================================
print("=== Contended Round ===")

protocol = TicketProtocol(TicketLockState(["A", "B"]))
verifier = ProtocolVerifier(protocol.domain)

ka = protocol.request_ticket("A")
kb = protocol.request_ticket("B")
print(f"A holds {ka.value}, B holds {kb.value}")

protocol.enter("A", ka)
print(f"State: {protocol.snapshot().describe()}")

try:
    protocol.enter("B", kb)
except ProtocolContractViolation as e:
    print(f"Rejected: {e}")

protocol.exit("A")
protocol.wait("B", kb)
protocol.enter("B", kb)
print(f"State: {protocol.snapshot().describe()}")
print(f"Battery violations: {verifier.verify_state(protocol.snapshot())}")

# =============================================================
# Exhaustive exploration
# =============================================================
print("\n=== Exploration ===")

result = explore(["A", "B", "C"], ExplorationConfig(max_tickets=3))
graph = result.graph
print(f"States: {graph.num_states}")
print(f"Transitions: {graph.num_transitions}")
print(f"Violations: {len(result.violations)}")
print(f"Dead ends: {len(graph.deadlock_states())}")

# =============================================================
# CTL properties
# =============================================================
print("\n=== CTL ===")

labeling = label_states(graph)

# AG mutex -- never two participants in the region
print(f"  AG mutex: {check_safety(graph, 'mutex', labeling).satisfied}")

# AG(awaiting:A -> EF critical:A) -- A can always still get in
can_enter = AG(Implies(Atomic("awaiting:A"), EF(Atomic("critical:A"))))
print(f"  {can_enter}: {model_check(graph, can_enter, labeling).satisfied}")

# AG(awaiting:A -> AF critical:A) -- fails without fairness, WAIT can spin
must_enter = AG(Implies(Atomic("awaiting:A"), AF(Atomic("critical:A"))))
spin = model_check(graph, must_enter, labeling)
print(f"  {must_enter}: {spin.satisfied}")
if spin.counterexample is not None:
    print("  Counterexample:")
    for step in spin.counterexample:
        print(f"    {step}")
    print(f"  As data: {counterexample_to_dict('admission_inevitable', spin.counterexample)}")

print("\nDone.")
