"""Serialization for tickets, steps, snapshots and traces.

Round-trip guarantee: ``from_dict(to_dict(x)) == x`` for all supported
types, provided participant ids are JSON scalars (str or int). Relations
are written as lists sorted by participant so output is deterministic,
which keeps exported counterexample traces diffable.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ticket_lock.domain import Ticket
from ticket_lock.snapshot import Step, TicketLockSnapshot, participant_sort_key
from ticket_lock.types import ActionKind, Phase

# ── Tickets and steps ──────────────────────────────────────────────────


def ticket_to_dict(ticket: Ticket) -> dict[str, Any]:
    return {"value": ticket.value}


def ticket_from_dict(data: dict[str, Any]) -> Ticket:
    return Ticket(int(data["value"]))


def step_to_dict(step: Step) -> dict[str, Any]:
    """Serialize a step.

    Returns:
        ``{"action": ..., "participant": ..., "ticket": int | None}``
    """
    return {
        "action": step.action.value,
        "participant": step.participant,
        "ticket": step.ticket.value if step.ticket is not None else None,
    }


def step_from_dict(data: dict[str, Any]) -> Step:
    """Deserialize a step.

    Raises:
        ValueError: If the action is unknown
    """
    ticket = data.get("ticket")
    return Step(
        action=ActionKind(data["action"]),
        participant=data["participant"],
        ticket=Ticket(int(ticket)) if ticket is not None else None,
    )


# ── Snapshots ──────────────────────────────────────────────────────────


def snapshot_to_dict(snapshot: TicketLockSnapshot) -> dict[str, Any]:
    """Serialize a snapshot, preserving malformed relations as-is."""

    def key(pair: tuple[Any, Any]) -> tuple[tuple[str, str], str]:
        participant, value = pair
        return participant_sort_key(participant), str(value)

    return {
        "next_ticket": snapshot.next_ticket.value,
        "serving": snapshot.serving.value,
        "zero": snapshot.zero.value,
        "phases": [[p, phase.value] for p, phase in sorted(snapshot.phases, key=key)],
        "holdings": [[p, k.value] for p, k in sorted(snapshot.holdings, key=key)],
    }


def snapshot_from_dict(data: dict[str, Any]) -> TicketLockSnapshot:
    """Deserialize a snapshot.

    Raises:
        KeyError: If a required field is missing
        ValueError: If a phase name is unknown
    """
    return TicketLockSnapshot.build(
        next_ticket=Ticket(int(data["next_ticket"])),
        serving=Ticket(int(data["serving"])),
        phases=((p, Phase(phase)) for p, phase in data["phases"]),
        holdings=((p, Ticket(int(k))) for p, k in data["holdings"]),
        zero=Ticket(int(data.get("zero", 0))),
    )


# ── Traces ─────────────────────────────────────────────────────────────


def trace_to_dict(trace: Iterable[Step]) -> list[dict[str, Any]]:
    return [step_to_dict(step) for step in trace]


def trace_from_dict(data: Iterable[dict[str, Any]]) -> tuple[Step, ...]:
    return tuple(step_from_dict(d) for d in data)


def counterexample_to_dict(
    invariant_name: str,
    trace: Iterable[Step],
    final_state: TicketLockSnapshot | None = None,
) -> dict[str, Any]:
    """Bundle a violated invariant with the trace that reaches it."""
    data: dict[str, Any] = {
        "invariant": invariant_name,
        "trace": trace_to_dict(trace),
    }
    if final_state is not None:
        data["final_state"] = snapshot_to_dict(final_state)
    return data


__all__ = [
    "counterexample_to_dict",
    "snapshot_from_dict",
    "snapshot_to_dict",
    "step_from_dict",
    "step_to_dict",
    "ticket_from_dict",
    "ticket_to_dict",
    "trace_from_dict",
    "trace_to_dict",
]
