"""Participant registry: per-participant phase and held ticket.

The registry applies no protocol policy. Its only rule is that a
participant holds exactly one ticket value at a time; idle participants
hold the domain's zero ticket.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from ticket_lock.domain import Ticket
from ticket_lock.errors import ProtocolContractViolation
from ticket_lock.types import ParticipantId, Phase

logger = logging.getLogger(__name__)


@dataclass
class ParticipantRecord:
    """Mutable state of one participant.

    Attributes:
        phase: Current lifecycle phase
        ticket: Currently held ticket
    """

    phase: Phase
    ticket: Ticket


class ParticipantRegistry:
    """Maps participant identities to their records."""

    def __init__(self, zero: Ticket, participants: Iterable[ParticipantId] = ()):
        self._zero = zero
        self._records: dict[ParticipantId, ParticipantRecord] = {}
        for participant in participants:
            self.add(participant)

    def add(self, participant: ParticipantId) -> ParticipantRecord:
        """Enrol a participant as IDLE holding zero.

        Raises:
            ValueError: If the participant is already enrolled
        """
        if participant in self._records:
            raise ValueError(f"Participant already registered: {participant!r}")
        record = ParticipantRecord(phase=Phase.IDLE, ticket=self._zero)
        self._records[participant] = record
        logger.debug(f"Registered participant: {participant!r}")
        return record

    def remove(self, participant: ParticipantId) -> None:
        """Drop a participant's record.

        Raises:
            ProtocolContractViolation: If the participant is unknown
        """
        self.get(participant)
        del self._records[participant]
        logger.debug(f"Removed participant: {participant!r}")

    def get(self, participant: ParticipantId) -> ParticipantRecord:
        """Return the record for ``participant``.

        Raises:
            ProtocolContractViolation: If the participant is unknown
        """
        try:
            return self._records[participant]
        except KeyError:
            raise ProtocolContractViolation(
                reason="unknown participant", participant=participant
            ) from None

    def phase_of(self, participant: ParticipantId) -> Phase:
        return self.get(participant).phase

    def ticket_of(self, participant: ParticipantId) -> Ticket:
        return self.get(participant).ticket

    def set_phase(self, participant: ParticipantId, phase: Phase) -> None:
        self.get(participant).phase = phase

    def assign(self, participant: ParticipantId, ticket: Ticket) -> None:
        """Replace the participant's ticket."""
        self.get(participant).ticket = ticket

    def release(self, participant: ParticipantId) -> None:
        """Revert the participant's ticket to zero."""
        self.get(participant).ticket = self._zero

    @property
    def participants(self) -> list[ParticipantId]:
        return list(self._records)

    def items(self) -> Iterator[tuple[ParticipantId, ParticipantRecord]]:
        return iter(self._records.items())

    def in_phase(self, phase: Phase) -> list[ParticipantId]:
        """Participants currently in ``phase``."""
        return [p for p, r in self._records.items() if r.phase == phase]

    def __contains__(self, participant: object) -> bool:
        return participant in self._records

    def __len__(self) -> int:
        return len(self._records)


__all__ = [
    "ParticipantRecord",
    "ParticipantRegistry",
]
