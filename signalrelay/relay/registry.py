"""
In-memory registry of connected participants.
"""
import datetime
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from ..core.exceptions import DuplicateParticipant
from .connection import Connection


def _now() -> datetime.datetime:
    return datetime.datetime.now()


@dataclass(eq=False)
class Participant:
    """One connected peer. Only ``display_name`` changes after creation."""

    id: str
    connection: Connection
    display_name: Optional[str] = None
    connected_at: datetime.datetime = field(default_factory=_now)
    last_seen: datetime.datetime = field(default_factory=_now)

    @property
    def is_named(self) -> bool:
        return self.display_name is not None

    def roster_entry(self) -> Dict[str, str]:
        return {
            'userId': self.id,
            'userName': self.display_name if self.display_name is not None else ''
        }


class ParticipantRegistry:
    """Maps participant id to Participant.

    All methods are synchronous, so on a single event loop a mutation can
    never interleave with another mutation or a roster snapshot.
    """

    def __init__(self):
        self._participants: Dict[str, Participant] = {}

    def add(self, participant: Participant):
        if participant.id in self._participants:
            raise DuplicateParticipant("Participant id already registered", {"participant_id": participant.id})
        self._participants[participant.id] = participant

    def get(self, participant_id: Optional[str]) -> Optional[Participant]:
        if participant_id is None:
            return None
        return self._participants.get(participant_id)

    def remove(self, participant_id: str) -> Optional[Participant]:
        """Remove and return a participant; None if it was already gone."""
        return self._participants.pop(participant_id, None)

    def rename(self, participant_id: Optional[str], display_name: Optional[str]) -> bool:
        participant = self.get(participant_id)
        if participant is None:
            return False
        participant.display_name = display_name
        return True

    def touch(self, participant_id: Optional[str]):
        participant = self.get(participant_id)
        if participant is not None:
            participant.last_seen = _now()

    def roster(self) -> List[Dict[str, str]]:
        """Snapshot of every participant, named or not."""
        return [participant.roster_entry() for participant in self._participants.values()]

    def participants(self) -> List[Participant]:
        """Snapshot list, safe to iterate across awaits."""
        return list(self._participants.values())

    def ids(self) -> List[str]:
        return list(self._participants.keys())

    def __len__(self) -> int:
        return len(self._participants)

    def __contains__(self, participant_id) -> bool:
        return participant_id in self._participants

    def __iter__(self) -> Iterator[Participant]:
        return iter(self.participants())
