from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Hashable, Iterable

RestrictionMap = Dict[Hashable, FrozenSet[Hashable]]


@dataclass(frozen=True)
class ParticipantRecord:
    """A confirmed participant as seen by the draw.

    ``restrictions`` is kept as loaded from storage and may hold anything.
    """

    user_id: Hashable
    restrictions: Any = field(default=None)


def _is_identifier(value: Any) -> bool:
    return isinstance(value, (int, str)) and not isinstance(value, bool)


def normalize_restrictions(raw: Any) -> FrozenSet[Hashable]:
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return frozenset()
    return frozenset(item for item in raw if _is_identifier(item))


def build_restriction_map(participants: Iterable[Any]) -> RestrictionMap:
    """Map each participant to the receivers they must not give to.

    Restrictions are directional: an entry on A naming B forbids A -> B only.
    """
    return {
        participant.user_id: normalize_restrictions(getattr(participant, "restrictions", None))
        for participant in participants
    }
