from __future__ import annotations

import enum
import random
from dataclasses import dataclass, field
from typing import Hashable, List, Optional, Protocol, Sequence, Tuple

from loguru import logger

from amigo.services.assignment import (
    DEFAULT_MAX_ATTEMPTS,
    Pairing,
    UnsatisfiableConstraintsError,
    generate_assignments,
)
from amigo.services.restrictions import ParticipantRecord, build_restriction_map


class DrawFailure(str, enum.Enum):
    INSUFFICIENT_PARTICIPANTS = "insufficient-participants"
    ALREADY_DRAWN = "already-drawn"
    UNSATISFIABLE_CONSTRAINTS = "unsatisfiable-constraints"
    PERSISTENCE_ERROR = "persistence-error"


class DrawError(RuntimeError):
    reason: DrawFailure


class InsufficientParticipantsError(DrawError):
    reason = DrawFailure.INSUFFICIENT_PARTICIPANTS


class AlreadyDrawnError(DrawError):
    reason = DrawFailure.ALREADY_DRAWN


class UnsatisfiableDrawError(DrawError):
    reason = DrawFailure.UNSATISFIABLE_CONSTRAINTS


class PersistenceError(DrawError):
    reason = DrawFailure.PERSISTENCE_ERROR


class DrawStore(Protocol):
    def fetch_confirmed_participants(self, group_id: int) -> List[ParticipantRecord]:
        ...

    def assignment_exists(self, group_id: int) -> bool:
        ...

    def persist_assignments(
        self,
        group_id: int,
        pairings: Sequence[Pairing],
        seed: Optional[int] = None,
    ) -> None:
        """Write the whole set or nothing.

        Raises AlreadyDrawnError when the group already holds a draw and
        PersistenceError for any other storage failure.
        """


@dataclass(frozen=True)
class DrawOutcome:
    ok: bool
    reason: Optional[DrawFailure] = None
    message: str = ""
    pairings: Tuple[Pairing, ...] = field(default_factory=tuple)
    seed: Optional[int] = None

    @classmethod
    def succeeded(cls, pairings: Sequence[Pairing], seed: int) -> "DrawOutcome":
        return cls(ok=True, message="Draw completed.", pairings=tuple(pairings), seed=seed)

    @classmethod
    def failed(cls, error: DrawError) -> "DrawOutcome":
        return cls(ok=False, reason=error.reason, message=str(error))

    def receiver_for(self, giver_id: Hashable) -> Optional[Hashable]:
        for pairing in self.pairings:
            if pairing.giver_id == giver_id:
                return pairing.receiver_id
        return None


def _run_draw(
    store: DrawStore,
    group_id: int,
    max_attempts: int,
    seed: int,
) -> List[Pairing]:
    participants = store.fetch_confirmed_participants(group_id)
    if len(participants) < 2:
        raise InsufficientParticipantsError(
            "At least 2 confirmed participants are required for the draw."
        )

    restrictions = build_restriction_map(participants)

    if store.assignment_exists(group_id):
        raise AlreadyDrawnError("Draw has already been performed for this group.")

    try:
        pairings = generate_assignments(
            [participant.user_id for participant in participants],
            restrictions,
            max_attempts=max_attempts,
            seed=seed,
        )
    except UnsatisfiableConstraintsError as exc:
        raise UnsatisfiableDrawError(str(exc)) from exc

    store.persist_assignments(group_id, pairings, seed=seed)
    return pairings


def perform_draw(
    store: DrawStore,
    group_id: int,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    seed: Optional[int] = None,
) -> DrawOutcome:
    """Draw a group once and persist the result.

    Every expected failure comes back as a DrawOutcome carrying its
    DrawFailure reason; the store is left untouched in that case.
    """
    if seed is None:
        seed = random.randint(1, 2**31 - 1)

    log = logger.bind(group_id=group_id, seed=seed)
    try:
        pairings = _run_draw(store, group_id, max_attempts, seed)
    except DrawError as exc:
        log.info("Draw failed: {reason}", reason=exc.reason.value)
        return DrawOutcome.failed(exc)

    log.info("Draw persisted for {count} participants", count=len(pairings))
    return DrawOutcome.succeeded(pairings, seed)
