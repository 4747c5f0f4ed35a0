from __future__ import annotations

import datetime
from typing import List, Optional, Sequence

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from amigo.db import repo
from amigo.services.assignment import Pairing
from amigo.services.draw import AlreadyDrawnError, PersistenceError
from amigo.services.restrictions import ParticipantRecord


class SqlDrawStore:
    """DrawStore backed by a SQLAlchemy session.

    The unique ``draws.group_id`` constraint is what makes a second writer
    fail even when it passed a stale existence check.
    """

    def __init__(self, session) -> None:
        self.session = session

    def fetch_confirmed_participants(self, group_id: int) -> List[ParticipantRecord]:
        try:
            participants = repo.list_confirmed_participants(self.session, group_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to fetch participants: {exc}") from exc
        return [
            ParticipantRecord(user_id=participant.user_id, restrictions=participant.restrictions)
            for participant in participants
        ]

    def assignment_exists(self, group_id: int) -> bool:
        try:
            return repo.assignments_exist(self.session, group_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to check existing assignments: {exc}") from exc

    def persist_assignments(
        self,
        group_id: int,
        pairings: Sequence[Pairing],
        seed: Optional[int] = None,
    ) -> None:
        """Write the draw, its assignments and ``drawn_at`` under one SAVEPOINT.

        A failure rolls back to the savepoint only, so the caller's other
        pending work in the session survives.
        """
        pairs = [(pairing.giver_id, pairing.receiver_id) for pairing in pairings]
        try:
            with self.session.begin_nested():
                repo.create_draw(self.session, group_id, pairs, seed)
                repo.mark_group_drawn(
                    self.session, group_id, datetime.datetime.now(datetime.timezone.utc)
                )
        except IntegrityError as exc:
            logger.bind(group_id=group_id).warning("Concurrent draw detected, insert rejected")
            raise AlreadyDrawnError("Draw has already been performed for this group.") from exc
        except SQLAlchemyError as exc:
            logger.bind(group_id=group_id).error("Saving the draw failed: {error}", error=str(exc))
            raise PersistenceError(f"Failed to save assignments: {exc}") from exc
