from __future__ import annotations

import datetime
import html
from dataclasses import dataclass
from typing import List, Optional

from loguru import logger

from amigo.db import DrawStatus, Group, Participant, User, repo
from amigo.db.store import SqlDrawStore
from amigo.services.assignment import DEFAULT_MAX_ATTEMPTS
from amigo.services.draw import DrawOutcome, perform_draw


class GroupError(RuntimeError):
    pass


@dataclass(frozen=True)
class JoinResult:
    added: bool
    message: str
    group: Group
    user: User


@dataclass(frozen=True)
class GroupSummary:
    id: int
    title: Optional[str]
    description: Optional[str]
    is_active: bool
    created_at: datetime.datetime
    participant_count: int
    is_drawn: bool


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def format_user_label(user: User) -> str:
    if user.telegram_username:
        return f"@{html.escape(user.telegram_username)}"
    if user.display_name:
        return html.escape(user.display_name)
    return f"user-{user.telegram_id}"


def ensure_user(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> User:
    display_name = " ".join(filter(None, [first_name, last_name])) or None
    return repo.upsert_user(session, telegram_id, telegram_username, display_name)


def register_private_chat(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> User:
    user = ensure_user(session, telegram_id, telegram_username, first_name, last_name)
    user.has_private_chat = True
    return user


def get_draw_status(session, group: Group) -> DrawStatus:
    if repo.assignments_exist(session, group.id):
        return DrawStatus.DRAWN
    return DrawStatus.NOT_DRAWN


def _require_not_drawn(session, group: Group) -> None:
    if get_draw_status(session, group) == DrawStatus.DRAWN:
        raise GroupError("The draw has already been performed for this group.")


def _require_member(session, group: Group, user: User) -> Participant:
    participant = repo.get_participant(session, group.id, user.id)
    if participant is None:
        raise GroupError(f"{format_user_label(user)} is not part of this group.")
    return participant


def create_group(
    session,
    telegram_id: int,
    title: Optional[str],
    creator: User,
    description: Optional[str] = None,
) -> Group:
    """Create the group for a chat and enrol its creator as first participant.

    An existing group for the chat is reused; its title follows the chat.
    """
    group = repo.get_group_by_telegram_id(session, telegram_id)
    if group is None:
        group = repo.create_group(session, telegram_id, title, creator.id, description)
        logger.bind(group_id=group.id, user_id=creator.id).info("Group created")
    elif title and group.title != title:
        group.title = title

    if repo.get_participant(session, group.id, creator.id) is None:
        repo.add_participant(session, group.id, creator.id)
    return group


def join_group(session, group: Group, user: User) -> JoinResult:
    if get_draw_status(session, group) == DrawStatus.DRAWN:
        return JoinResult(False, "This Secret Santa has already been drawn.", group, user)
    if not group.is_active:
        return JoinResult(False, "This Secret Santa is no longer active.", group, user)
    if repo.get_participant(session, group.id, user.id) is not None:
        return JoinResult(False, "You are already in this Secret Santa game!", group, user)

    repo.add_participant(session, group.id, user.id)
    return JoinResult(True, "You have joined the Secret Santa game! Send /confirm to take part in the draw.", group, user)


def confirm_participation(session, group: Group, user: User) -> bool:
    """Mark the user's participation as confirmed.

    Returns False when it was already confirmed.
    """
    participant = _require_member(session, group, user)
    if participant.is_confirmed:
        return False
    _require_not_drawn(session, group)
    repo.confirm_participant(session, participant, _now())
    return True


def add_restriction(session, group: Group, giver: User, receiver: User) -> List[int]:
    if giver.id == receiver.id:
        raise GroupError("You cannot exclude yourself.")
    _require_not_drawn(session, group)
    participant = _require_member(session, group, giver)
    _require_member(session, group, receiver)

    current = participant.restrictions if isinstance(participant.restrictions, list) else []
    repo.update_participant_restrictions(session, participant, [*current, receiver.id])
    return list(participant.restrictions)


def clear_restrictions(session, group: Group, user: User) -> None:
    _require_not_drawn(session, group)
    participant = _require_member(session, group, user)
    repo.update_participant_restrictions(session, participant, [])


def list_participants(session, group: Group) -> List[Participant]:
    return repo.list_participants(session, group.id)


def list_groups_for_user(session, user: User) -> List[GroupSummary]:
    return [
        GroupSummary(
            id=group.id,
            title=group.title,
            description=group.description,
            is_active=group.is_active,
            created_at=group.created_at,
            participant_count=repo.count_participants(session, group.id),
            is_drawn=get_draw_status(session, group) == DrawStatus.DRAWN,
        )
        for group in repo.list_groups_for_user(session, user.id)
    ]


def draw_group(
    session,
    group: Group,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    seed: Optional[int] = None,
) -> DrawOutcome:
    return perform_draw(SqlDrawStore(session), group.id, max_attempts=max_attempts, seed=seed)


def find_receiver(session, group: Group, user: User) -> Optional[User]:
    """Return the user's receiver without touching the revealed flag."""
    assignment = repo.get_assignment_for_giver(session, group.id, user.id)
    if assignment is None:
        return None
    return repo.get_user_by_id(session, assignment.receiver_user_id)


def reveal_assignment(session, group: Group, user: User) -> Optional[User]:
    """Flag the user's assignment as revealed and return the receiver.

    Call it only once the receiver has actually been shown to the user.
    """
    assignment = repo.get_assignment_for_giver(session, group.id, user.id)
    if assignment is None:
        return None
    if not assignment.revealed:
        repo.mark_assignment_revealed(session, assignment)
        logger.bind(group_id=group.id, user_id=user.id).info("Assignment revealed")
    return repo.get_user_by_id(session, assignment.receiver_user_id)
