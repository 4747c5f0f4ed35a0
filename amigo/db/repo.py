from __future__ import annotations

import datetime
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import and_, func, select

from amigo.db.models import Assignment, Draw, Group, Participant, User


def get_user_by_id(session, user_id: int) -> Optional[User]:
    return session.get(User, user_id)


def get_user_by_telegram_id(session, telegram_id: int) -> Optional[User]:
    return session.scalar(select(User).where(User.telegram_id == telegram_id))


def upsert_user(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    display_name: Optional[str],
) -> User:
    user = get_user_by_telegram_id(session, telegram_id)
    if user:
        user.telegram_username = telegram_username
        user.display_name = display_name
        return user

    user = User(
        telegram_id=telegram_id,
        telegram_username=telegram_username,
        display_name=display_name,
    )
    session.add(user)
    session.flush()
    return user


def get_group_by_telegram_id(session, telegram_id: int) -> Optional[Group]:
    return session.scalar(select(Group).where(Group.telegram_id == telegram_id))


def get_group_by_id(session, group_id: int) -> Optional[Group]:
    return session.get(Group, group_id)


def create_group(
    session,
    telegram_id: int,
    title: Optional[str],
    created_by_user_id: Optional[int],
    description: Optional[str] = None,
) -> Group:
    group = Group(
        telegram_id=telegram_id,
        title=title,
        description=description,
        created_by_user_id=created_by_user_id,
        is_active=True,
    )
    session.add(group)
    session.flush()
    return group


def get_participant(session, group_id: int, user_id: int) -> Optional[Participant]:
    return session.scalar(
        select(Participant).where(
            and_(Participant.group_id == group_id, Participant.user_id == user_id)
        )
    )


def add_participant(session, group_id: int, user_id: int) -> Participant:
    participant = Participant(group_id=group_id, user_id=user_id, restrictions=[])
    session.add(participant)
    session.flush()
    return participant


def list_participants(session, group_id: int) -> List[Participant]:
    return list(
        session.scalars(
            select(Participant).where(Participant.group_id == group_id).order_by(Participant.id)
        ).all()
    )


def list_confirmed_participants(session, group_id: int) -> List[Participant]:
    return list(
        session.scalars(
            select(Participant)
            .where(and_(Participant.group_id == group_id, Participant.confirmed_at.is_not(None)))
            .order_by(Participant.id)
        ).all()
    )


def find_participant_by_username(session, group_id: int, username: str) -> Optional[Participant]:
    return session.scalar(
        select(Participant)
        .join(User, Participant.user_id == User.id)
        .where(
            and_(
                Participant.group_id == group_id,
                func.lower(User.telegram_username) == username.lower(),
            )
        )
    )


def count_participants(session, group_id: int) -> int:
    return session.scalar(
        select(func.count()).select_from(Participant).where(Participant.group_id == group_id)
    )


def confirm_participant(session, participant: Participant, confirmed_at: datetime.datetime) -> None:
    participant.confirmed_at = confirmed_at


def update_participant_restrictions(
    session,
    participant: Participant,
    restrictions: Iterable[int],
) -> None:
    # JSON columns only track reassignment, not in-place mutation
    participant.restrictions = sorted(set(restrictions))


def list_groups_for_user(session, user_id: int) -> List[Group]:
    return list(
        session.scalars(
            select(Group)
            .join(Participant, Participant.group_id == Group.id)
            .where(Participant.user_id == user_id)
            .order_by(Group.created_at.desc(), Group.id.desc())
        ).all()
    )


def get_draw(session, group_id: int) -> Optional[Draw]:
    return session.scalar(select(Draw).where(Draw.group_id == group_id))


def assignments_exist(session, group_id: int) -> bool:
    draw_count = session.scalar(
        select(func.count()).select_from(Draw).where(Draw.group_id == group_id)
    )
    if draw_count:
        return True
    return session.scalar(
        select(func.count()).select_from(Assignment).where(Assignment.group_id == group_id)
    ) > 0


def create_draw(
    session,
    group_id: int,
    pairs: Sequence[tuple],
    seed: Optional[int],
) -> Draw:
    draw = Draw(group_id=group_id, seed=seed)
    session.add(draw)
    session.flush()
    session.add_all(
        [
            Assignment(
                group_id=group_id,
                draw_id=draw.id,
                giver_user_id=giver_id,
                receiver_user_id=receiver_id,
            )
            for giver_id, receiver_id in pairs
        ]
    )
    session.flush()
    return draw


def mark_group_drawn(session, group_id: int, drawn_at: datetime.datetime) -> None:
    group = get_group_by_id(session, group_id)
    if group:
        group.drawn_at = drawn_at


def list_assignments(session, group_id: int) -> List[Assignment]:
    return list(
        session.scalars(
            select(Assignment).where(Assignment.group_id == group_id).order_by(Assignment.id)
        ).all()
    )


def get_assignment_for_giver(session, group_id: int, giver_user_id: int) -> Optional[Assignment]:
    return session.scalar(
        select(Assignment).where(
            and_(Assignment.group_id == group_id, Assignment.giver_user_id == giver_user_id)
        )
    )


def mark_assignment_revealed(session, assignment: Assignment) -> None:
    assignment.revealed = True
