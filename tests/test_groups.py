import pytest
from sqlalchemy.orm import sessionmaker

from amigo.db import create_db_engine, repo
from amigo.db.models import Base, DrawStatus
from amigo.services import groups
from amigo.services.draw import DrawFailure
from amigo.services.groups import GroupError


def create_session():
    engine = create_db_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)()


def make_user(session, telegram_id, username):
    return groups.ensure_user(session, telegram_id, username, username.title(), None)


def open_group(session, member_count=3):
    creator = make_user(session, 100, "host")
    group = groups.create_group(session, -500, "Office", creator, description="Team party")
    members = [creator]
    for index in range(1, member_count):
        user = make_user(session, 100 + index, f"guest{index}")
        groups.join_group(session, group, user)
        members.append(user)
    return group, members


def test_create_group_enrols_creator():
    session = create_session()
    creator = make_user(session, 1, "host")
    group = groups.create_group(session, -42, "Friends", creator)

    participants = groups.list_participants(session, group)
    assert [participant.user_id for participant in participants] == [creator.id]
    assert not participants[0].is_confirmed
    assert group.created_by_user_id == creator.id


def test_create_group_reuses_existing_chat_group():
    session = create_session()
    creator = make_user(session, 1, "host")
    first = groups.create_group(session, -42, "Friends", creator)
    second = groups.create_group(session, -42, "Friends 2026", creator)

    assert first.id == second.id
    assert second.title == "Friends 2026"
    assert repo.count_participants(session, first.id) == 1


def test_join_group_twice_is_refused():
    session = create_session()
    group, members = open_group(session, member_count=2)

    result = groups.join_group(session, group, members[1])
    assert not result.added
    assert repo.count_participants(session, group.id) == 2


def test_confirm_participation():
    session = create_session()
    group, members = open_group(session, member_count=2)

    assert groups.confirm_participation(session, group, members[0])
    assert not groups.confirm_participation(session, group, members[0])


def test_confirm_requires_membership():
    session = create_session()
    group, _ = open_group(session, member_count=2)
    outsider = make_user(session, 999, "outsider")

    with pytest.raises(GroupError):
        groups.confirm_participation(session, group, outsider)


def test_add_restriction_is_directional_and_deduplicated():
    session = create_session()
    group, (alice, bob, _) = open_group(session)

    groups.add_restriction(session, group, alice, bob)
    restrictions = groups.add_restriction(session, group, alice, bob)

    assert restrictions == [bob.id]
    assert repo.get_participant(session, group.id, bob.id).restrictions == []


def test_add_restriction_rejects_self_and_outsiders():
    session = create_session()
    group, (alice, _, _) = open_group(session)
    outsider = make_user(session, 999, "outsider")

    with pytest.raises(GroupError):
        groups.add_restriction(session, group, alice, alice)
    with pytest.raises(GroupError):
        groups.add_restriction(session, group, alice, outsider)


def test_clear_restrictions():
    session = create_session()
    group, (alice, bob, _) = open_group(session)
    groups.add_restriction(session, group, alice, bob)

    groups.clear_restrictions(session, group, alice)
    assert repo.get_participant(session, group.id, alice.id).restrictions == []


def test_draw_group_end_to_end():
    session = create_session()
    group, (alice, bob, carol) = open_group(session)
    for user in (alice, bob, carol):
        groups.confirm_participation(session, group, user)
    groups.add_restriction(session, group, alice, bob)

    assert groups.get_draw_status(session, group) == DrawStatus.NOT_DRAWN
    outcome = groups.draw_group(session, group, seed=8)
    session.commit()

    assert outcome.ok
    # with A not giving to B, the only derangement left is A->C, C->B, B->A
    assert outcome.receiver_for(alice.id) == carol.id
    assert outcome.receiver_for(carol.id) == bob.id
    assert outcome.receiver_for(bob.id) == alice.id
    assert groups.get_draw_status(session, group) == DrawStatus.DRAWN


def test_draw_group_skips_unconfirmed_members():
    session = create_session()
    group, (alice, bob, carol) = open_group(session)
    groups.confirm_participation(session, group, alice)

    outcome = groups.draw_group(session, group)
    assert outcome.reason == DrawFailure.INSUFFICIENT_PARTICIPANTS

    groups.confirm_participation(session, group, bob)
    outcome = groups.draw_group(session, group)
    assert outcome.ok
    assert carol.id not in {pairing.giver_id for pairing in outcome.pairings}


def test_group_is_frozen_after_draw():
    session = create_session()
    group, (alice, bob, carol) = open_group(session)
    groups.confirm_participation(session, group, alice)
    groups.confirm_participation(session, group, bob)
    assert groups.draw_group(session, group).ok
    session.commit()

    latecomer = make_user(session, 777, "late")
    assert not groups.join_group(session, group, latecomer).added
    with pytest.raises(GroupError):
        groups.add_restriction(session, group, alice, bob)
    with pytest.raises(GroupError):
        groups.confirm_participation(session, group, carol)

    again = groups.draw_group(session, group)
    assert again.reason == DrawFailure.ALREADY_DRAWN


def test_reveal_assignment_marks_revealed():
    session = create_session()
    group, (alice, bob, _) = open_group(session)
    groups.confirm_participation(session, group, alice)
    groups.confirm_participation(session, group, bob)

    assert groups.reveal_assignment(session, group, alice) is None
    groups.draw_group(session, group)

    receiver = groups.reveal_assignment(session, group, alice)
    assert receiver.id == bob.id
    assert repo.get_assignment_for_giver(session, group.id, alice.id).revealed
    assert not repo.get_assignment_for_giver(session, group.id, bob.id).revealed


def test_list_groups_for_user():
    session = create_session()
    group, (alice, bob, _) = open_group(session)
    groups.confirm_participation(session, group, alice)
    groups.confirm_participation(session, group, bob)
    groups.draw_group(session, group)

    summaries = groups.list_groups_for_user(session, alice)
    assert len(summaries) == 1
    assert summaries[0].title == "Office"
    assert summaries[0].description == "Team party"
    assert summaries[0].participant_count == 3
    assert summaries[0].is_drawn

    stranger = make_user(session, 555, "stranger")
    assert groups.list_groups_for_user(session, stranger) == []


def test_format_user_label_escapes_html():
    session = create_session()
    named = groups.ensure_user(session, 1, None, "<Ana>", None)
    assert groups.format_user_label(named) == "&lt;Ana&gt;"
    anonymous = groups.ensure_user(session, 2, None, None, None)
    assert groups.format_user_label(anonymous) == "user-2"


def test_find_receiver_does_not_mark_revealed():
    session = create_session()
    group, (alice, bob, _) = open_group(session)
    groups.confirm_participation(session, group, alice)
    groups.confirm_participation(session, group, bob)

    assert groups.find_receiver(session, group, alice) is None
    groups.draw_group(session, group)

    receiver = groups.find_receiver(session, group, alice)
    assert receiver.id == bob.id
    assert not repo.get_assignment_for_giver(session, group.id, alice.id).revealed
