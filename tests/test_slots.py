from datetime import date, datetime, timedelta, timezone

import pytest
from sqlmodel import select

from app.errors import (
    AlreadyBooked,
    DuplicateRange,
    InvalidRange,
    NotBookedByTeam,
    NotInTeam,
    NotLeader,
    SlotNotFound,
    SlotUnavailable,
    ValidationError,
)
from app.models import Slot
from app.services import membership
from app.services.queries import get_team_slot
from app.services.slots import (
    book_slot,
    create_slot,
    create_slots_for_day,
    delete_slot,
    get_slot,
    leave_slot,
    list_slots,
)

NOW = datetime(2030, 1, 1, 8, 0)


def future_slot(session, hour=10, minutes=60):
    start = datetime(2030, 1, 1, hour, 0)
    return create_slot(session, start, start + timedelta(minutes=minutes), now=NOW)


def test_create_slot(session):
    slot = future_slot(session)

    assert slot.id is not None
    assert slot.start_time == datetime(2030, 1, 1, 10, 0)
    assert slot.end_time == datetime(2030, 1, 1, 11, 0)
    assert slot.booked_by is None
    assert slot.is_available


def test_create_slot_stores_naive_utc(session):
    plus_two = timezone(timedelta(hours=2))
    slot = create_slot(
        session,
        datetime(2030, 1, 1, 12, 0, tzinfo=plus_two),
        datetime(2030, 1, 1, 13, 0, tzinfo=plus_two),
        now=NOW
    )

    assert slot.start_time == datetime(2030, 1, 1, 10, 0)
    assert slot.end_time == datetime(2030, 1, 1, 11, 0)


@pytest.mark.parametrize(
    "start, end",
    [
        (datetime(2030, 1, 1, 11), datetime(2030, 1, 1, 10)),
        (datetime(2030, 1, 1, 10), datetime(2030, 1, 1, 10)),
        (datetime(2029, 12, 31, 10), datetime(2029, 12, 31, 11)),
    ],
)
def test_create_slot_invalid_range(session, start, end):
    with pytest.raises(InvalidRange):
        create_slot(session, start, end, now=NOW)

    assert list_slots(session) == []


def test_create_slot_duplicate_range(session):
    future_slot(session)

    with pytest.raises(DuplicateRange):
        future_slot(session)

    assert len(list_slots(session)) == 1
    # Session is usable after the failed insert
    assert future_slot(session, hour=12).id is not None


def test_create_slots_for_day(session):
    future_slot(session, hour=9)

    result = create_slots_for_day(session, date(2030, 1, 1), 9, 12, 60, now=NOW)

    assert [(s.start_time.hour, s.end_time.hour) for s in result.created] == [(10, 11), (11, 12)]
    assert result.skipped == [(datetime(2030, 1, 1, 9), datetime(2030, 1, 1, 10), "exists")]
    assert len(list_slots(session)) == 3


def test_create_slots_for_day_skips_past(session):
    result = create_slots_for_day(
        session, date(2030, 1, 1), 8, 10, 30, now=datetime(2030, 1, 1, 9, 0)
    )

    assert [reason for _, _, reason in result.skipped] == ["past", "past"]
    assert [s.start_time for s in result.created] == [
        datetime(2030, 1, 1, 9, 0), datetime(2030, 1, 1, 9, 30)
    ]


@pytest.mark.parametrize(
    "start_hour, end_hour, duration",
    [(12, 9, 60), (9, 9, 60), (9, 24, 60), (9, 10, 0), (9, 10, 90)],
)
def test_create_slots_for_day_validation(session, start_hour, end_hour, duration):
    with pytest.raises(ValidationError):
        create_slots_for_day(session, date(2030, 1, 1), start_hour, end_hour, duration, now=NOW)


def test_delete_slot(session):
    slot_id = future_slot(session).id

    delete_slot(session, slot_id)

    assert session.exec(select(Slot)).all() == []
    with pytest.raises(SlotNotFound):
        delete_slot(session, slot_id)


def test_get_slot_not_found(session):
    with pytest.raises(SlotNotFound):
        get_slot(session, 123)


def test_book_slot(session, make_team):
    team, (leader, _) = make_team(2)
    slot = future_slot(session)

    booked = book_slot(session, slot.id, leader.id)

    assert booked.booked_by == team.id
    assert not booked.is_available
    assert get_team_slot(session, team.id).id == slot.id


def test_book_slot_requires_team(session, make_user):
    user = make_user()
    slot = future_slot(session)

    with pytest.raises(NotInTeam):
        book_slot(session, slot.id, user.id)


def test_book_slot_requires_leader(session, make_team):
    _, (_, member) = make_team(2)
    slot = future_slot(session)

    with pytest.raises(NotLeader):
        book_slot(session, slot.id, member.id)

    assert get_slot(session, slot.id).booked_by is None


def test_book_missing_slot(session, make_team):
    _, (leader,) = make_team(1)

    with pytest.raises(SlotNotFound):
        book_slot(session, 404, leader.id)


def test_slot_held_by_other_team_is_unavailable(session, make_team):
    team_a, (leader_a,) = make_team(1, "A")
    _, (leader_b,) = make_team(1, "B")
    slot = future_slot(session)
    book_slot(session, slot.id, leader_a.id)

    with pytest.raises(SlotUnavailable):
        book_slot(session, slot.id, leader_b.id)

    assert get_slot(session, slot.id).booked_by == team_a.id


def test_team_books_one_slot_at_a_time(session, make_team):
    team, (leader,) = make_team(1)
    first = future_slot(session, hour=10)
    second = future_slot(session, hour=12)
    book_slot(session, first.id, leader.id)

    with pytest.raises(AlreadyBooked):
        book_slot(session, second.id, leader.id)

    assert get_slot(session, second.id).booked_by is None


def test_leave_slot_then_book_another(session, make_team):
    team, (leader,) = make_team(1)
    first = future_slot(session, hour=10)
    second = future_slot(session, hour=12)
    book_slot(session, first.id, leader.id)

    released = leave_slot(session, first.id, leader.id)
    booked = book_slot(session, second.id, leader.id)

    assert released.booked_by is None
    assert booked.booked_by == team.id


def test_leave_slot_of_other_team(session, make_team):
    _, (leader_a,) = make_team(1, "A")
    _, (leader_b,) = make_team(1, "B")
    slot = future_slot(session)
    book_slot(session, slot.id, leader_a.id)

    with pytest.raises(NotBookedByTeam):
        leave_slot(session, slot.id, leader_b.id)
    with pytest.raises(NotBookedByTeam):
        leave_slot(session, 999, leader_a.id)


def test_leave_slot_requires_leader(session, make_team):
    _, (leader, member) = make_team(2)
    slot = future_slot(session)
    book_slot(session, slot.id, leader.id)

    with pytest.raises(NotLeader):
        leave_slot(session, slot.id, member.id)


def test_dissolved_team_releases_slot(session, make_team):
    team, (leader,) = make_team(1)
    slot = future_slot(session)
    book_slot(session, slot.id, leader.id)

    membership.dissolve_team(session, team.id)

    assert get_slot(session, slot.id).booked_by is None


def test_new_leader_can_manage_slot(session, make_team):
    team, (leader, successor) = make_team(2)
    slot = future_slot(session)
    book_slot(session, slot.id, leader.id)

    membership.exit_team(session, leader.id)
    leave_slot(session, slot.id, successor.id)

    assert get_slot(session, slot.id).booked_by is None
