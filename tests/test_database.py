import pytest
from sqlalchemy import event
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import select

from app.database import insert_memberships, lock_for_update, transaction
from app.errors import InternalError, StoreTimeout, TeamFull
from app.models import Slot, Team, TeamMembership, User
from app.services.queries import member_count


class SqliteBusy(Exception):
    sqlite_errorcode = 5


class PgLockTimeout(Exception):
    pgcode = "55P03"


class PgSyntaxError(Exception):
    pgcode = "42601"


@pytest.mark.parametrize("model", [User, Team, Slot])
def test_lock_for_update_renders_row_lock_on_postgres(model):
    statement = lock_for_update(select(model).where(model.id == 1))

    sql = str(statement.compile(dialect=postgresql.dialect()))

    assert "FOR UPDATE" in sql


def test_transaction_commits(session):
    with transaction(session):
        session.add(Team(name="Committed", invite_code="COMMIT0001"))

    session.rollback()
    assert session.exec(select(Team)).one().name == "Committed"


def test_transaction_rolls_back_domain_errors(session):
    with pytest.raises(TeamFull):
        with transaction(session):
            session.add(Team(name="Lost", invite_code="ROLLBACK01"))
            session.flush()
            raise TeamFull()

    assert session.exec(select(Team)).all() == []


@pytest.mark.parametrize("orig", [SqliteBusy("database is locked"), PgLockTimeout("lock timeout")])
def test_lock_timeouts_are_retryable(session, orig):
    with pytest.raises(StoreTimeout) as excinfo:
        with transaction(session):
            raise OperationalError("SELECT 1", {}, orig)

    assert excinfo.value.retryable is True
    assert excinfo.value.status_code == 503


def test_other_store_errors_are_internal(session):
    with pytest.raises(InternalError) as excinfo:
        with transaction(session):
            raise OperationalError("SELECT 1", {}, PgSyntaxError("syntax error"))
    assert not isinstance(excinfo.value, StoreTimeout)

    with pytest.raises(InternalError):
        with transaction(session):
            raise IntegrityError("INSERT", {}, Exception("constraint failed"))


def test_insert_memberships_skips_existing_rows(session, make_user):
    team = Team(name="Upsert", invite_code="UPSERT0001")
    session.add(team)
    session.commit()
    first, second = make_user(), make_user()

    with transaction(session):
        insert_memberships(session, team.id, [first.id])
    with transaction(session):
        insert_memberships(session, team.id, [first.id, second.id])

    assert member_count(session, team.id) == 2
    rows = session.exec(select(TeamMembership).order_by(TeamMembership.id)).all()
    assert [row.user_id for row in rows] == [first.id, second.id]


def test_only_units_of_work_take_the_write_lock(session):
    begins = []

    def record_begin(conn, cursor, statement, parameters, context, executemany):
        if statement.startswith("BEGIN"):
            begins.append(statement)

    bind = session.get_bind()
    event.listen(bind, "before_cursor_execute", record_begin)
    try:
        session.exec(select(Team)).all()
        with transaction(session):
            session.add(Team(name="Writer", invite_code="WRITER0001"))
        session.exec(select(Team)).all()
    finally:
        event.remove(bind, "before_cursor_execute", record_begin)

    assert begins == ["BEGIN", "BEGIN IMMEDIATE", "BEGIN"]
