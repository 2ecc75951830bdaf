"""Races between separate connections and requests on a file-backed SQLite database."""
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine, select

import main
from app.auth import create_session
from app.config import TEAM_CAPACITY
from app.database import configure_sqlite, get_session
from app.errors import ServiceError, SlotUnavailable, TeamFull
from app.models import Team, User
from app.services import membership
from app.services.queries import member_count
from app.services.slots import book_slot, create_slot


@pytest.fixture(name="file_engine")
def file_engine_fixture(tmp_path):
    engine = configure_sqlite(create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    ))
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


def add_users(engine, count, prefix):
    with Session(engine) as db:
        users = [
            User(username=f"{prefix}{n}", email=f"{prefix}{n}@example.com", password_hash="x")
            for n in range(count)
        ]
        db.add_all(users)
        db.commit()
        return [user.id for user in users]


def race(engine, calls):
    """Run each call with its own session, all released at once; collect outcomes."""
    barrier = threading.Barrier(len(calls))
    outcomes = []
    lock = threading.Lock()

    def worker(call):
        with Session(engine) as db:
            barrier.wait()
            try:
                call(db)
                outcome = "ok"
            except ServiceError as exc:
                outcome = type(exc)
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker, args=(call,)) for call in calls]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return outcomes


def test_two_teams_race_for_one_slot(file_engine):
    leader_a, leader_b = add_users(file_engine, 2, "leader")
    with Session(file_engine) as db:
        membership.create_team(db, leader_a, "A")
        membership.create_team(db, leader_b, "B")
        slot_id = create_slot(
            db, datetime(2030, 1, 1, 10), datetime(2030, 1, 1, 11), now=datetime(2030, 1, 1)
        ).id

    outcomes = race(file_engine, [
        lambda db: book_slot(db, slot_id, leader_a),
        lambda db: book_slot(db, slot_id, leader_b),
    ])

    assert sorted(outcomes, key=str) == sorted(["ok", SlotUnavailable], key=str)


def test_two_users_race_for_last_place(file_engine):
    member_ids = add_users(file_engine, TEAM_CAPACITY - 1, "member")
    joiner_a, joiner_b = add_users(file_engine, 2, "joiner")
    with Session(file_engine) as db:
        team = membership.create_team(db, member_ids[0], "Almost Full")
        for user_id in member_ids[1:]:
            membership.join_team(db, user_id, team.invite_code)
        team_id, invite_code = team.id, team.invite_code

    outcomes = race(file_engine, [
        lambda db: membership.join_team(db, joiner_a, invite_code),
        lambda db: membership.join_team(db, joiner_b, invite_code),
    ])

    assert sorted(outcomes, key=str) == sorted(["ok", TeamFull], key=str)
    with Session(file_engine) as db:
        assert member_count(db, team_id) == TEAM_CAPACITY


def test_concurrent_requests_all_get_answers(file_engine, monkeypatch):
    monkeypatch.setattr(main, "create_db_and_tables", lambda: None)
    monkeypatch.setattr(main, "ensure_admin", lambda: None)
    user_ids = add_users(file_engine, 16, "caller")
    with Session(file_engine) as db:
        tokens = [create_session(db, user_id).token for user_id in user_ids]

    def get_session_override():
        with Session(file_engine) as db:
            yield db

    barrier = threading.Barrier(len(tokens))

    def call(client, index, token):
        headers = {"Authorization": f"Bearer {token}"}
        barrier.wait()
        if index % 2:
            return client.get("/api/users/me", headers=headers)
        return client.post("/api/teams/create", json={"name": f"Team {index}"}, headers=headers)

    main.app.dependency_overrides[get_session] = get_session_override
    try:
        # One client shares one event loop across every request
        with TestClient(main.app) as client:
            with ThreadPoolExecutor(max_workers=len(tokens)) as pool:
                futures = [
                    pool.submit(call, client, index, token)
                    for index, token in enumerate(tokens)
                ]
                responses = [future.result(timeout=60) for future in futures]
            health = client.get("/health")
    finally:
        main.app.dependency_overrides.clear()

    assert health.status_code == 200
    assert [response.status_code for response in responses[1::2]] == [200] * 8
    assert [response.status_code for response in responses[0::2]] == [201] * 8
    with Session(file_engine) as db:
        assert len(db.exec(select(Team)).all()) == 8
