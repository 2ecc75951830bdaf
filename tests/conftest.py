import itertools

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from main import app
from app.auth import create_session
from app.database import configure_sqlite, get_session
from app.models import User
from app.services import membership

# Create in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = configure_sqlite(create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
))

_user_numbers = itertools.count(1)


@pytest.fixture(name="session")
def session_fixture():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session):
    """Factory for users that never log in with a password (no bcrypt cost)."""
    def make_user(username=None, is_admin=False, phone_no=None):
        number = next(_user_numbers)
        username = username or f"player{number}"
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash="not-a-real-hash",
            phone_no=phone_no,
            is_admin=is_admin
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return make_user


@pytest.fixture(name="make_team")
def make_team_fixture(session: Session, make_user):
    """Create a team and fill it to ``size``; the first user leads."""
    def make_team(size, name="Team"):
        users = [make_user() for _ in range(size)]
        team = membership.create_team(session, users[0].id, name)
        for user in users[1:]:
            membership.join_team(session, user.id, team.invite_code)
        return team, users

    return make_team


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(session: Session):
    """Bearer header carrying a fresh session token for a user."""
    def auth_headers(user):
        token = create_session(session, user.id).token
        return {"Authorization": f"Bearer {token}"}

    return auth_headers
