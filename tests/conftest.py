import pytest
from datetime import date, datetime
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, Expense, User, get_db
from main import app
from router import get_now

FIXED_NOW = datetime(2024, 3, 20, 12, 0)


@pytest.fixture()
def engine():
    """
    In-memory SQLite engine shared by every connection of one test.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def user(session):
    u = User(username="alice", password="not-a-real-hash")
    session.add(u)
    session.commit()
    return u


@pytest.fixture()
def add_expense(session):
    def _add(amount, category="food", day=date(2024, 3, 10), user_id="alice", **extra):
        expense = Expense(
            user_id=user_id,
            amount=amount,
            category=category,
            description=extra.pop("description", f"{category} purchase"),
            date=day,
            **extra,
        )
        session.add(expense)
        session.commit()
        return expense

    return _add


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: FIXED_NOW
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def register(client):
    def _register(username="alice", password="secret123"):
        resp = client.post(
            "/auth/register", json={"username": username, "password": password}
        )
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Bearer {resp.json()['accessToken']}"}

    return _register


@pytest.fixture()
def auth_headers(register):
    return register()
