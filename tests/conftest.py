import os

# Point the app at a throwaway in-memory database before anything imports settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NOTIFICATION_SCHEDULER_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import classmate.models  # noqa: F401,E402
from classmate.database import Base, SessionLocal, engine, get_db  # noqa: E402
from classmate.services.rbac_service import seed_permissions  # noqa: E402
from main import app  # noqa: E402

from helpers import bearer, register, use_utc  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_permissions(db)
    finally:
        db.close()
    yield


@pytest.fixture
def foreign_keys():
    """Enforce SQLite foreign keys on the shared in-memory connection"""
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
    yield
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    def override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth(client):
    """Registered admin with the company clock set to UTC"""
    body = register(client)
    headers = bearer(body["token"])
    use_utc(client, headers)
    return {"headers": headers, "user": body["user"], "refresh_token": body["refresh_token"]}


@pytest.fixture
def headers(auth):
    return auth["headers"]
