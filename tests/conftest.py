import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_access_token
from config import Settings
from main import create_app

SECRET = "test-secret"


@pytest.fixture
def db():
    return mongomock.MongoClient()["planner_test"]


@pytest.fixture
def settings():
    return Settings(identity_key=SECRET, database_name="planner_test", schedule_horizon_days=1)


@pytest.fixture
def client(settings, db):
    app = create_app(settings, db=db)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def headers_for():
    def make(subject="user-a", **claims):
        token = create_access_token({"sub": subject, **claims}, SECRET)
        return {"Authorization": f"Bearer {token}"}
    return make
