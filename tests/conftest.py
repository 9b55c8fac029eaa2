import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from shared.database import init_db, make_engine, make_session_factory
from quiz_service import crud
from quiz_service.config import Settings
from quiz_service.main import create_app

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)
DURATION = 7200


def seed_bank(db, n_questions=3, n_options=4):
    """Creates n questions; option 0 of each is the correct one."""
    bank = []
    for i in range(n_questions):
        q = crud.create_question(db, f"Question {i + 1}?")
        options = [
            crud.add_option(db, q.id, f"Q{i + 1} option {j + 1}", j == 0, position=j)
            for j in range(n_options)
        ]
        bank.append({
            "id": q.id,
            "options": [o.id for o in options],
            "correct": options[0].id,
            "wrong": options[1].id,
        })
    return bank


@pytest.fixture
def SessionLocal(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'quiz.db'}")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def db(SessionLocal):
    with SessionLocal() as session:
        yield session


@pytest.fixture
def bank(db):
    return seed_bank(db)


@pytest.fixture
def participant(db):
    return crud.create_participant(db, {
        "name": "Asha",
        "class_name": "10",
        "school": "Central High",
        "phone": "9876543210",
    })


@pytest.fixture
def make_client(tmp_path):
    clients = []

    def _make(**overrides):
        settings = Settings(database_url=f"sqlite:///{tmp_path / 'api.db'}", **overrides)
        app = create_app(settings)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for c in clients:
        c.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def api_bank(client):
    with client.app.state.SessionLocal() as session:
        return seed_bank(session)
