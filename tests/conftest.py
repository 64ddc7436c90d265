# tests/conftest.py

import pytest

import dependencies
from models import CollectionTask, TaskStatus
from store import MemoryLedger, MemoryTaskStore, MemoryUserDirectory

from .fakes import ScriptedOracle


@pytest.fixture()
def task_store():
    return MemoryTaskStore([
        CollectionTask(id=1, location="Jl. Sudirman 12", wasteType="Food Waste", amount="4",
                       date="2026-10-01"),
        CollectionTask(id=2, location="Taman Menteng", wasteType="Plastic Bottles", amount="2.5",
                       date="2026-10-02"),
        CollectionTask(id=3, location="Pasar Baru", wasteType="Electronic Waste", amount="10",
                       date="2026-10-03"),
    ])


@pytest.fixture()
def ledger(task_store):
    return MemoryLedger(task_store)


@pytest.fixture()
def users():
    return MemoryUserDirectory()


@pytest.fixture()
def oracle():
    return ScriptedOracle()


@pytest.fixture()
def wired(monkeypatch, task_store, ledger, users, oracle):
    """
    Points the dependency container at in-memory stores and a scripted oracle,
    with Redis switched off so nothing leaves the process.
    """
    monkeypatch.setattr(dependencies, "_task_store", task_store)
    monkeypatch.setattr(dependencies, "_ledger", ledger)
    monkeypatch.setattr(dependencies, "_user_directory", users)
    monkeypatch.setattr(dependencies, "_oracle", oracle)
    monkeypatch.setattr(dependencies, "_redis_client", None)
    monkeypatch.setattr(dependencies, "_redis_checked", True)


@pytest.fixture()
def app(wired):
    from main import create_app
    return create_app({
        "TESTING": True,
        "JWT_SECRET_KEY": "test-secret",
        "RATELIMIT_ENABLED": False,
        "RATELIMIT_STORAGE_URI": "memory://",
    })


@pytest.fixture()
def client(app):
    return app.test_client()


def signup(client, email, name="Collector", password="correct-horse"):
    response = client.post('/signup', json={"email": email, "name": name, "password": password})
    assert response.status_code == 201, response.get_json()
    return {"Authorization": f"Bearer {response.get_json()['token']}"}


@pytest.fixture()
def alice(client):
    return signup(client, "alice@example.com", "Alice")


@pytest.fixture()
def bob(client):
    return signup(client, "bob@example.com", "Bob")


@pytest.fixture()
def claimed_task(task_store):
    """Task 1 claimed by the first user to sign up (id 1)."""
    return task_store.update_status(1, TaskStatus.IN_PROGRESS, 1)
