import copy
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.v1.endpoints.chat import get_openai_client
from app.core.config import settings
from app.core.errors import Conflict
from app.main import app
from app.models.user import User
from app.services.database import get_user_store

USER_COLUMNS = [column.key for column in User.__table__.columns]


class FakeUserStore:
    """
    In-memory stand-in for UserStore.

    Rows are kept as deep-copied snapshots so that edits to a loaded User only
    reach the "database" through save(), and save() enforces the same version
    check as the real store.
    """

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.is_available = True
        self.save_calls = 0

    @staticmethod
    def _snapshot(user: User) -> dict:
        return copy.deepcopy({key: getattr(user, key) for key in USER_COLUMNS})

    @staticmethod
    def _load(row: dict) -> User:
        return User(**copy.deepcopy(row))

    async def find_by_id(self, user_id: str):
        row = self.rows.get(user_id)
        return self._load(row) if row else None

    async def find_by_email(self, email: str):
        for row in self.rows.values():
            if row["email"] == email.lower():
                return self._load(row)
        return None

    async def find_all(self):
        return [self._load(row) for row in self.rows.values()]

    async def create(self, user: User):
        if any(row["email"] == user.email for row in self.rows.values()):
            raise Conflict("User with same email already exists")
        self.rows[user.id] = self._snapshot(user)
        return user

    async def save(self, user: User):
        self.save_calls += 1
        row = self.rows.get(user.id)
        if row is None or row["version"] != user.version:
            raise Conflict("User document was modified concurrently, retry the request")
        snapshot = self._snapshot(user)
        snapshot["version"] = user.version + 1
        self.rows[user.id] = snapshot
        user.version += 1
        return user

    def add_user(self, name: str = "Ada", email: str = "ada@example.com", password_hash: str = "x") -> User:
        """Seed a user directly, bypassing signup."""
        user = User.new(name=name, email=email, password_hash=password_hash)
        self.rows[user.id] = self._snapshot(user)
        return user

    def row(self, user_id: str) -> dict:
        return self.rows[user_id]


def completion(content: str | None):
    """Shape of an OpenAI chat completion with a single choice."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(role="assistant", content=content))])


def fine_tune_job(job_id: str = "ftjob-1", status: str = "validating_files", fine_tuned_model: str | None = None):
    return SimpleNamespace(id=job_id, status=status, fine_tuned_model=fine_tuned_model)


@pytest.fixture
def make_completion():
    return completion


@pytest.fixture
def make_job():
    return fine_tune_job


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def fake_store():
    return FakeUserStore()


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion("Hi there!"))
    client.files.create = AsyncMock(return_value=SimpleNamespace(id="file-abc123"))
    client.fine_tuning.jobs.create = AsyncMock(return_value=fine_tune_job())
    client.fine_tuning.jobs.retrieve = AsyncMock(return_value=fine_tune_job(status="running"))
    return client


@pytest.fixture
def client(fake_store, openai_client, tmp_path, monkeypatch):
    """TestClient over HTTPS (session cookies are Secure) with fakes wired in."""
    monkeypatch.setattr(settings, "TRAINING_DATA_DIR", str(tmp_path / "training"))
    app.dependency_overrides[get_user_store] = lambda: fake_store
    app.dependency_overrides[get_openai_client] = lambda: openai_client

    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def signed_in(client):
    """Client with a fresh account and a live session cookie."""
    response = client.post(
        "/api/v1/user/signup",
        json={"name": "Ada", "email": "ada@example.com", "password": "secret"},
    )
    assert response.status_code == 201
    return client
