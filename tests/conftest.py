"""
Shared fixtures for the job tracker tests.

The Firestore backend is replaced by an in-memory store so no test touches
the network.
"""

from pathlib import Path

import pytest

from jobtracker.config import load_config, reset_config
from jobtracker.models import JobApplication, JobApplicationFormData, JobStatus


class FakeStoreError(RuntimeError):
    pass


class InMemoryStore:
    """Dict-backed stand-in for FirestoreStore with failure injection."""

    def __init__(self):
        self.collections: dict[str, dict[str, JobApplication]] = {}
        self.fail_on: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def _check(self, operation: str, user_id: str) -> None:
        self.calls.append((operation, user_id))
        if operation in self.fail_on:
            raise FakeStoreError(f"{operation} failed")

    def _collection(self, user_id: str) -> dict[str, JobApplication]:
        return self.collections.setdefault(user_id, {})

    async def list(self, user_id):
        self._check("list", user_id)
        return list(self._collection(user_id).values())

    async def create(self, user_id, app):
        self._check("create", user_id)
        self._collection(user_id)[app.id] = app

    async def update(self, user_id, app):
        self._check("update", user_id)
        collection = self._collection(user_id)
        if app.id not in collection:
            raise FakeStoreError(f"No document to update: {app.id}")
        collection[app.id] = app

    async def delete(self, user_id, app_id):
        self._check("delete", user_id)
        self._collection(user_id).pop(app_id, None)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def make_app():
    """Factory for stored applications with sensible defaults."""

    def _make(app_id="app-1", **overrides):
        data = {
            "company": "Acme Corp",
            "role": "Backend Engineer",
            "date_applied": "15/01/2024",
            "status": JobStatus.WAITING,
        }
        data.update(overrides)
        return JobApplication(id=app_id, **data)

    return _make


@pytest.fixture
def form():
    return JobApplicationFormData(
        company="Globex",
        role="Data Engineer",
        date_applied="03/02/2024",
        status=JobStatus.INTERVIEWING,
        job_link="https://jobs.example.com/123",
        notes="Referred by Sam",
    )


@pytest.fixture
def config_file(tmp_path) -> Path:
    """Write a config.yaml into a temp dir and load it."""
    reset_config()
    path = tmp_path / "config.yaml"
    path.write_text(
        "firebase_api_key: test-key\n"
        "firebase_project_id: test-project\n"
        f"session_file: {tmp_path / 'session.json'}\n"
    )
    load_config(path)
    yield path
    reset_config()
