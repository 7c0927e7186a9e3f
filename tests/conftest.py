import json
from datetime import datetime, timedelta, timezone
from typing import List

import mongomock
import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from database import get_db
from errors import NotFoundError, ServiceUnavailable
from identity import USERS_KEY, Session
from local_storage import MemoryStorage
from main import app
from sandbox import get_completion_client
from schemas import Author, Comment, Prompt, PromptList, ReactionState, TagOut

BASE_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

JANE = Author(id="user-jane", name="Jane Doe", email="jane.doe@tracknamic.com")


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient()["prompt_lab_test"]


@pytest.fixture
def client(mongo_db):
    """Synchronous TestClient against an in-memory database, no completion provider."""
    app.dependency_overrides[get_db] = lambda: mongo_db
    app.dependency_overrides[get_completion_client] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(mongo_db):
    """Async HTTP client for testing FastAPI endpoints."""
    app.dependency_overrides[get_db] = lambda: mongo_db
    app.dependency_overrides[get_completion_client] = lambda: None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def session(storage):
    storage.set(USERS_KEY, json.dumps([JANE.model_dump()]))
    s = Session(storage, allowed_domains=["tracknamic.com"])
    s.sign_in(JANE.email)
    return s


class Clock:
    """Deterministic clock that advances one minute per call."""

    def __init__(self, start: datetime = BASE_TIME + timedelta(days=1)):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture
def clock():
    return Clock()


class FakePromptService:
    """In-memory stand-in for PromptServiceClient that records every call."""

    def __init__(self, prompts: List[Prompt] = None):
        self.prompts = {p.id: p for p in (prompts or [])}
        self.calls = []
        self.fail = False

    def _call(self, name, *args):
        self.calls.append((name, *args))
        if self.fail:
            raise ServiceUnavailable("connection refused")

    def list_prompts(self, query="", tag=None):
        self._call("list_prompts")
        prompts = sorted(self.prompts.values(), key=lambda p: p.created_at, reverse=True)
        tags = sorted({t for p in prompts for t in p.tags})
        return PromptList(prompts=prompts, tags=[TagOut(name=t) for t in tags])

    def create_prompt(self, prompt):
        self._call("create_prompt", prompt.id)
        self.prompts[prompt.id] = prompt
        return prompt

    def update_prompt(self, prompt_id, fields):
        self._call("update_prompt", prompt_id, fields)
        if prompt_id not in self.prompts:
            raise NotFoundError("Prompt not found")
        self.prompts[prompt_id] = self.prompts[prompt_id].model_copy(update=fields)
        return self.prompts[prompt_id]

    def delete_prompt(self, prompt_id):
        self._call("delete_prompt", prompt_id)
        self.prompts.pop(prompt_id, None)

    def toggle_reaction(self, prompt_id, kind, user_id):
        self._call("toggle_reaction", prompt_id, kind, user_id)

    def toggle_save(self, prompt_id, user_id):
        self._call("toggle_save", prompt_id, user_id)

    def fork_prompt(self, prompt_id, copy):
        self._call("fork_prompt", prompt_id, copy.id)
        return copy

    def add_comment(self, prompt_id, comment):
        self._call("add_comment", prompt_id, comment.id)
        return comment


@pytest.fixture
def service():
    return FakePromptService()


def make_prompt(prompt_id: str, title: str = None, tags=(), minutes: int = 0, likes=(), **extra) -> Prompt:
    created = BASE_TIME + timedelta(minutes=minutes)
    fields = dict(
        id=prompt_id,
        title=title or f"Prompt {prompt_id}",
        body=f"Body of {prompt_id}",
        tags=list(tags),
        author=JANE,
        created_at=created,
        updated_at=created,
        reactions={"like": ReactionState(users=list(likes))} if likes else {},
    )
    fields.update(extra)
    return Prompt(**fields)


def make_comment(comment_id: str, parent_id: str = None, minutes: int = 0) -> Comment:
    return Comment(
        id=comment_id,
        author=JANE,
        body=f"Comment {comment_id}",
        parent_id=parent_id,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )
