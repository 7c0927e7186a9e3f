"""
Database Schemas for Prompt Lab

Each Pydantic model that is stored maps to a MongoDB collection with the
lowercase class name:
- Prompt -> "prompt" (comments, reactions and saves are embedded)
- SandboxRun -> "sandbox_run"

The remaining models describe request bodies and client-side state.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, field_validator, model_validator

from config import FEED_PAGE_SIZE
from tagging import REACTION_KIND_PATTERN, canonical_tags


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(ObjectId())


def _as_utc(value: datetime) -> datetime:
    # pymongo hands back naive datetimes that are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Author(BaseModel):
    id: str = Field(..., description="Stable user id from the identity collaborator")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Sign-in email address")


class ReactionState(BaseModel):
    """Who reacted with one reaction kind. The count always equals the number of users."""
    count: int = Field(0, ge=0)
    users: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _count_from_users(self):
        unique = list(dict.fromkeys(self.users))
        if unique != self.users:
            self.users = unique
        if self.count != len(self.users):
            self.count = len(self.users)
        return self


class Comment(BaseModel):
    """
    Comments on prompts
    Stored embedded in the prompt document, newest first.
    """
    id: str
    author: Author
    body: str = Field(..., description="Comment text")
    parent_id: Optional[str] = Field(None, description="Comment this one replies to, if any")
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value):
        return _as_utc(value)


class Prompt(BaseModel):
    """
    Shared prompts
    Collection name: "prompt"
    """
    id: str
    title: str = Field(..., description="Short prompt title")
    body: str = Field(..., description="The prompt text itself")
    tags: List[str] = Field(default_factory=list, description="Lowercase, de-duplicated tags")
    author: Author
    tip: str = Field("", description="What works when using this prompt")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    reactions: Dict[str, ReactionState] = Field(default_factory=dict)
    comments: List[Comment] = Field(default_factory=list)
    saves: List[str] = Field(default_factory=list, description="User ids who bookmarked the prompt")
    forks: int = Field(0, ge=0)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, value):
        return _as_utc(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _canonical(cls, value):
        return canonical_tags(value)

    @field_validator("saves")
    @classmethod
    def _unique_saves(cls, value):
        return list(dict.fromkeys(value))

    def reaction_total(self) -> int:
        return sum(state.count for state in self.reactions.values())

    def reaction_count(self, kind: str) -> int:
        state = self.reactions.get(kind)
        return state.count if state else 0


class SandboxRun(BaseModel):
    """
    Sandbox experiment history
    Collection name: "sandbox_run"
    """
    id: str
    user: Optional[Author] = None
    system: str = ""
    prompt: str
    input: str = ""
    output: str
    model: str
    temperature: float
    max_tokens: int
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value):
        return _as_utc(value)


# Activity and feed state (client side)

class ActivityKind(str, Enum):
    create = "create"
    update = "update"
    delete = "delete"
    reaction = "reaction"
    comment = "comment"


class ActivityEntry(BaseModel):
    id: str
    created_at: datetime = Field(default_factory=utcnow)
    kind: ActivityKind
    message: str
    actor: str


class SortMode(str, Enum):
    newest = "newest"
    updated = "updated"
    reactions = "reactions"


class FeedQueryState(BaseModel):
    page: int = Field(1, ge=1)
    page_size: int = Field(FEED_PAGE_SIZE, ge=1)
    selected_tag: Optional[str] = None
    query: str = ""
    sort: SortMode = SortMode.newest


# Request / response bodies

class PromptCreate(BaseModel):
    id: Optional[str] = Field(None, description="Client generated id, assigned by the server when absent")
    title: str
    body: str
    tags: List[str] = Field(default_factory=list)
    tip: str = ""
    author: Author
    created_at: Optional[datetime] = None


class PromptUpdate(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    tags: Optional[List[str]] = None
    tip: Optional[str] = None


class ReactionToggle(BaseModel):
    kind: str = Field("like", min_length=1, max_length=40, pattern=REACTION_KIND_PATTERN)
    user_id: str = Field(..., min_length=1)


class ReactionResult(BaseModel):
    kind: str
    count: int
    active: bool


class SaveToggle(BaseModel):
    user_id: str = Field(..., min_length=1)


class SaveResult(BaseModel):
    saved: bool
    count: int


class CommentCreate(BaseModel):
    id: Optional[str] = None
    author: Author
    body: str
    parent_id: Optional[str] = None


class TagOut(BaseModel):
    name: str


class PromptList(BaseModel):
    prompts: List[Prompt]
    tags: List[TagOut]


class SandboxRunRequest(BaseModel):
    system: str = ""
    prompt: str = ""
    input: str = ""
    model: Optional[str] = None
    temperature: Optional[float] = Field(None, ge=0, le=2)
    max_tokens: Optional[int] = Field(None, ge=1, le=4096)
    user: Optional[Author] = None


class SandboxRunResult(BaseModel):
    text: str
    run: Optional[SandboxRun] = None


class ForkRequest(BaseModel):
    id: Optional[str] = Field(None, description="Client generated id for the copy")
    author: Author
