"""
Client-side prompt cache.

The store owns the canonical prompt list for one session. Mutations are
applied locally first, written to the local snapshot, then sent to the
Prompt Service. A failed remote write is reported through ``status`` and the
local change is kept; the next ``load()`` replaces everything with what the
server has.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError as SchemaError

from activity_log import ActivityLog
from config import LOCAL_STORE_PATH
from errors import NotFoundError, PromptLabError, ServiceUnavailable, ValidationError
from local_storage import FileStorage
from schemas import ActivityKind, Author, Comment, Prompt, ReactionState, SandboxRun, new_id, utcnow
from seed_data import DEFAULT_PROMPTS
from tagging import canonical_tags, normalize_reaction_kind

logger = logging.getLogger(__name__)

STORAGE_KEY = "tracknamic-sandbox-prompts"
DRAFT_KEY = "tracknamic-prompt-draft"

PROTECTED_FIELDS = {"id", "author", "created_at", "updated_at"}
REMOTE_UPDATE_FIELDS = {"title", "body", "tags", "tip"}


class PromptStore:
    def __init__(
        self,
        service=None,
        storage=None,
        session=None,
        activity: Optional[ActivityLog] = None,
        clock: Callable[[], datetime] = utcnow,
        seed: Optional[Iterable[Prompt]] = None,
    ):
        self.service = service
        self.storage = storage if storage is not None else FileStorage(LOCAL_STORE_PATH)
        self.session = session
        self.activity = activity if activity is not None else ActivityLog()
        self.clock = clock
        self.seed = list(DEFAULT_PROMPTS if seed is None else seed)
        self.selected_id: Optional[str] = None
        self.status = ""
        self._prompts: List[Prompt] = []

    # Reads

    @property
    def prompts(self) -> Tuple[Prompt, ...]:
        return tuple(self._prompts)

    @property
    def tags(self) -> List[str]:
        return sorted({tag for prompt in self._prompts for tag in prompt.tags})

    @property
    def selected(self) -> Optional[Prompt]:
        found = self.get(self.selected_id) if self.selected_id else None
        if found is None and self._prompts:
            return self._prompts[0]
        return found

    def get(self, prompt_id: str) -> Optional[Prompt]:
        index = self._index(prompt_id)
        return None if index is None else self._prompts[index]

    def select(self, prompt_id: str) -> Optional[Prompt]:
        prompt = self.get(prompt_id)
        if prompt is not None:
            self.selected_id = prompt.id
        return prompt

    # Loading

    def load(self) -> None:
        if self.service is not None:
            try:
                result = self.service.list_prompts()
            except ServiceUnavailable as e:
                logger.warning("Prompt service unavailable, using local snapshot: %s", e)
                self.status = "Prompt service unavailable. Showing prompts saved on this device."
            except PromptLabError as e:
                logger.warning("Prompt service rejected the load, using local snapshot: %s", e)
                self.status = f"Could not load prompts: {e.message}. Showing prompts saved on this device."
            else:
                self._replace(result.prompts)
                self._persist_local()
                self.status = ""
                return

        snapshot = self._read_snapshot()
        if snapshot is None:
            self._replace([prompt.model_copy(deep=True) for prompt in self.seed])
            self._persist_local()
        else:
            self._replace(snapshot)

    def _replace(self, prompts: Iterable[Prompt]) -> None:
        self._prompts = list(prompts)
        if self.get(self.selected_id or "") is None:
            self.selected_id = self._prompts[0].id if self._prompts else None

    def _read_snapshot(self) -> Optional[List[Prompt]]:
        raw = self.storage.get(STORAGE_KEY)
        if raw is None:
            return None
        try:
            return [Prompt.model_validate(item) for item in json.loads(raw)]
        except (ValueError, SchemaError) as e:
            logger.warning("Unable to load prompts from local storage: %s", e)
            return None

    def _persist_local(self) -> None:
        self.storage.set(STORAGE_KEY, json.dumps([p.model_dump(mode="json") for p in self._prompts]))

    # Mutations

    def create_prompt(self, title: str, body: str, tags: Union[str, Iterable[str], None] = None, tip: str = "") -> Prompt:
        title, body = (title or "").strip(), (body or "").strip()
        if not title or not body:
            raise ValidationError("Title and body are required")
        author = self._current_user()

        now = self._now()
        prompt = Prompt(
            id=new_id(),
            title=title,
            body=body,
            tags=canonical_tags(tags),
            author=author,
            tip=(tip or "").strip(),
            created_at=now,
            updated_at=now,
        )
        self._prompts.insert(0, prompt)
        self.selected_id = prompt.id
        self._record(ActivityKind.create, f'{author.name} published "{title}"', author.name)
        self._persist(f'save "{title}"', self._remote("create_prompt"), prompt)
        return prompt

    def update_prompt(self, prompt_id: str, fields: Dict[str, Any]) -> Prompt:
        index = self._require_index(prompt_id)
        current = self._prompts[index]
        changes = {k: v for k, v in fields.items() if k not in PROTECTED_FIELDS}
        for key in ("title", "body"):
            if key in changes:
                changes[key] = (changes[key] or "").strip()
                if not changes[key]:
                    raise ValidationError(f"{key.capitalize()} cannot be empty")

        merged = {**current.model_dump(), **changes, "updated_at": self._touch(current)}
        try:
            updated = Prompt.model_validate(merged)
        except SchemaError as e:
            raise ValidationError(str(e)) from e
        self._prompts[index] = updated

        remote_fields = {k: v for k, v in updated.model_dump(mode="json").items() if k in REMOTE_UPDATE_FIELDS & changes.keys()}
        self._record(ActivityKind.update, f'Updated "{updated.title}"', self._actor_name())
        if remote_fields:
            self._persist(f'update "{updated.title}"', self._remote("update_prompt"), prompt_id, remote_fields)
        else:
            self._persist_local()
        return updated

    def delete_prompt(self, prompt_id: str) -> None:
        index = self._index(prompt_id)
        if index is None:
            return
        removed = self._prompts.pop(index)
        if self.selected_id == prompt_id:
            self.selected_id = self._prompts[0].id if self._prompts else None
        self._record(ActivityKind.delete, f'Deleted "{removed.title}"', self._actor_name())
        self._persist(f'delete "{removed.title}"', self._remote("delete_prompt"), prompt_id)

    def toggle_reaction(self, prompt_id: str, kind: str, user_id: str) -> Optional[int]:
        normalized = normalize_reaction_kind(kind)
        if not normalized:
            raise ValidationError(f"Unsupported reaction: {kind!r}")
        kind = normalized
        index = self._index(prompt_id)
        if index is None:
            return None
        prompt = self._prompts[index]
        users = list(prompt.reactions[kind].users) if kind in prompt.reactions else []
        reacted = user_id in users
        if reacted:
            users.remove(user_id)
        else:
            users.append(user_id)

        reactions = {k: v.model_copy(deep=True) for k, v in prompt.reactions.items()}
        reactions[kind] = ReactionState(users=users)
        self._prompts[index] = prompt.model_copy(update={"reactions": reactions, "updated_at": self._touch(prompt)})

        verb = "removed" if reacted else "added"
        self._record(ActivityKind.reaction, f'{verb} {kind} on "{prompt.title}"', self._actor_name())
        self._persist(f"sync {kind}", self._remote("toggle_reaction"), prompt_id, kind, user_id)
        return reactions[kind].count

    def toggle_save(self, prompt_id: str, user_id: str) -> Optional[bool]:
        index = self._index(prompt_id)
        if index is None:
            return None
        prompt = self._prompts[index]
        saved = user_id not in prompt.saves
        saves = [*prompt.saves, user_id] if saved else [u for u in prompt.saves if u != user_id]
        self._prompts[index] = prompt.model_copy(update={"saves": saves, "updated_at": self._touch(prompt)})

        message = f'Saved "{prompt.title}"' if saved else f'Removed "{prompt.title}" from saved'
        self._record(ActivityKind.reaction, message, self._actor_name())
        self._persist("sync bookmark", self._remote("toggle_save"), prompt_id, user_id)
        return saved

    def add_comment(self, prompt_id: str, body: str, parent_id: Optional[str] = None) -> Comment:
        body = (body or "").strip()
        if not body:
            raise ValidationError("Comment cannot be empty")
        index = self._require_index(prompt_id)
        author = self._current_user()

        prompt = self._prompts[index]
        comment = Comment(id=new_id(), author=author, body=body, parent_id=parent_id or None, created_at=self._now())
        self._prompts[index] = prompt.model_copy(
            update={"comments": [comment, *prompt.comments], "updated_at": self._touch(prompt)}
        )
        self._record(ActivityKind.comment, f'{author.name} commented on "{prompt.title}"', author.name)
        self._persist("post comment", self._remote("add_comment"), prompt_id, comment)
        return comment

    def fork_prompt(self, prompt_id: str) -> Prompt:
        index = self._require_index(prompt_id)
        author = self._current_user()
        parent = self._prompts[index]
        self._prompts[index] = parent.model_copy(update={"forks": parent.forks + 1, "updated_at": self._touch(parent)})

        now = self._now()
        copy = Prompt(
            id=new_id(),
            title=f"{parent.title} (fork)",
            body=parent.body,
            tags=list(parent.tags),
            author=author,
            tip=parent.tip,
            created_at=now,
            updated_at=now,
        )
        self._prompts.insert(0, copy)
        self.selected_id = copy.id
        self._record(ActivityKind.create, f'{author.name} forked "{parent.title}"', author.name)
        self._persist(f'fork "{parent.title}"', self._remote("fork_prompt"), prompt_id, copy)
        return copy

    def save_run_as_prompt(self, run: SandboxRun, title: str, tags: Union[str, Iterable[str], None] = None) -> Prompt:
        tip = f"Tested in the sandbox with {run.model} at temperature {run.temperature}"
        return self.create_prompt(title, run.prompt, tags, tip)

    # Drafts

    def save_draft(self, fields: Dict[str, str]) -> None:
        self.storage.set(DRAFT_KEY, json.dumps(fields))

    def load_draft(self) -> Dict[str, str]:
        raw = self.storage.get(DRAFT_KEY)
        return json.loads(raw) if raw else {}

    def clear_draft(self) -> None:
        self.storage.remove(DRAFT_KEY)

    # Helpers

    def _index(self, prompt_id: str) -> Optional[int]:
        return next((i for i, p in enumerate(self._prompts) if p.id == prompt_id), None)

    def _require_index(self, prompt_id: str) -> int:
        index = self._index(prompt_id)
        if index is None:
            raise NotFoundError(f"Prompt {prompt_id} not found")
        return index

    def _now(self) -> datetime:
        return self.clock()

    def _touch(self, prompt: Prompt) -> datetime:
        return max(self._now(), prompt.updated_at)

    def _current_user(self) -> Author:
        user = self.session.current_user() if self.session is not None else None
        if user is None:
            raise ValidationError("Sign in to share prompts")
        return user

    def _actor_name(self) -> str:
        user = self.session.current_user() if self.session is not None else None
        return user.name if user else "Someone"

    def _record(self, kind: ActivityKind, message: str, actor: str) -> None:
        self.activity.record(kind, message, actor)

    def _remote(self, method: str) -> Optional[Callable]:
        return getattr(self.service, method) if self.service is not None else None

    def _persist(self, action: str, call: Optional[Callable], *args) -> None:
        self._persist_local()
        if call is None:
            self.status = "Saved locally."
            return
        try:
            call(*args)
        except PromptLabError as e:
            logger.warning("Could not %s: %s", action, e)
            self.status = f"Saved locally, but could not {action}: {e.message}"
        else:
            self.status = ""
