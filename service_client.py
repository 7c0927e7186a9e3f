"""
HTTP clients for the Prompt Service and the Sandbox endpoint.

Both wrap an ``httpx.Client`` so callers (and tests) choose the transport.
Failures are translated into the shared error taxonomy in ``errors``.
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from config import PROMPT_SERVICE_URL
from errors import NotFoundError, PromptLabError, ServiceUnavailable, ValidationError
from schemas import (
    Author,
    Comment,
    Prompt,
    PromptList,
    ReactionResult,
    SandboxRun,
    SandboxRunResult,
    SaveResult,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or response.reason_phrase)
    return response.reason_phrase


class _ServiceClient:
    def __init__(self, http: Optional[httpx.Client] = None, base_url: str = PROMPT_SERVICE_URL, timeout: float = 10.0):
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ServiceUnavailable(f"Prompt service unreachable: {e}") from e

        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                logger.warning("%s %s returned a non-JSON body", method, path)
                raise ServiceUnavailable("Prompt service returned an unreadable response") from e

        message = _error_message(response)
        if response.status_code == 404:
            raise NotFoundError(message)
        if response.status_code in (400, 409, 422):
            raise ValidationError(message)
        if response.status_code >= 500:
            raise ServiceUnavailable(message)
        raise PromptLabError(message)

    def _parse(self, model: Type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except SchemaError as e:
            logger.warning("Unexpected %s payload from prompt service: %s", model.__name__, e)
            raise ServiceUnavailable(f"Prompt service returned an invalid {model.__name__}") from e

    def close(self) -> None:
        self.http.close()


class PromptServiceClient(_ServiceClient):
    def list_prompts(self, query: str = "", tag: Optional[str] = None) -> PromptList:
        params = {}
        if query and query.strip():
            params["q"] = query.strip()
        if tag and tag.strip():
            params["tag"] = tag.strip()
        return self._parse(PromptList, self._request("GET", "/api/prompts", params=params))

    def get_prompt(self, prompt_id: str) -> Prompt:
        return self._parse(Prompt, self._request("GET", f"/api/prompts/{prompt_id}"))

    def create_prompt(self, prompt: Prompt) -> Prompt:
        payload = prompt.model_dump(mode="json", include={"id", "title", "body", "tags", "tip", "author", "created_at"})
        return self._parse(Prompt, self._request("POST", "/api/prompts", json=payload))

    def update_prompt(self, prompt_id: str, fields: Dict[str, Any]) -> Prompt:
        return self._parse(Prompt, self._request("PUT", f"/api/prompts/{prompt_id}", json=fields))

    def delete_prompt(self, prompt_id: str) -> None:
        self._request("DELETE", f"/api/prompts/{prompt_id}")

    def toggle_reaction(self, prompt_id: str, kind: str, user_id: str) -> ReactionResult:
        data = self._request("POST", f"/api/prompts/{prompt_id}/reactions", json={"kind": kind, "user_id": user_id})
        return self._parse(ReactionResult, data)

    def toggle_save(self, prompt_id: str, user_id: str) -> SaveResult:
        data = self._request("POST", f"/api/prompts/{prompt_id}/saves", json={"user_id": user_id})
        return self._parse(SaveResult, data)

    def fork_prompt(self, prompt_id: str, copy: Prompt) -> Prompt:
        payload = copy.model_dump(mode="json", include={"id", "author"})
        return self._parse(Prompt, self._request("POST", f"/api/prompts/{prompt_id}/fork", json=payload))

    def add_comment(self, prompt_id: str, comment: Comment) -> Comment:
        payload = comment.model_dump(mode="json", include={"id", "author", "body", "parent_id"})
        return self._parse(Comment, self._request("POST", f"/api/prompts/{prompt_id}/comments", json=payload))


class SandboxClient(_ServiceClient):
    def run(
        self,
        system: str = "",
        prompt: str = "",
        input: str = "",
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        user: Optional[Author] = None,
    ) -> SandboxRunResult:
        if not prompt.strip():
            raise ValidationError("Prompt cannot be empty")
        payload = {
            "system": system,
            "prompt": prompt,
            "input": input,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "user": user.model_dump() if user else None,
        }
        data = self._request("POST", "/api/sandbox/run", json={k: v for k, v in payload.items() if v is not None})
        return self._parse(SandboxRunResult, data)

    def history(self, limit: int = 10) -> List[SandboxRun]:
        data = self._request("GET", "/api/sandbox/runs", params={"limit": limit})
        return [self._parse(SandboxRun, item) for item in data or []]
