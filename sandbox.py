import logging
from typing import Optional

from openai import OpenAI, OpenAIError

from config import OPENAI_API_KEY, SANDBOX_MODEL
from errors import ServiceUnavailable, ValidationError
from schemas import SandboxRunRequest

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 512
PREVIEW_HEADER = "AI preview (no provider configured)"

_openai = OpenAI(api_key=OPENAI_API_KEY) if OPENAI_API_KEY else None


def get_completion_client() -> Optional[OpenAI]:
    return _openai


def build_messages(request: SandboxRunRequest) -> list:
    messages = []
    if request.system.strip():
        messages.append({"role": "system", "content": request.system.strip()})

    user_parts = [request.prompt.strip()]
    if request.input.strip():
        user_parts.append(f"Input:\n{request.input.strip()}")
    messages.append({"role": "user", "content": "\n\n".join(user_parts)})
    return messages


def preview_response(request: SandboxRunRequest) -> str:
    combined = "\n\n".join(part for part in (request.system, request.prompt, request.input) if part)
    return f"{PREVIEW_HEADER}\n\n{combined.upper()}"


def generate_sandbox_response(request: SandboxRunRequest, client: Optional[OpenAI] = None) -> str:
    if not request.prompt.strip():
        raise ValidationError("Prompt cannot be empty")

    if client is None:
        return preview_response(request)

    try:
        completion = client.chat.completions.create(
            model=request.model or SANDBOX_MODEL,
            messages=build_messages(request),
            temperature=request.temperature if request.temperature is not None else DEFAULT_TEMPERATURE,
            max_tokens=request.max_tokens or DEFAULT_MAX_TOKENS,
        )
    except OpenAIError as e:
        logger.exception("Completion provider failed")
        raise ServiceUnavailable("Unable to run the sandbox right now. Please try again.") from e

    if not completion.choices or not completion.choices[0].message.content:
        return "No response returned from model."
    return completion.choices[0].message.content
