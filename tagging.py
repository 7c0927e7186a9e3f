import re
from typing import Iterable, List, Union

_WHITESPACE = re.compile(r"\s+")


def normalize_tags(raw: str) -> List[str]:
    """Split a comma separated list, trimming segments and dropping empty ones.

    Order is preserved and duplicates are kept.
    """
    return [segment.strip() for segment in (raw or "").split(",") if segment.strip()]


def normalize_tag(raw: str) -> str:
    return _WHITESPACE.sub("-", (raw or "").strip().lower())


def canonical_tags(raw: Union[str, Iterable[str], None]) -> List[str]:
    """Tags as stored on a prompt: lowercased, hyphenated, de-duplicated in first-seen order."""
    if raw is None:
        return []
    items = normalize_tags(raw) if isinstance(raw, str) else list(raw)
    seen = []
    for item in items:
        tag = normalize_tag(item)
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def normalize_query(raw: str) -> str:
    return (raw or "").strip().casefold()


REACTION_KIND_PATTERN = r"^[a-z0-9_-]+$"
_REACTION_KIND = re.compile(REACTION_KIND_PATTERN)


def normalize_reaction_kind(raw: str) -> str:
    """Reaction kinds are matched the way the Prompt Service stores them. Returns "" when unusable."""
    kind = normalize_tag(raw)
    return kind if _REACTION_KIND.match(kind) and len(kind) <= 40 else ""
