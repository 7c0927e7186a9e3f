from collections import Counter
from typing import List, NamedTuple, Optional, Sequence

from schemas import Prompt


class TagCount(NamedTuple):
    name: str
    count: int


def top_by_field(prompts: Sequence[Prompt], field: str, limit: int = 5) -> List[Prompt]:
    return sorted(prompts, key=lambda p: getattr(p, field), reverse=True)[:limit]


def top_prompts(prompts: Sequence[Prompt], limit: int = 5) -> List[Prompt]:
    """Most reacted prompts, newest first among equals."""
    return sorted(prompts, key=lambda p: (p.reaction_total(), p.created_at), reverse=True)[:limit]


def recently_updated(prompts: Sequence[Prompt], limit: int = 5) -> List[Prompt]:
    return top_by_field(prompts, "updated_at", limit)


def trending_tags(prompts: Sequence[Prompt], limit: int = 8) -> List[TagCount]:
    counts = Counter(tag for prompt in prompts for tag in prompt.tags)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [TagCount(name, count) for name, count in ranked[:limit]]


def featured_prompt(prompts: Sequence[Prompt], kind: str = "like") -> Optional[Prompt]:
    if not prompts:
        return None
    return max(prompts, key=lambda p: (p.reaction_count(kind), p.created_at))
