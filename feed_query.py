"""
Derives the visible feed from the canonical prompt list.

The query state is immutable; the reducers below return a new state so the
caller decides when to recompute. Pagination accumulates: page N shows the
first N pages, so loading more never reshuffles prompts already on screen.
"""

from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

from schemas import FeedQueryState, Prompt, SortMode
from tagging import normalize_query, normalize_tag


class FeedPage(NamedTuple):
    items: List[Prompt]
    has_more: bool
    total: int


def matches(prompt: Prompt, query: str = "", tag: Optional[str] = None) -> bool:
    if tag and tag not in prompt.tags:
        return False
    needle = normalize_query(query)
    if not needle:
        return True
    haystack = (prompt.title, prompt.body, prompt.author.name, prompt.tip)
    return any(needle in (field or "").casefold() for field in haystack)


SORT_KEYS: Dict[SortMode, Callable[[Prompt], object]] = {
    SortMode.newest: lambda p: p.created_at,
    SortMode.updated: lambda p: p.updated_at,
    SortMode.reactions: lambda p: p.reaction_total(),
}


def sort_prompts(prompts: Sequence[Prompt], mode: SortMode) -> List[Prompt]:
    # sorted() is stable with reverse=True, so ties keep their input order
    return sorted(prompts, key=SORT_KEYS[SortMode(mode)], reverse=True)


def query_feed(prompts: Sequence[Prompt], state: FeedQueryState) -> FeedPage:
    filtered = [p for p in prompts if matches(p, state.query, state.selected_tag)]
    ordered = sort_prompts(filtered, state.sort)
    visible = state.page * state.page_size
    return FeedPage(items=ordered[:visible], has_more=visible < len(ordered), total=len(ordered))


# Reducers

def set_query(state: FeedQueryState, query: str) -> FeedQueryState:
    return state.model_copy(update={"query": (query or "").strip(), "page": 1})


def set_tag(state: FeedQueryState, tag: Optional[str]) -> FeedQueryState:
    return state.model_copy(update={"selected_tag": normalize_tag(tag) if tag else None, "page": 1})


def toggle_tag(state: FeedQueryState, tag: str) -> FeedQueryState:
    """Selecting the active tag again clears the filter."""
    if tag and normalize_tag(tag) == state.selected_tag:
        return set_tag(state, None)
    return set_tag(state, tag)


def set_sort(state: FeedQueryState, sort: SortMode) -> FeedQueryState:
    return state.model_copy(update={"sort": SortMode(sort)})


def load_more(state: FeedQueryState) -> FeedQueryState:
    return state.model_copy(update={"page": state.page + 1})


def clear_filters(state: FeedQueryState) -> FeedQueryState:
    return state.model_copy(update={"query": "", "selected_tag": None, "page": 1})
