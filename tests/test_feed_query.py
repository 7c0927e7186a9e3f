from datetime import timedelta

import pytest

from config import FEED_PAGE_SIZE
from conftest import BASE_TIME, make_prompt
from feed_query import clear_filters, load_more, query_feed, set_query, set_sort, set_tag, toggle_tag
from schemas import Author, FeedQueryState, SortMode


@pytest.fixture
def prompts():
    return [
        make_prompt("a", title="Release notes", tags=["writing"], minutes=1, likes=["u1"]),
        make_prompt("b", title="Log anomalies", tags=["ops"], minutes=5, likes=["u1", "u2"]),
        make_prompt("c", title="Unit tests", tags=["testing", "ops"], minutes=3, tip="Mention mocks"),
        make_prompt("d", title="Incident recap", tags=["ops"], minutes=2, likes=["u3"]),
        make_prompt(
            "e",
            title="Standup summary",
            tags=["writing"],
            minutes=4,
            author=Author(id="user-kim", name="Kim Park", email="kim@tracknamic.com"),
        ),
    ]


def ids(page):
    return [p.id for p in page.items]


def test_newest_sort_and_first_page(prompts):
    page = query_feed(prompts, FeedQueryState(page_size=2))
    assert ids(page) == ["b", "e"]
    assert page.has_more is True
    assert page.total == 5


def test_pagination_accumulates_without_reshuffling(prompts):
    state = FeedQueryState(page_size=2)
    first = query_feed(prompts, state)
    second = query_feed(prompts, load_more(state))
    third = query_feed(prompts, load_more(load_more(state)))

    assert ids(second)[:2] == ids(first)
    assert ids(third)[:4] == ids(second)
    assert len(third.items) == 5
    assert third.has_more is False


@pytest.mark.parametrize("page", [1, 2, 3, 4])
def test_length_never_exceeds_page_window(prompts, page):
    state = FeedQueryState(page=page, page_size=2)
    result = query_feed(prompts, state)
    assert len(result.items) <= page * 2
    assert result.has_more == (page * 2 < len(prompts))


def test_filter_by_tag(prompts):
    page = query_feed(prompts, FeedQueryState(selected_tag="ops"))
    assert ids(page) == ["b", "c", "d"]


def test_query_matches_title_body_author_and_tip(prompts):
    assert ids(query_feed(prompts, FeedQueryState(query="RELEASE"))) == ["a"]
    assert ids(query_feed(prompts, FeedQueryState(query="body of c"))) == ["c"]
    assert ids(query_feed(prompts, FeedQueryState(query="kim park"))) == ["e"]
    assert ids(query_feed(prompts, FeedQueryState(query="mocks"))) == ["c"]
    assert ids(query_feed(prompts, FeedQueryState(query="nothing like this"))) == []


def test_query_and_tag_combine(prompts):
    page = query_feed(prompts, FeedQueryState(query="recap", selected_tag="ops"))
    assert ids(page) == ["d"]


def test_reactions_sort_is_stable_on_ties(prompts):
    page = query_feed(prompts, FeedQueryState(sort=SortMode.reactions, page_size=10))
    # a and d both have one like; a comes first in the input
    assert ids(page) == ["b", "a", "d", "c", "e"]


def test_updated_sort(prompts):
    prompts[0] = prompts[0].model_copy(update={"updated_at": BASE_TIME + timedelta(hours=1)})
    page = query_feed(prompts, FeedQueryState(sort=SortMode.updated, page_size=1))
    assert ids(page) == ["a"]


def test_query_and_tag_changes_reset_page():
    state = FeedQueryState(page=3)
    assert set_query(state, " ops ").page == 1
    assert set_query(state, " ops ").query == "ops"
    assert set_tag(state, "Ops").page == 1
    assert set_tag(state, "Ops").selected_tag == "ops"


def test_sort_change_keeps_page():
    state = set_sort(FeedQueryState(page=3), "reactions")
    assert state.page == 3
    assert state.sort == SortMode.reactions


def test_toggle_tag_clears_when_repeated():
    state = toggle_tag(FeedQueryState(), "ops")
    assert state.selected_tag == "ops"
    assert toggle_tag(state, "ops").selected_tag is None
    assert toggle_tag(state, "ai").selected_tag == "ai"


def test_clear_filters():
    state = FeedQueryState(page=2, query="x", selected_tag="ops", sort=SortMode.updated)
    cleared = clear_filters(state)
    assert (cleared.page, cleared.query, cleared.selected_tag, cleared.sort) == (1, "", None, SortMode.updated)


def test_reducers_do_not_mutate_input():
    state = FeedQueryState()
    load_more(state)
    set_query(state, "x")
    assert state == FeedQueryState()


def test_page_size_defaults_to_configured_value():
    assert FeedQueryState().page_size == FEED_PAGE_SIZE
