from datetime import datetime, timezone
from typing import List

from schemas import Author, Comment, Prompt, ReactionState

ALICE = Author(id="user-alice", name="Alice Example", email="alice@example.com")
BOB = Author(id="user-bob", name="Bob Example", email="bob@example.com")

DEFAULT_PROMPTS: List[Prompt] = [
    Prompt(
        id="seed-summarize-pr",
        title="Summarize a pull request",
        body="You are a release notes assistant. Summarize the PR in three bullet points and call out risks.",
        tags=["typescript", "prompting"],
        author=ALICE,
        tip="Mention risks explicitly and stay concise.",
        created_at=datetime(2024, 5, 2, 9, 30, tzinfo=timezone.utc),
        updated_at=datetime(2024, 5, 2, 9, 30, tzinfo=timezone.utc),
        reactions={"like": ReactionState(users=[BOB.id])},
        comments=[
            Comment(
                id="seed-comment-1",
                author=BOB,
                body="Love this structure for release notes.",
                created_at=datetime(2024, 5, 2, 10, 0, tzinfo=timezone.utc),
            )
        ],
    ),
    Prompt(
        id="seed-unit-test",
        title="Write a unit test",
        body="Given the API contract, produce unit tests that cover the happy path and edge cases.",
        tags=["testing"],
        author=BOB,
        tip="Ask for mocks when external dependencies exist.",
        created_at=datetime(2024, 5, 1, 14, 0, tzinfo=timezone.utc),
        updated_at=datetime(2024, 5, 1, 14, 0, tzinfo=timezone.utc),
        saves=[ALICE.id],
        comments=[
            Comment(
                id="seed-comment-2",
                author=ALICE,
                body="Add examples for auth failures.",
                created_at=datetime(2024, 5, 1, 15, 0, tzinfo=timezone.utc),
            )
        ],
    ),
    Prompt(
        id="seed-log-anomalies",
        title="Summarize API logs for anomalies",
        body="You are an observability expert. Scan the logs below and list anomalies by severity.",
        tags=["ops", "observability", "incidents"],
        author=ALICE,
        tip="Add runbook links and severity scale.",
        created_at=datetime(2024, 4, 28, 8, 15, tzinfo=timezone.utc),
        updated_at=datetime(2024, 4, 29, 11, 45, tzinfo=timezone.utc),
    ),
]
