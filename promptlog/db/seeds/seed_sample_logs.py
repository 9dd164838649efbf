"""Seed sample prompt logs for demo purposes."""

import logging

from promptlog.storage.base import LogStore

logger = logging.getLogger("promptlog")

SAMPLE_LOGS = [
    {
        "id": "LOG-SAMPLE-001",
        "pr_url": "https://github.com/acme/storefront/pull/412",
        "branch": "feature/oauth-login",
        "author_email": "dev@acme.example",
        "orchestrator": "Cursor",
        "llm": "Claude 3.5 Sonnet",
        "tags": ["auth", "oauth"],
        "content": "# Google sign-in\n\nAsked the assistant to wire the OAuth callback "
                   "and upsert the user on every login.",
    },
    {
        "id": "LOG-SAMPLE-002",
        "pr_url": "https://github.com/acme/storefront/pull/418",
        "branch": "fix/search-escaping",
        "author_email": "dev@acme.example",
        "orchestrator": "GitHub Copilot",
        "llm": "GPT-4",
        "tags": ["search", "bugfix"],
        "content": "# Escape LIKE wildcards\n\nSearch for `50%` matched everything; "
                   "the fix escapes `%` and `_` before building the pattern.",
    },
    {
        "id": "LOG-SAMPLE-003",
        "pr_url": "https://github.com/acme/billing/pull/77",
        "branch": None,
        "author_email": "ops@acme.example",
        "orchestrator": "Aider",
        "llm": "Gemini 1.5 Pro",
        "tags": ["refactor"],
        "content": "# Split invoice service\n\nMoved PDF rendering out of the request path.",
    },
]


def seed_sample_logs(store: LogStore) -> int:
    """Insert the sample logs that are not present yet; return how many were added."""
    created = 0
    for data in SAMPLE_LOGS:
        if store.get(data["id"]) is not None:
            logger.info("Sample log %s already exists, skipping", data["id"])
            continue
        store.create(data)
        created += 1
    return created
