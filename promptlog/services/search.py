"""Substring search shared by both storage backends.

The in-memory store scans with :func:`matches`. The SQL store narrows the
candidate rows with :func:`sql_prefilter` and then applies :func:`matches`
as well, so a query returns the same records whichever backend holds them.
"""

from typing import Iterable, Optional

from sqlalchemy import or_

from promptlog.domain import PromptLog

LIKE_ESCAPE = "\\"


def searchable_values(log: PromptLog) -> Iterable[str]:
    yield log.id
    yield log.pr_url
    yield log.author_email
    yield log.orchestrator
    yield log.llm
    if log.branch:
        yield log.branch
    yield log.content
    yield from log.tags


def matches(log: PromptLog, query: str) -> bool:
    """True when ``query`` is a case-insensitive substring of any one field."""
    needle = query.lower()
    return any(needle in value.lower() for value in searchable_values(log))


def can_prefilter(query: str) -> bool:
    """Whether a SQL ``ILIKE`` is guaranteed to keep every matching row.

    Case folding of non-ASCII text differs between databases, and the tags
    column holds JSON where quotes, backslashes and control characters are
    escaped. Queries made only of printable ASCII avoid both problems.
    """
    return all(32 <= ord(ch) < 127 and ch not in '"\\' for ch in query)


def escape_like(query: str) -> str:
    return (
        query.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def sql_prefilter(model, query: str) -> Optional[object]:
    """OR of ``ILIKE`` clauses over the searchable columns of ``model``.

    Returns None when the query cannot be narrowed safely in SQL.
    """
    if not can_prefilter(query):
        return None
    pattern = f"%{escape_like(query)}%"
    columns = (
        model.id,
        model.pr_url,
        model.author_email,
        model.orchestrator,
        model.llm,
        model.branch,
        model.content,
        model.tags_json,
    )
    return or_(*(column.ilike(pattern, escape=LIKE_ESCAPE) for column in columns))
