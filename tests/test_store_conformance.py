"""Contract tests run against both InMemoryLogStore and SqlLogStore."""

import re
from datetime import datetime, timezone

import pytest

from promptlog.core.exceptions import ResourceConflictError, ValidationError
from promptlog.services.id_generator import format_id

from conftest import log_data

ID_PATTERN = re.compile(r"^LOG-(\d{4})-(\d{6,})$")


def test_generated_ids_follow_format_and_are_unique(store) -> None:
    """Ids are LOG-<year>-<seq> and never repeat within a store."""
    ids = [store.create(log_data()).id for _ in range(25)]
    year = datetime.now(timezone.utc).year
    for log_id in ids:
        match = ID_PATTERN.match(log_id)
        assert match, log_id
        assert int(match.group(1)) == year
    assert len(set(ids)) == len(ids)


def test_empty_id_is_treated_as_absent(store) -> None:
    log = store.create(log_data(id=""))
    assert ID_PATTERN.match(log.id)


def test_generated_ids_skip_explicit_ones(store) -> None:
    """A caller-supplied id in generator format is never handed out again."""
    year = datetime.now(timezone.utc).year
    taken = format_id(year, 1)
    store.create(log_data(id=taken))
    generated = store.create(log_data())
    assert generated.id != taken
    assert store.get(taken) is not None


def test_get_after_create_returns_equal_record(store) -> None:
    created = store.create(log_data(branch="main", owner_id=None))
    fetched = store.get(created.id)
    assert fetched == created
    assert fetched.tags == ["api", "auth"]
    assert fetched.branch == "main"
    assert fetched.created_at == fetched.updated_at


def test_get_missing_returns_none(store) -> None:
    assert store.get("LOG-1999-000001") is None


def test_empty_patch_only_advances_updated_at(store) -> None:
    created = store.create(log_data())
    updated = store.update(created.id, {})
    assert updated is not None
    assert updated.updated_at > created.updated_at
    assert updated.created_at == created.created_at
    for field in ("id", "pr_url", "branch", "author_email", "orchestrator", "llm", "tags", "content", "owner_id"):
        assert getattr(updated, field) == getattr(created, field)


def test_updated_at_strictly_increases_on_repeated_updates(store) -> None:
    log = store.create(log_data())
    stamps = [log.updated_at]
    for _ in range(5):
        stamps.append(store.update(log.id, {}).updated_at)
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == len(stamps)


def test_update_merges_supplied_fields(store) -> None:
    created = store.create(log_data(branch="main"))
    updated = store.update(created.id, {"llm": "Claude 3.5 Sonnet", "tags": ["refactor"]})
    assert updated.llm == "Claude 3.5 Sonnet"
    assert updated.tags == ["refactor"]
    assert updated.branch == "main"
    assert updated.content == created.content
    assert store.get(created.id) == updated


def test_update_can_clear_branch(store) -> None:
    created = store.create(log_data(branch="main"))
    assert store.update(created.id, {"branch": None}).branch is None


def test_update_never_changes_id_or_owner(store) -> None:
    created = store.create(log_data(owner_id="alice"))
    updated = store.update(created.id, {"id": "LOG-HIJACK", "owner_id": "bob"})
    assert updated.id == created.id
    assert updated.owner_id == "alice"
    assert store.get("LOG-HIJACK") is None


def test_update_missing_or_foreign_returns_none(store) -> None:
    created = store.create(log_data(owner_id="alice"))
    assert store.update("LOG-1999-000001", {"llm": "x"}) is None
    assert store.update(created.id, {"llm": "x"}, owner_id="bob") is None
    assert store.get(created.id).llm == "GPT-4"


def test_delete_then_get_is_not_found(store) -> None:
    created = store.create(log_data())
    assert store.delete(created.id) is True
    assert store.get(created.id) is None
    assert store.delete(created.id) is False


def test_delete_respects_owner(store) -> None:
    created = store.create(log_data(owner_id="alice"))
    assert store.delete(created.id, owner_id="bob") is False
    assert store.get(created.id) is not None
    assert store.delete(created.id, owner_id="alice") is True


def test_list_all_newest_first(store) -> None:
    first = store.create(log_data(content="first"))
    second = store.create(log_data(content="second"))
    third = store.create(log_data(content="third"))
    assert [log.id for log in store.list_all()] == [third.id, second.id, first.id]


def test_list_recent_truncates_and_falls_back_to_default(store) -> None:
    created = [store.create(log_data(content=f"log {i}")) for i in range(12)]
    newest = [log.id for log in reversed(created)]
    assert [log.id for log in store.list_recent(3)] == newest[:3]
    assert len(store.list_recent()) == 10
    for bad in (0, -5, "abc", None, 2.5):
        assert [log.id for log in store.list_recent(bad)] == newest[:10]


def test_owner_filter_isolates_records(store) -> None:
    alice = store.create(log_data(owner_id="alice", content="alice notes"))
    bob = store.create(log_data(owner_id="bob", content="bob notes"))

    assert [log.id for log in store.list_all("alice")] == [alice.id]
    assert [log.id for log in store.list_all("bob")] == [bob.id]
    assert {log.id for log in store.list_all()} == {alice.id, bob.id}
    assert [log.id for log in store.list_recent(10, "bob")] == [bob.id]
    assert store.get(alice.id, owner_id="bob") is None
    assert [log.id for log in store.search("notes", "alice")] == [alice.id]


def test_search_is_case_insensitive_substring(store) -> None:
    hello = store.create(log_data(content="Hello World"))
    store.create(log_data(content="Something else"))
    assert [log.id for log in store.search("hello")] == [hello.id]
    assert [log.id for log in store.search("O WOR")] == [hello.id]
    assert store.search("xyz123") == []


@pytest.mark.parametrize(
    "field,value,query",
    [
        ("pr_url", "https://github.com/acme/api/pull/42", "ACME/API"),
        ("author_email", "jane@corp.example", "jane@"),
        ("orchestrator", "Windsurf", "windsurf"),
        ("llm", "Claude 3.5 Sonnet", "sonnet"),
        ("branch", "feature/payments", "PAYMENTS"),
        ("tags", ["backend", "migrations"], "migrat"),
    ],
)
def test_search_covers_every_field(store, field, value, query) -> None:
    target = store.create(log_data(**{field: value}))
    store.create(log_data(content="unrelated"))
    assert [log.id for log in store.search(query)] == [target.id]


def test_search_matches_id(store) -> None:
    target = store.create(log_data(id="LOG-CUSTOM-77"))
    store.create(log_data())
    assert [log.id for log in store.search("custom-77")] == [target.id]


def test_search_treats_wildcards_literally(store) -> None:
    percent = store.create(log_data(content="coverage now at 100% on the parser"))
    underscore = store.create(log_data(content="renamed user_id column"))
    store.create(log_data(content="plain text"))
    assert [log.id for log in store.search("100%")] == [percent.id]
    assert [log.id for log in store.search("%")] == [percent.id]
    assert [log.id for log in store.search("_")] == [underscore.id]


def test_search_does_not_match_across_tags(store) -> None:
    store.create(log_data(tags=["front", "end"], content="ui work"))
    assert store.search("frontend") == []
    assert store.search('"front"') == []


def test_search_handles_non_ascii(store) -> None:
    target = store.create(log_data(content="Café crème migration"))
    store.create(log_data(content="cafe without accent"))
    assert [log.id for log in store.search("CAFÉ")] == [target.id]


def test_search_results_newest_first(store) -> None:
    older = store.create(log_data(content="shared term"))
    newer = store.create(log_data(content="another shared term"))
    assert [log.id for log in store.search("shared")] == [newer.id, older.id]


def test_search_rejects_empty_query(store) -> None:
    with pytest.raises(ValidationError):
        store.search("")


def test_explicit_id_overwrites_same_owner(store) -> None:
    store.create(log_data(id="LOG-2024-000123", content="v1", owner_id="alice"))
    replaced = store.create(log_data(id="LOG-2024-000123", content="v2", owner_id="alice"))
    assert replaced.content == "v2"
    assert store.get("LOG-2024-000123").content == "v2"
    assert len(store.list_all()) == 1


def test_explicit_id_owned_by_someone_else_conflicts(store) -> None:
    store.create(log_data(id="LOG-2024-000124", content="alice's", owner_id="alice"))
    with pytest.raises(ResourceConflictError):
        store.create(log_data(id="LOG-2024-000124", content="bob's", owner_id="bob"))
    assert store.get("LOG-2024-000124").content == "alice's"


def test_upsert_user_inserts_then_updates(store) -> None:
    created = store.upsert_user({
        "id": "google-1",
        "email": "dev@x.com",
        "first_name": "Dev",
        "last_name": "One",
        "profile_image_url": None,
    })
    assert store.get_user("google-1") == created

    updated = store.upsert_user({
        "id": "google-1",
        "email": "dev@x.com",
        "first_name": "Devon",
        "last_name": "One",
        "profile_image_url": "https://img.example/dev.png",
    })
    assert updated.first_name == "Devon"
    assert updated.profile_image_url == "https://img.example/dev.png"
    assert updated.created_at == created.created_at
    assert store.get_user("missing") is None
