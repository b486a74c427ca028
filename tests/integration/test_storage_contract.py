"""Storage contract tests, run against every backend without a fallback.

The storage fixture is parametrized over LocalStorage, SessionStorage and
DatabaseStorage (SQLite in memory).
"""

import pytest

from pleesher.domain.exceptions import InvalidKeyError, InvalidPayloadError
from pleesher.infrastructure.cache.storage_protocol import EntryState, Storage

OWNER = 42
OTHER_OWNER = 43


class TestSaveLoad:
    @pytest.mark.parametrize(
        "value",
        [{"achieved": False, "progress": {"current": 1, "target": 3}}, [1, 2, 3], "text", 12.5],
    )
    def test_load_returns_saved_value(self, storage: Storage, value: object) -> None:
        storage.save(OWNER, "goal", 7, value)
        assert storage.load(OWNER, "goal", 7) == value

    def test_load_missing_returns_default(self, storage: Storage) -> None:
        assert storage.load(OWNER, "goal", 7) is None
        assert storage.load(OWNER, "goal", 7, default="none") == "none"

    def test_save_overwrites_in_place(self, storage: Storage) -> None:
        storage.save(OWNER, "goal", 7, {"v": 1})
        storage.save(OWNER, "goal", 7, {"v": 2})
        assert storage.load(OWNER, "goal", 7) == {"v": 2}
        assert storage.load_all(OWNER, "goal") == {7: {"v": 2}}

    def test_owners_are_isolated(self, storage: Storage) -> None:
        storage.save(OWNER, "user", OWNER, {"name": "a"})
        assert storage.load(OTHER_OWNER, "user", OWNER) is None
        assert storage.load(None, "user", OWNER) is None

    def test_global_owner(self, storage: Storage) -> None:
        storage.save(None, "access_token", None, {"access_token": "abc"})
        assert storage.load(None, "access_token") == {"access_token": "abc"}
        assert storage.load(OWNER, "access_token") is None

    def test_scalar_slot_is_entry_zero(self, storage: Storage) -> None:
        storage.save(OWNER, "user", None, "scalar")
        assert storage.load(OWNER, "user", 0) == "scalar"

    def test_wildcard_rejected_on_save_and_load(self, storage: Storage) -> None:
        with pytest.raises(InvalidKeyError):
            storage.save(OWNER, "goal_*", 1, "x")
        with pytest.raises(InvalidKeyError):
            storage.load(OWNER, "goal_*", 1)
        with pytest.raises(InvalidKeyError):
            storage.load_all(OWNER, "goal_*")

    def test_unserializable_payload_rejected(self, storage: Storage) -> None:
        with pytest.raises(InvalidPayloadError):
            storage.save(OWNER, "goal", 1, object())
        with pytest.raises(InvalidPayloadError):
            storage.save_all(OWNER, "goal", {1: {1, 2}})
        assert storage.load(OWNER, "goal", 1) is None
        assert storage.load_all(OWNER, "goal") is None


class TestCollections:
    def test_load_all_not_cached_returns_none(self, storage: Storage) -> None:
        assert storage.load_all(OWNER, "goal") is None

    def test_save_all_empty_is_cached_empty(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {})
        assert storage.load_all(OWNER, "goal") == {}

    def test_empty_marker_is_not_an_entry(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {})
        assert storage.load(OWNER, "goal") is None
        assert storage.entry_state(OWNER, "goal") == EntryState.ABSENT

    def test_save_all_keeps_insertion_order(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {3: "c", 1: "a", 2: "b"})
        assert list(storage.load_all(OWNER, "goal").items()) == [(3, "c"), (1, "a"), (2, "b")]

    def test_save_all_replaces_whole_collection(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {1: "a", 2: "b"})
        storage.save_all(OWNER, "goal", {3: "c"})
        assert storage.load_all(OWNER, "goal") == {3: "c"}
        assert storage.load(OWNER, "goal", 1) is None

    def test_save_all_clears_obsolete_marks(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {1: "a"})
        storage.refresh(OWNER, "goal", 1)
        storage.save_all(OWNER, "goal", {1: "a2"})
        assert storage.load_all(OWNER, "goal") == {1: "a2"}

    def test_save_into_empty_collection(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {})
        storage.save(OWNER, "goal", 5, "e")
        assert storage.load_all(OWNER, "goal") == {5: "e"}

    def test_save_appends_to_collection(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {1: "a"})
        storage.save(OWNER, "goal", 2, "b")
        assert storage.load_all(OWNER, "goal") == {1: "a", 2: "b"}

    def test_collections_are_per_owner(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {1: "a"})
        assert storage.load_all(OTHER_OWNER, "goal") is None
        assert storage.load_all(None, "goal") is None


class TestRefresh:
    """Lazy invalidation: entries stay present but read as misses."""

    def test_refreshed_entry_reads_as_default(self, storage: Storage) -> None:
        storage.save(OWNER, "goal", 7, {"achieved": False})
        storage.refresh(OWNER, "goal", 7)
        assert storage.load(OWNER, "goal", 7, default="stale") == "stale"
        assert storage.entry_state(OWNER, "goal", 7) == EntryState.STALE

    def test_refresh_keeps_siblings(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {1: "a", 2: "b"})
        storage.refresh(OWNER, "goal", 1)
        assert storage.load(OWNER, "goal", 2) == "b"
        assert storage.entry_state(OWNER, "goal", 2) == EntryState.FRESH

    def test_refreshed_member_invalidates_collection(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {1: "a", 2: "b"})
        storage.refresh(OWNER, "goal", 1)
        assert storage.load_all(OWNER, "goal") is None

    def test_refresh_of_absent_member_invalidates_collection(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {1: "a"})
        storage.refresh(OWNER, "goal", 99)
        assert storage.load_all(OWNER, "goal") is None

    def test_save_after_refresh_is_fresh(self, storage: Storage) -> None:
        storage.save(OWNER, "goal", 7, "old")
        storage.refresh(OWNER, "goal", 7)
        storage.save(OWNER, "goal", 7, "new")
        assert storage.load(OWNER, "goal", 7) == "new"
        assert storage.entry_state(OWNER, "goal", 7) == EntryState.FRESH

    def test_refresh_scalar(self, storage: Storage) -> None:
        storage.save(None, "access_token", None, {"access_token": "abc"})
        storage.refresh(None, "access_token")
        assert storage.load(None, "access_token") is None

    def test_wildcard_refresh_marks_matching_keys(self, storage: Storage) -> None:
        storage.save(OWNER, "goal_1", 1, "g1")
        storage.save(OWNER, "goal_2", 2, "g2")
        storage.save(OWNER, "reward_1", 1, "r1")
        storage.refresh(OWNER, "goal_*")
        assert storage.load(OWNER, "goal_1", 1) is None
        assert storage.load(OWNER, "goal_2", 2) is None
        assert storage.load(OWNER, "reward_1", 1) == "r1"
        assert storage.entry_state(OWNER, "goal_1", 1) == EntryState.STALE

    def test_wildcard_refresh_with_entry_filter(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal_a", {1: "a1", 2: "a2"})
        storage.save_all(OWNER, "goal_b", {1: "b1", 2: "b2"})
        storage.refresh(OWNER, "goal_*", 1)
        assert storage.load(OWNER, "goal_a", 1) is None
        assert storage.load(OWNER, "goal_b", 1) is None
        assert storage.load(OWNER, "goal_a", 2) == "a2"
        assert storage.load(OWNER, "goal_b", 2) == "b2"

    def test_wildcard_refresh_is_owner_scoped(self, storage: Storage) -> None:
        storage.save(OWNER, "goal_1", 1, "mine")
        storage.save(OTHER_OWNER, "goal_1", 1, "theirs")
        storage.refresh(OWNER, "goal_*")
        assert storage.load(OTHER_OWNER, "goal_1", 1) == "theirs"

    def test_wildcard_refresh_without_matches_is_noop(self, storage: Storage) -> None:
        storage.save(OWNER, "reward", 1, "r")
        storage.refresh(OWNER, "goal*")
        assert storage.load(OWNER, "reward", 1) == "r"

    def test_wildcard_refresh_invalidates_empty_collection(self, storage: Storage) -> None:
        storage.save_all(OWNER, "notification", {})
        storage.refresh(OWNER, "notif*")
        assert storage.load_all(OWNER, "notification") is None
        assert storage.entry_state(OWNER, "notification") == EntryState.ABSENT

    def test_save_into_refreshed_empty_collection(self, storage: Storage) -> None:
        storage.save_all(OWNER, "notification", {})
        storage.refresh(OWNER, "notif*")
        storage.save(OWNER, "notification", 5, "n5")
        assert storage.load_all(OWNER, "notification") == {5: "n5"}

    def test_award_bookkeeping_scenario(self, storage: Storage) -> None:
        storage.save(42, "goal_relative_to_user", 7, {"achieved": False})
        storage.refresh(42, "goal_relative_to_user", 7)
        assert storage.load(42, "goal_relative_to_user", 7) is None


class TestRefreshAll:
    """Eager invalidation of one owner's entries."""

    def test_wildcard_deletes_only_matching_keys(self, storage: Storage) -> None:
        storage.save(OWNER, "goal_1", 1, "g1")
        storage.save(OWNER, "goal_2", 2, "g2")
        storage.save(OWNER, "reward_1", 1, "r1")
        storage.refresh_all(OWNER, "goal_*")
        assert storage.entry_state(OWNER, "goal_1", 1) == EntryState.ABSENT
        assert storage.entry_state(OWNER, "goal_2", 2) == EntryState.ABSENT
        assert storage.load(OWNER, "reward_1", 1) == "r1"

    def test_exact_key_deletes_collection(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {1: "a"})
        storage.save_all(OWNER, "goals", {1: "b"})
        storage.refresh_all(OWNER, "goal")
        assert storage.load_all(OWNER, "goal") is None
        assert storage.load_all(OWNER, "goals") == {1: "b"}

    def test_without_key_deletes_everything_owned(self, storage: Storage) -> None:
        storage.save(OWNER, "goal", 1, "a")
        storage.save(OWNER, "notification", 1, "n")
        storage.save(OTHER_OWNER, "goal", 1, "other")
        storage.save(None, "access_token", None, "token")
        storage.refresh_all(OWNER)
        assert storage.load(OWNER, "goal", 1) is None
        assert storage.load(OWNER, "notification", 1) is None
        assert storage.load(OTHER_OWNER, "goal", 1) == "other"
        assert storage.load(None, "access_token") == "token"

    def test_deletes_obsolete_marks(self, storage: Storage) -> None:
        storage.save_all(OWNER, "goal", {1: "a"})
        storage.refresh(OWNER, "goal", 1)
        storage.refresh_all(OWNER, "goal")
        storage.save_all(OWNER, "goal", {2: "b"})
        assert storage.load_all(OWNER, "goal") == {2: "b"}

    def test_global_owner(self, storage: Storage) -> None:
        storage.save(None, "goal", 1, "global")
        storage.save(OWNER, "goal", 1, "owned")
        storage.refresh_all(None, "goal")
        assert storage.load(None, "goal", 1) is None
        assert storage.load(OWNER, "goal", 1) == "owned"


class TestRefreshGlobally:
    def test_deletes_matching_keys_for_all_owners(self, storage: Storage) -> None:
        storage.save(OWNER, "goal_1", 1, "a")
        storage.save(OTHER_OWNER, "goal_2", 1, "b")
        storage.save(OWNER, "reward", 1, "r")
        storage.refresh_globally("goal_*")
        assert storage.load(OWNER, "goal_1", 1) is None
        assert storage.load(OTHER_OWNER, "goal_2", 1) is None
        assert storage.load(OWNER, "reward", 1) == "r"

    def test_without_key_clears_scope(self, storage: Storage) -> None:
        storage.save(OWNER, "goal", 1, "a")
        storage.save(None, "access_token", None, "token")
        storage.refresh_globally()
        assert storage.load(OWNER, "goal", 1) is None
        assert storage.load(None, "access_token") is None
        assert storage.load_all(OWNER, "goal") is None

    def test_idempotent(self, storage: Storage) -> None:
        storage.save(OWNER, "goal", 1, "a")
        storage.refresh_globally()
        storage.refresh_globally()
        assert storage.load(OWNER, "goal", 1) is None
        assert storage.load_all(OWNER, "goal") is None

    def test_leaves_other_scopes(self, storage: Storage) -> None:
        storage.set_scope("tenant-a")
        storage.save(OWNER, "goal", 1, "a")
        storage.set_scope("tenant-b")
        storage.save(OWNER, "goal", 1, "b")
        storage.refresh_globally()
        storage.set_scope("tenant-a")
        assert storage.load(OWNER, "goal", 1) == "a"


class TestScope:
    def test_writes_after_switch_do_not_leak_back(self, storage: Storage) -> None:
        storage.set_scope("tenant-a")
        storage.save(OWNER, "goal", 1, "a")
        storage.set_scope("tenant-b")
        storage.save(OWNER, "goal", 1, "b")
        assert storage.load(OWNER, "goal", 1) == "b"
        storage.set_scope("tenant-a")
        assert storage.load(OWNER, "goal", 1) == "a"

    def test_default_scope_when_unset(self, storage: Storage) -> None:
        assert storage.active_scope == "default"
        storage.set_scope("tenant-a")
        assert storage.active_scope == "tenant-a"
        storage.set_scope(None)
        assert storage.active_scope == "default"
