"""Tests for the diff engine."""

import random
from datetime import datetime, timezone

from bucketsync.core.diff_engine import DiffEngine, summarize
from bucketsync.models import ActionKind, FileEntry, ObjectEntry, SyncAction, SyncDirection


T1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T2 = datetime(2024, 6, 1, tzinfo=timezone.utc)


def local_entries(**sizes):
    return {
        key.replace("_", "."): FileEntry(key.replace("_", "."), False, size, T1)
        for key, size in sizes.items()
    }


def remote_entries(**sizes):
    return {
        key.replace("_", "."): ObjectEntry(key.replace("_", "."), size, T2)
        for key, size in sizes.items()
    }


class TestDiffEngine:
    """Test action planning."""

    def setup_method(self):
        self.engine = DiffEngine()

    def test_mirror_to_remote_scenario(self):
        local = local_entries(a_txt=10, b_txt=20)
        remote = remote_entries(b_txt=20, c_txt=30)

        actions = self.engine.diff(local, remote, SyncDirection.MIRROR_TO_REMOTE)

        assert actions == [
            SyncAction.upload("a.txt"),
            SyncAction.skip("b.txt"),
            SyncAction.delete_remote("c.txt"),
        ]

    def test_mirror_to_local_scenario(self):
        local = local_entries(a_txt=10, b_txt=20)
        remote = remote_entries(b_txt=20, c_txt=30)

        actions = self.engine.diff(local, remote, SyncDirection.MIRROR_TO_LOCAL)

        assert actions == [
            SyncAction.download("c.txt"),
            SyncAction.skip("b.txt"),
            SyncAction.delete_local("a.txt"),
        ]

    def test_size_mismatch(self):
        local = local_entries(a_txt=10)
        remote = remote_entries(a_txt=11)

        assert self.engine.diff(local, remote, SyncDirection.MIRROR_TO_REMOTE) == [SyncAction.upload("a.txt")]
        assert self.engine.diff(local, remote, SyncDirection.MIRROR_TO_LOCAL) == [SyncAction.download("a.txt")]

    def test_equal_size_different_timestamp_is_skip(self):
        local = {"a.txt": FileEntry("a.txt", False, 5, T1)}
        remote = {"a.txt": ObjectEntry("a.txt", 5, T2)}

        assert self.engine.diff(local, remote, SyncDirection.MIRROR_TO_REMOTE) == [SyncAction.skip("a.txt")]

    def test_unknown_remote_size_counts_as_changed(self):
        local = local_entries(a_txt=5)
        remote = {"a.txt": ObjectEntry("a.txt")}

        assert self.engine.diff(local, remote, SyncDirection.MIRROR_TO_REMOTE) == [SyncAction.upload("a.txt")]

    def test_empty_sides(self):
        assert self.engine.diff({}, {}, SyncDirection.MIRROR_TO_REMOTE) == []

    def test_deterministic_regardless_of_input_order(self):
        keys = [f"dir{i % 3}/file{i}.txt" for i in range(30)]
        local = {k: FileEntry(k, False, i, T1) for i, k in enumerate(keys[:20])}
        remote = {k: ObjectEntry(k, i if i % 2 else i + 1, T2) for i, k in enumerate(keys[10:], start=10)}

        expected = self.engine.diff(local, remote, SyncDirection.MIRROR_TO_REMOTE)

        shuffled_keys = list(local)
        random.Random(7).shuffle(shuffled_keys)
        shuffled_local = {k: local[k] for k in shuffled_keys}
        shuffled_remote = dict(reversed(list(remote.items())))

        assert self.engine.diff(shuffled_local, shuffled_remote, SyncDirection.MIRROR_TO_REMOTE) == expected

    def test_deletions_sorted_last_and_keys_ordered(self):
        local = local_entries(z_txt=1, m_txt=1)
        remote = remote_entries(a_txt=1, m_txt=2, b_txt=1)

        actions = self.engine.diff(local, remote, SyncDirection.MIRROR_TO_REMOTE)

        assert [a.kind for a in actions] == [
            ActionKind.UPLOAD, ActionKind.UPLOAD, ActionKind.DELETE_REMOTE, ActionKind.DELETE_REMOTE
        ]
        assert [a.key for a in actions] == ["m.txt", "z.txt", "a.txt", "b.txt"]

    def test_direction_accepts_string_value(self):
        actions = self.engine.diff(local_entries(a_txt=1), {}, "mirror_to_remote")
        assert actions == [SyncAction.upload("a.txt")]


class TestSummarize:
    """Test per-kind counting."""

    def test_counts_every_kind(self):
        summary = summarize([
            SyncAction.upload("a"),
            SyncAction.upload("b"),
            SyncAction.delete_remote("c"),
        ])

        assert summary == {
            "upload": 2,
            "download": 0,
            "skip": 0,
            "delete_local": 0,
            "delete_remote": 1,
        }
