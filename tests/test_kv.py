"""Tests for mnemo.storage.kv -- the three KV engines."""

import pytest

from mnemo.storage.kv import FileKVStore, MemoryKVStore, SQLiteKVStore, key_from_name, safe_key


@pytest.fixture(params=["memory", "file", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield MemoryKVStore()
    elif request.param == "file":
        yield FileKVStore(tmp_path / "docs")
    else:
        s = SQLiteKVStore(tmp_path / "kv.db", table="docs")
        yield s
        s.close()


class TestKVContract:
    def test_missing_is_none(self, store):
        assert store.get("nope") is None

    def test_put_get(self, store):
        store.put("ses_1", b'{"a": 1}')
        assert store.get("ses_1") == b'{"a": 1}'

    def test_overwrite(self, store):
        store.put("k", b"one")
        store.put("k", b"two")
        assert store.get("k") == b"two"

    def test_delete(self, store):
        store.put("k", b"x")
        assert store.delete("k") is True
        assert store.get("k") is None
        assert store.delete("k") is False

    def test_keys(self, store):
        store.put("b", b"1")
        store.put("a", b"2")
        assert store.keys() == ["a", "b"]


class TestSafeKey:
    def test_unsafe_chars_encoded(self):
        assert safe_key("../etc/passwd") == "%2E%2E%2Fetc%2Fpasswd"
        assert safe_key("ses_01-ab") == "ses_01-ab"

    @pytest.mark.parametrize(
        "a,b", [("team/a", "team_a"), ("x.y", "x_y"), ("a%2Fb", "a/b"), ("ses 1", "ses_1")]
    )
    def test_distinct_ids_distinct_names(self, a, b):
        assert safe_key(a) != safe_key(b)

    @pytest.mark.parametrize("key", ["team/a", "..", "ses é", "100%", "~me"])
    def test_name_roundtrip(self, key):
        assert key_from_name(safe_key(key)) == key

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            safe_key("")


class TestFileKVStore:
    def test_lookalike_ids_stay_apart(self, tmp_path):
        store = FileKVStore(tmp_path / "working")
        store.put("team/a", b"secret")
        assert store.get("team_a") is None
        store.put("team_a", b"other")
        assert store.get("team/a") == b"secret"
        assert store.keys() == ["team/a", "team_a"]

    def test_one_file_per_key(self, tmp_path):
        store = FileKVStore(tmp_path / "working")
        store.put("ses_1", b"data")
        assert (tmp_path / "working" / "ses_1.json").read_bytes() == b"data"

    def test_no_leftovers(self, tmp_path):
        store = FileKVStore(tmp_path / "working")
        store.put("ses_1", b"data")
        store.put("ses_1", b"more")
        names = sorted(p.name for p in (tmp_path / "working").iterdir())
        assert names == ["ses_1.json"]

    def test_keys_on_missing_dir(self, tmp_path):
        assert FileKVStore(tmp_path / "absent").keys() == []


class TestSQLiteKVStore:
    def test_tables_are_separate(self, tmp_path):
        db = tmp_path / "mnemo.db"
        a = SQLiteKVStore(db, table="working")
        b = SQLiteKVStore(db, table="pressure")
        a.put("ses", b"working")
        assert b.get("ses") is None
        a.close()
        b.close()

    def test_persists_across_connections(self, tmp_path):
        db = tmp_path / "mnemo.db"
        s = SQLiteKVStore(db, table="working")
        s.put("ses", b"x")
        s.close()
        s2 = SQLiteKVStore(db, table="working")
        assert s2.get("ses") == b"x"
        s2.close()

    def test_invalid_table(self, tmp_path):
        with pytest.raises(ValueError):
            SQLiteKVStore(tmp_path / "x.db", table="bad; drop")
