"""Tests for mnemo.working.state -- document codec and migration."""

import json
import logging

import pytest

from mnemo.working.state import SessionMemoryState, StateCodec


@pytest.fixture
def codec():
    return StateCodec({"error": 3, "decision": 3}, pool_max_items=50)


class TestSessionMemoryState:
    def test_empty(self):
        state = SessionMemoryState.empty("ses", ["error", "decision"])
        assert state.slots == {"error": [], "decision": []}
        assert state.pool == []
        assert state.event_counter == 0
        assert state.updated_at.endswith("Z")

    def test_tick(self):
        state = SessionMemoryState.empty("ses", [])
        assert state.tick() == 1
        assert state.tick() == 2
        assert state.event_counter == 2


class TestCodec:
    def test_absent_is_empty(self, codec):
        state = codec.decode("ses", None)
        assert state.session_id == "ses"
        assert state.item_count() == 0
        assert set(state.slots) == {"error", "decision"}

    def test_save_load_fixed_point(self, memory, kv):
        memory.add("ses", "boom", "error", created_at=1.0)
        memory.add("ses", "use sqlite", "decision", created_at=2.0)
        for c in ["src/a.ts", "src/b.ts", "src/a.ts", "note"]:
            memory.add("ses", c, "file-path" if c.startswith("src") else "other")

        saved = kv.get("ses")
        again = StateCodec.encode(memory.codec.decode("ses", saved))
        assert again == saved

    def test_canonical_json(self, memory, kv):
        memory.add("ses", "x")
        text = kv.get("ses").decode("utf-8")
        raw = json.loads(text)
        assert text == json.dumps(raw, indent=2, sort_keys=True)
        assert set(raw) == {"session_id", "slots", "pool", "event_counter", "updated_at"}

    @pytest.mark.parametrize("data", [b"{not json", b"[1, 2]", b'{"slots": 5}', b"\xff\xfe"])
    def test_corrupt_is_empty(self, codec, data, caplog):
        with caplog.at_level(logging.WARNING, logger="mnemo"):
            state = codec.decode("ses", data)
        assert state.item_count() == 0
        assert "unreadable working memory" in caplog.text

    def test_unconfigured_slot_dropped(self, codec):
        doc = {
            "session_id": "ses",
            "slots": {"error": [], "todo": [{"content": "x", "category": "todo"}]},
            "pool": [],
            "event_counter": 4,
            "updated_at": "2024-01-01T00:00:00Z",
        }
        state = codec.decode("ses", json.dumps(doc).encode())
        assert "todo" not in state.slots
        assert state.event_counter == 4


class TestMigration:
    def test_flat_items_routed(self, codec):
        items = [
            {"id": f"e{i}", "type": "error", "content": f"err {i}", "timestamp": float(i)}
            for i in range(5)
        ] + [
            {"id": "d1", "type": "decision", "content": "chose A", "timestamp": 1.0},
            {"id": "p1", "type": "file-path", "content": "a.ts", "timestamp": 1.0, "relevanceScore": 0.4},
            {"id": "p2", "type": "other", "content": "note", "timestamp": 1.0, "relevanceScore": 0.9},
        ]
        state = codec.decode("ses", json.dumps({"sessionID": "ses", "items": items}).encode())

        assert [i.content for i in state.slots["error"]] == ["err 4", "err 3", "err 2"]
        assert [i.content for i in state.slots["decision"]] == ["chose A"]
        assert [i.content for i in state.pool] == ["note", "a.ts"]

    def test_migration_logged(self, codec, caplog):
        with caplog.at_level(logging.INFO, logger="mnemo"):
            codec.decode("ses", json.dumps({"items": []}).encode())
        assert "Migrated legacy working memory" in caplog.text
