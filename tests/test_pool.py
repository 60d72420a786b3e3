"""Tests for mnemo.working.pool -- decay-scored pool."""

import pytest

from mnemo.core.types import MemoryItem
from mnemo.working.pool import PoolStore, decayed_score
from mnemo.working.state import SessionMemoryState


@pytest.fixture
def pool():
    return PoolStore()


@pytest.fixture
def state():
    return SessionMemoryState.empty("ses", ["error", "decision"])


def _ingest(pool, state, content, category="other"):
    state.tick()
    return pool.ingest(state, MemoryItem(content=content, category=category))


def _scores(state):
    return {m.content: m.score for m in state.pool}


class TestDecayedScore:
    def test_zero_elapsed(self):
        assert decayed_score(0.7, 0, 0.85) == 0.7

    def test_law(self):
        assert decayed_score(1.0, 3, 0.85) == pytest.approx(0.85**3)
        assert decayed_score(2.0, 1, 0.5) == pytest.approx(1.0)


class TestIngest:
    def test_new_item(self, pool, state):
        stored, action, evicted = _ingest(pool, state, "src/a.ts", "file-path")
        assert action == "added"
        assert stored.score == pytest.approx(1.0)
        assert stored.last_scored_at == state.event_counter == 1
        assert evicted == []

    def test_mention_boost(self, pool, state):
        _ingest(pool, state, "a")
        _ingest(pool, state, "b")
        stored, action, _ = _ingest(pool, state, "a")
        assert action == "refreshed"
        assert stored.mentions == 2
        # a: 1.0 at tick 1, two ticks of decay, then +0.5
        assert stored.score == pytest.approx(1.0 * 0.85**2 + 0.5)

    def test_other_members_decay_without_boost(self, pool, state):
        _ingest(pool, state, "a")
        _ingest(pool, state, "b")
        _ingest(pool, state, "a")
        scores = _scores(state)
        assert scores["b"] == pytest.approx(0.85)
        assert all(m.last_scored_at == 3 for m in state.pool)

    def test_clock_gap_from_slot_adds(self, pool, state):
        _ingest(pool, state, "a")
        state.tick()
        state.tick()  # two slot adds elsewhere
        _ingest(pool, state, "b")
        assert _scores(state)["a"] == pytest.approx(0.85**3)

    def test_content_unique_and_mentions_increase(self, pool, state):
        seen = []
        for _ in range(5):
            stored, _, _ = _ingest(pool, state, "same")
            seen.append(stored.mentions)
        assert seen == [1, 2, 3, 4, 5]
        assert len(state.pool) == 1

    def test_dedup_across_pool_categories(self, pool, state):
        _ingest(pool, state, "x", "file-path")
        _, action, _ = _ingest(pool, state, "x", "other")
        assert action == "refreshed"
        assert len(state.pool) == 1

    def test_sorted_by_score(self, pool, state):
        for c in ["a", "b", "c", "a"]:
            _ingest(pool, state, c)
        scores = [m.score for m in state.pool]
        assert scores == sorted(scores, reverse=True)
        assert state.pool[0].content == "a"


class TestEviction:
    def test_unmentioned_item_gone_on_tick_29(self, pool, state):
        _ingest(pool, state, "target")
        for i in range(28):
            _ingest(pool, state, f"filler-{i}")
        target = pool.find(state, "target")
        assert target is not None
        assert target.score == pytest.approx(0.85**28)

        _, _, evicted = _ingest(pool, state, "one-more")
        assert pool.find(state, "target") is None
        assert "target" in [e.content for e in evicted]

    def test_all_scores_above_floor(self, pool, state):
        for i in range(60):
            _ingest(pool, state, f"item-{i}")
        assert all(m.score >= pool.min_score for m in state.pool)

    def test_max_items(self, state):
        small = PoolStore(max_items=3)
        for c in ["a", "b", "c", "d"]:
            _ingest(small, state, c)
        assert len(state.pool) == 3
        assert small.find(state, "a") is None

    def test_keep_top(self, pool, state):
        for c in ["a", "b", "c", "d"]:
            _ingest(pool, state, c)
        assert pool.keep_top(state, 2) == 2
        assert [m.content for m in state.pool] == ["d", "c"]


class TestValidation:
    def test_bad_gamma(self):
        with pytest.raises(ValueError):
            PoolStore(gamma=1.0)

    def test_bad_max_items(self):
        with pytest.raises(ValueError):
            PoolStore(max_items=0)
