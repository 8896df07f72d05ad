"""
Tests for the play statistics store.
"""

import threading
from unittest.mock import patch

import pytest

from low_music.core.database import KeyValueStore
from low_music.domain.stats import STATS_KEY, PlayStats, StatsStore
from low_music.exceptions import PersistenceError


class FakeClock:
    """Clock that advances one second per call."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        self.now += 1.0
        return self.now


@pytest.fixture
def kv(tmp_path):
    store = KeyValueStore(tmp_path / "test.db")
    store.init_database()
    return store


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stats(kv, clock):
    store = StatsStore(kv, clock=clock)
    store.initialize()
    return store


class TestTrackPlay:
    """Test recording plays."""

    def test_first_play_creates_entry(self, stats, clock):
        """Test that an unknown song gets an entry with one play."""
        result = stats.track_play("song-1")
        assert result.play_count == 1
        assert result.last_played == clock.now
        assert result.liked is False

    def test_play_count_increments(self, stats):
        """Test that each play adds exactly one."""
        for _ in range(3):
            stats.track_play("song-1")
        assert stats.play_stats["song-1"].play_count == 3

    def test_last_played_advances(self, stats):
        first = stats.track_play("song-1").last_played
        second = stats.track_play("song-1").last_played
        assert second > first

    def test_play_is_persisted(self, kv, stats, clock):
        """Test that a new store sees recorded plays."""
        stats.track_play("song-1")

        reloaded = StatsStore(kv, clock=clock)
        reloaded.initialize()
        assert reloaded.play_stats["song-1"].play_count == 1

    def test_emits_stats_updated(self, stats):
        events = []
        stats.subscribe(lambda event, payload: events.append((event, payload)))
        stats.track_play("song-1")
        assert events == [("stats-updated", "song-1")]


class TestToggleLike:
    """Test the liked flag."""

    def test_toggle_returns_new_value(self, stats):
        assert stats.toggle_like("song-1") is True
        assert stats.toggle_like("song-1") is False

    def test_toggle_twice_restores_state(self, stats):
        """Test that toggling is its own inverse."""
        stats.track_play("song-1")
        before = PlayStats(**stats.play_stats["song-1"].to_dict())

        stats.toggle_like("song-1")
        stats.toggle_like("song-1")

        assert stats.play_stats["song-1"] == before

    def test_liked_song_ids(self, stats):
        stats.toggle_like("a")
        stats.toggle_like("b")
        stats.toggle_like("b")
        assert stats.liked_song_ids() == ["a"]


class TestGetSongStats:
    """Test reading stats."""

    def test_untracked_song_gets_default(self, stats):
        """Test that reading an unknown id does not create an entry."""
        result = stats.get_song_stats("nope")
        assert result.play_count == 0
        assert result.liked is False
        assert "nope" not in stats.play_stats


class TestMarkSongsAsAdded:
    """Test registering scanned songs."""

    def test_adds_only_new_ids(self, stats):
        stats.track_play("a")
        assert stats.mark_songs_as_added(["a", "b", "c"]) == 2
        assert stats.play_stats["a"].play_count == 1
        assert stats.play_stats["b"].play_count == 0

    def test_saves_only_on_change(self, kv, stats):
        """Test that no write happens when every id is known."""
        stats.mark_songs_as_added(["a"])
        with patch.object(kv, "save") as mock_save:
            assert stats.mark_songs_as_added(["a"]) == 0
            mock_save.assert_not_called()

    def test_added_at_preserved(self, stats):
        stats.mark_songs_as_added(["a"])
        added_at = stats.play_stats["a"].added_at
        stats.mark_songs_as_added(["a"])
        assert stats.play_stats["a"].added_at == added_at


class TestRankings:
    """Test most and recently played lists."""

    def test_most_played(self, stats):
        for song_id, plays in [("a", 1), ("b", 3), ("c", 2)]:
            for _ in range(plays):
                stats.track_play(song_id)
        stats.mark_songs_as_added(["never"])

        assert [song_id for song_id, _ in stats.most_played()] == ["b", "c", "a"]
        assert len(stats.most_played(limit=1)) == 1

    def test_recently_played(self, stats):
        stats.track_play("a")
        stats.track_play("b")
        stats.track_play("a")
        assert [song_id for song_id, _ in stats.recently_played()] == ["a", "b"]


class TestPruneOrphans:
    """Test removing stats for songs that left the library."""

    def test_prune_removes_missing_ids(self, stats):
        stats.mark_songs_as_added(["a", "b", "c"])
        assert stats.prune_orphans(["a"]) == 2
        assert set(stats.play_stats) == {"a"}

    def test_prune_nothing(self, kv, stats):
        stats.mark_songs_as_added(["a"])
        with patch.object(kv, "save") as mock_save:
            assert stats.prune_orphans(["a", "b"]) == 0
            mock_save.assert_not_called()


class TestPersistence:
    """Test load and save failure handling."""

    def test_failed_save_keeps_memory_and_reports(self, kv, stats):
        events = []
        stats.subscribe(lambda event, payload: events.append(event))

        with patch.object(kv, "save", side_effect=PersistenceError(STATS_KEY)):
            stats.track_play("a")

        assert stats.play_stats["a"].play_count == 1
        assert events == ["persistence-error", "stats-updated"]

    def test_malformed_entry_skipped(self, kv, clock):
        kv.save(STATS_KEY, {"a": {"play_count": 2}, "b": {"play_count": "many"}})
        store = StatsStore(kv, clock=clock)
        store.initialize()
        assert store.play_stats["a"].play_count == 2
        assert "b" not in store.play_stats


class TestConcurrentAccess:
    """Test plays recorded while a scan registers songs on another thread."""

    def test_track_play_during_mark_songs_as_added(self, stats):
        """Test that concurrent writers neither raise nor lose updates."""
        errors = []

        def register_songs():
            try:
                for batch in range(40):
                    stats.mark_songs_as_added(f"scan-{batch}-{i}" for i in range(50))
            except Exception as e:
                errors.append(e)

        scanner = threading.Thread(target=register_songs)
        scanner.start()
        try:
            for _ in range(300):
                stats.track_play("x")
        finally:
            scanner.join(timeout=60)

        assert errors == []
        assert stats.play_stats["x"].play_count == 300
        assert len(stats.play_stats) == 40 * 50 + 1
