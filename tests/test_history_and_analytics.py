from __future__ import annotations

import itertools

import pytest

from services import AnalyticsCounter, SearchHistoryStore


class _Clock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self._ticks = itertools.count()
        self.start = start

    def __call__(self) -> float:
        return self.start + next(self._ticks)


def test_recording_same_id_twice_keeps_one_entry_at_front(storage) -> None:
    history = SearchHistoryStore(storage, clock=_Clock())
    history.record("100", "First")
    history.record("200", "Second")
    first_stamp = history.entries[1].timestamp

    history.record("100", "First again")

    assert [e.id for e in history.entries] == ["100", "200"]
    assert history.entries[0].title == "First again"
    assert history.entries[0].timestamp > first_stamp


def test_twenty_first_distinct_id_evicts_oldest(history) -> None:
    for i in range(21):
        history.record(str(i), f"Title {i}")

    ids = [e.id for e in history.entries]
    assert len(ids) == 20
    assert ids[0] == "20"
    assert "0" not in ids


def test_history_is_persisted_and_reloaded(storage) -> None:
    SearchHistoryStore(storage).record("81767635", "Glass Onion")

    reloaded = SearchHistoryStore(storage)

    assert [(e.id, e.title) for e in reloaded.entries] == [("81767635", "Glass Onion")]


def test_clear_empties_and_persists(storage, history) -> None:
    history.record("1", "One")
    history.clear()

    assert history.entries == []
    assert SearchHistoryStore(storage).entries == []


def test_malformed_stored_entries_are_skipped(storage) -> None:
    storage.write("nf-search-history", [{"id": "1", "title": "One", "timestamp": 1}, {"id": "2"}, "junk"])

    assert [e.id for e in SearchHistoryStore(storage).entries] == ["1"]


def test_filter_matches_id_case_sensitively_and_title_case_insensitively(history) -> None:
    history.record("80057281", "Stranger Things")
    history.record("81767635", "Glass Onion")

    assert [e.id for e in history.filter("8005")] == ["80057281"]
    assert [e.id for e in history.filter("glass")] == ["81767635"]
    assert [e.id for e in history.filter("STRANGER")] == ["80057281"]
    assert history.filter("zzz") == []


def test_analytics_window_keeps_last_fifty_samples(analytics) -> None:
    for elapsed in range(1, 52):
        analytics.track(f"id-{elapsed}", elapsed)

    snapshot = analytics.snapshot
    assert snapshot.total_searches == 51
    assert snapshot.search_times == list(range(2, 52))
    assert snapshot.avg_response_time == pytest.approx(sum(range(2, 52)) / 50)


def test_analytics_recent_searches_are_newest_first_and_capped(analytics) -> None:
    for i in range(12):
        analytics.track(str(i), 100 + i)

    recent = analytics.snapshot.recent_searches
    assert len(recent) == 10
    assert (recent[0].id, recent[0].time) == ("11", 111)
    assert recent[-1].id == "2"


def test_analytics_snapshot_round_trips_through_storage(storage) -> None:
    AnalyticsCounter(storage).track("81767635", 240)

    reloaded = AnalyticsCounter(storage).snapshot

    assert reloaded.total_searches == 1
    assert reloaded.avg_response_time == 240
    assert storage.read("nf-analytics", {})["recentSearches"] == [{"id": "81767635", "time": 240}]
