# services.py
import json
import logging
import sqlite3
import threading
import time
from typing import Any, Callable, Iterable, List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import pyperclip
import requests

from config import Config
from models import (AnalyticsSnapshot, HistoryEntry, RateLimit, RecentSearch,
                    SearchOutcome, TitleEntity)

logger = logging.getLogger(__name__)

HISTORY_KEY = "nf-search-history"
THEME_KEY = "nf-theme"
ANALYTICS_KEY = "nf-analytics"


class StorageService:
    """A best-effort JSON key/value store on top of SQLite.

    Reads fall back to the caller's default and writes never raise, so a
    missing, locked or corrupt database only costs persistence.
    """
    def __init__(self, db_name: str):
        self.db_name = db_name
        try:
            self.conn = sqlite3.connect(db_name, check_same_thread=False)
            self.create_table()
        except sqlite3.Error as e:
            logger.warning("Storage unavailable at %s: %s", db_name, e)
            self.conn = None

    def create_table(self):
        """Creates the key/value table if it doesn't exist."""
        with self.conn:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

    def read(self, key: str, default: Any) -> Any:
        if self.conn is None:
            return default
        try:
            row = self.conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            if row is None or not row[0]:
                return default
            return json.loads(row[0])
        except (sqlite3.Error, ValueError) as e:
            logger.debug("Could not read %r: %s", key, e)
            return default

    def write(self, key: str, value: Any) -> None:
        if self.conn is None:
            return
        try:
            payload = json.dumps(value)
            with self.conn:
                self.conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)", (key, payload)
                )
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.debug("Could not write %r: %s", key, e)

    def close(self):
        if self.conn is not None:
            self.conn.close()
            self.conn = None


class SearchHistoryStore:
    """Most-recent-first search history, unique by identifier."""
    def __init__(self, storage: StorageService, max_entries: int = 20,
                 clock: Callable[[], float] = time.time):
        self.storage = storage
        self.max_entries = max_entries
        self.clock = clock
        self.entries: List[HistoryEntry] = self._load()

    def _load(self) -> List[HistoryEntry]:
        stored = self.storage.read(HISTORY_KEY, [])
        if not isinstance(stored, list):
            return []
        entries = []
        for item in stored:
            try:
                entries.append(HistoryEntry(id=str(item["id"]), title=str(item["title"]),
                                            timestamp=int(item["timestamp"])))
            except (KeyError, TypeError, ValueError):
                continue
        return entries[:self.max_entries]

    def record(self, identifier: str, title: str) -> List[HistoryEntry]:
        entry = HistoryEntry(id=identifier, title=title, timestamp=int(self.clock() * 1000))
        remaining = [e for e in self.entries if e.id != identifier]
        self.entries = [entry, *remaining][:self.max_entries]
        self._persist()
        return self.entries

    def clear(self) -> None:
        self.entries = []
        self._persist()

    def filter(self, text: str) -> List[HistoryEntry]:
        """Autocomplete matches: id substring (case-sensitive) or title substring (any case)."""
        needle = text.lower()
        return [e for e in self.entries if text in e.id or needle in e.title.lower()]

    def _persist(self) -> None:
        self.storage.write(HISTORY_KEY, [e.to_dict() for e in self.entries])


class AnalyticsCounter:
    """Search counter with a rolling latency window and a moving average."""
    def __init__(self, storage: StorageService, window: int = 50, recent: int = 10):
        self.storage = storage
        self.window = window
        self.recent = recent
        self.snapshot = self._load()

    def _load(self) -> AnalyticsSnapshot:
        stored = self.storage.read(ANALYTICS_KEY, None)
        if not isinstance(stored, dict):
            return AnalyticsSnapshot()
        try:
            return AnalyticsSnapshot.from_dict(stored)
        except (KeyError, TypeError, ValueError):
            return AnalyticsSnapshot()

    def track(self, identifier: str, elapsed_ms: int) -> AnalyticsSnapshot:
        prev = self.snapshot
        search_times = [*prev.search_times, elapsed_ms][-self.window:]
        recent = [RecentSearch(id=identifier, time=elapsed_ms), *prev.recent_searches][:self.recent]
        self.snapshot = AnalyticsSnapshot(
            total_searches=prev.total_searches + 1,
            avg_response_time=sum(search_times) / len(search_times),
            search_times=search_times,
            recent_searches=recent,
        )
        self.storage.write(ANALYTICS_KEY, self.snapshot.to_dict())
        return self.snapshot


class ThemeStore:
    """Persists the dark/light preference."""
    def __init__(self, storage: StorageService):
        self.storage = storage

    def load(self) -> str:
        return "light" if self.storage.read(THEME_KEY, "dark") == "light" else "dark"

    def save(self, theme: str) -> None:
        self.storage.write(THEME_KEY, theme)


class UrlState:
    """Tracks the current location and mirrors the active identifier into its `v` parameter."""
    PARAM = "v"

    def __init__(self, location: str, share_base: str):
        self.location = location
        self.share_base = share_base

    @classmethod
    def from_target(cls, target: Optional[str], share_base: str) -> "UrlState":
        """Accepts a full share URL or a bare identifier from the command line."""
        if target and "://" in target:
            return cls(target, share_base)
        state = cls(share_base, share_base)
        if target:
            state.write(target.strip())
        return state

    def read(self) -> str:
        query = dict(parse_qsl(urlsplit(self.location).query))
        return query.get(self.PARAM, "")

    def write(self, identifier: str) -> str:
        parts = urlsplit(self.location)
        query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != self.PARAM]
        if identifier:
            query.append((self.PARAM, identifier))
        # replace, never push: only one current location is kept
        self.location = urlunsplit(parts._replace(query=urlencode(query)))
        return self.location

    def share_link(self, identifier: str) -> str:
        parts = urlsplit(self.share_base)
        query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != self.PARAM]
        query.append((self.PARAM, identifier))
        return urlunsplit(parts._replace(query=urlencode(query)))


class Clipboard:
    """Write-only clipboard access."""
    def copy(self, text: str) -> bool:
        try:
            pyperclip.copy(text)
            return True
        except pyperclip.PyperclipException as e:
            logger.debug("Clipboard write failed: %s", e)
            return False


class MetadataError(Exception):
    """A failed lookup, carrying the message shown to the user."""


class MetadataService:
    """Fetches entity metadata, tracks rate limits and request generations."""
    def __init__(self, config: Config, history: SearchHistoryStore, analytics: AnalyticsCounter,
                 session: Optional[requests.Session] = None):
        self.config = config
        self.history = history
        self.analytics = analytics
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": config.USER_AGENT})
        self.rate_limit = RateLimit()
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def endpoint(self) -> str:
        return f"{self.config.API_BASE_URL.rstrip('/')}/api/metadata"

    # --- request generations ---
    def begin(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def is_latest(self, token: int) -> bool:
        return token == self._generation

    # --- network ---
    def _request(self, identifier: str) -> List[TitleEntity]:
        """Performs one GET and returns its entities, raising MetadataError on any failure."""
        try:
            r = self.session.get(self.endpoint, params={"videoId": identifier},
                                 timeout=self.config.REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise MetadataError(str(e) or "An unexpected error occurred") from e

        self._update_rate_limit(r.headers)

        try:
            body = r.json()
        except ValueError as e:
            raise MetadataError("Invalid response from metadata service") from e
        if not isinstance(body, dict):
            body = {}

        if not r.ok:
            raise MetadataError(body.get("error") or "Failed to fetch metadata")

        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise MetadataError("Invalid response from metadata service")
        entities = data.get("unifiedEntities") or []
        if not isinstance(entities, list):
            raise MetadataError("Invalid response from metadata service")
        return [TitleEntity(raw=item) for item in entities if isinstance(item, dict)]

    def _update_rate_limit(self, headers) -> None:
        remaining = headers.get("X-RateLimit-Remaining")
        limit = headers.get("X-RateLimit-Limit")
        if not remaining or not limit:
            return
        try:
            self.rate_limit = RateLimit(remaining=int(remaining), limit=int(limit))
        except ValueError:
            logger.debug("Ignoring malformed rate-limit headers %r/%r", remaining, limit)

    def fetch_one(self, identifier: str, token: int) -> SearchOutcome:
        """Single lookup. Safe to run in a worker thread; touches no storage."""
        start = time.perf_counter()
        try:
            entities = self._request(identifier)
            if not entities:
                raise MetadataError("No content found for this Video ID")
        except MetadataError as e:
            return SearchOutcome(token=token, identifiers=[identifier], error=str(e))
        elapsed_ms = round((time.perf_counter() - start) * 1000)
        return SearchOutcome(token=token, identifiers=[identifier], entities=entities[:1],
                             elapsed_ms=elapsed_ms)

    def fetch_batch(self, identifiers: Iterable[str], token: int) -> SearchOutcome:
        """Sequential lookups of up to MAX_BATCH ids; individual failures are skipped."""
        ids = list(identifiers)[:self.config.MAX_BATCH]
        start = time.perf_counter()
        collected: List[TitleEntity] = []
        for identifier in ids:
            try:
                entities = self._request(identifier)
            except MetadataError as e:
                logger.info("Skipping %s in batch: %s", identifier, e)
                continue
            if entities:
                collected.append(entities[0])
        if not collected:
            return SearchOutcome(token=token, identifiers=ids, is_batch=True,
                                 error="No content found for any of the provided IDs")
        elapsed_ms = round((time.perf_counter() - start) * 1000)
        return SearchOutcome(token=token, identifiers=ids, entities=collected,
                             elapsed_ms=elapsed_ms, is_batch=True)

    # --- state updates (UI loop only) ---
    def apply(self, outcome: SearchOutcome) -> bool:
        """Records a successful outcome in history/analytics. Returns False for stale outcomes."""
        if not self.is_latest(outcome.token):
            logger.debug("Discarding stale outcome %d for %s", outcome.token, outcome.identifiers)
            return False
        if not outcome.ok:
            return True
        if outcome.is_batch:
            self.analytics.track(",".join(outcome.identifiers), outcome.elapsed_ms)
        else:
            identifier = outcome.identifiers[0]
            self.history.record(identifier, outcome.entities[0].title)
            self.analytics.track(identifier, outcome.elapsed_ms)
        return True

    def search_one(self, identifier: str) -> SearchOutcome:
        outcome = self.fetch_one(identifier, self.begin())
        self.apply(outcome)
        return outcome

    def search_batch(self, identifiers: Iterable[str]) -> SearchOutcome:
        outcome = self.fetch_batch(identifiers, self.begin())
        self.apply(outcome)
        return outcome


def parse_query(query: str, batch_mode: bool = False) -> Tuple[List[str], bool]:
    """Splits raw input into identifiers; returns (ids, is_batch)."""
    trimmed = query.strip()
    if not trimmed:
        return [], False
    if batch_mode or "," in trimmed:
        return [part.strip() for part in trimmed.split(",") if part.strip()], True
    return [trimmed], False
