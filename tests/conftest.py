from __future__ import annotations

import copy
from typing import Any

import pytest
import requests

from config import Config
from services import AnalyticsCounter, SearchHistoryStore, StorageService

ENTITY = {
    "__typename": "Movie",
    "videoId": 81767635,
    "title": "Glass Onion",
    "unifiedEntityId": "Video:81767635",
    "latestYear": 2022,
    "runtimeSec": 8340,
    "isAvailable": True,
    "availabilityStartTime": "2022-12-23T08:00:00.000Z",
    "playbackBadges": ["VIDEO_ULTRA_HD", "VIDEO_HDR", "AUDIO_DOLBY_ATMOS"],
    "watchStatus": "NOT_STARTED",
    "isInPlaylist": False,
    "promoVideo": None,
    "taglineMessages": [{"tagline": "A new Knives Out mystery", "typedClassification": "NONE"}],
    "textEvidence": [{"key": "tags", "text": "Mystery, Comedy, Whodunit"}],
    "contentAdvisory": {
        "certificationValue": "PG-13",
        "boardName": "MPA",
        "maturityLevel": 90,
        "reasons": [{"text": "language"}, {"text": "violence"}],
    },
    "boxart": {"available": True, "url": "https://img.example/boxart.jpg", "width": 342, "height": 192},
    "boxartHighRes": {"available": False, "url": "https://img.example/boxart-hd.jpg", "width": 1280, "height": 720},
    "storyArt": {"available": True, "url": "https://img.example/story.jpg", "width": 1920, "height": 1080},
    "titleLogoBranded": None,
    "titleLogoUnbranded": {"available": False, "url": "", "width": 0, "height": 0},
}


def make_entity(video_id: int | str = 81767635, **overrides: Any) -> dict:
    entity = copy.deepcopy(ENTITY)
    entity["videoId"] = int(video_id) if str(video_id).isdigit() else video_id
    entity.update(overrides)
    return entity


class FakeResponse:
    def __init__(self, *, status_code: int = 200, body: Any = None, headers: dict | None = None,
                 raw_text: str | None = None) -> None:
        self.status_code = status_code
        self._body = body
        self._raw_text = raw_text
        self.headers = headers or {}

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._raw_text is not None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._body


class FakeSession:
    """Stands in for requests.Session; answers by videoId."""

    def __init__(self, responses: dict[str, Any] | None = None, default: Any = None) -> None:
        self.responses = responses or {}
        self.default = default
        self.headers: dict[str, str] = {}
        self.calls: list[str] = []

    def get(self, url: str, params: dict | None = None, timeout: float | None = None):  # noqa: ANN201
        video_id = (params or {}).get("videoId")
        self.calls.append(video_id)
        response = self.responses.get(video_id, self.default)
        if isinstance(response, Exception):
            raise response
        if response is None:
            return FakeResponse(body={"data": {"unifiedEntities": []}})
        return response


def found(video_id: str, headers: dict | None = None, **overrides: Any) -> FakeResponse:
    return FakeResponse(body={"data": {"unifiedEntities": [make_entity(video_id, **overrides)]}}, headers=headers)


def connection_error() -> requests.ConnectionError:
    return requests.ConnectionError("Connection refused")


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(API_BASE_URL="http://metadata.test", SHARE_BASE_URL="http://explorer.test/",
                  DATABASE_FILENAME=str(tmp_path / "state.db"))


@pytest.fixture
def storage(config):
    service = StorageService(config.DATABASE_FILENAME)
    yield service
    service.close()


@pytest.fixture
def history(storage) -> SearchHistoryStore:
    return SearchHistoryStore(storage)


@pytest.fixture
def analytics(storage) -> AnalyticsCounter:
    return AnalyticsCounter(storage)
