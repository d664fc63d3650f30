from __future__ import annotations

import sys

import pytest

import main
from config import Config
from services import UrlState


def test_bare_identifier_target_becomes_location() -> None:
    state = UrlState.from_target("81767635", "http://explorer.test/")

    assert state.read() == "81767635"
    assert state.location == "http://explorer.test/?v=81767635"


def test_share_url_target_is_read() -> None:
    state = UrlState.from_target("http://explorer.test/?v=80057281", "http://explorer.test/")

    assert state.read() == "80057281"


def test_no_target_has_no_identifier() -> None:
    assert UrlState.from_target(None, "http://explorer.test/").read() == ""


def test_write_replaces_parameter_and_keeps_others() -> None:
    state = UrlState("http://explorer.test/?ref=home&v=1", "http://explorer.test/")

    state.write("2")
    state.write("3")

    assert state.location == "http://explorer.test/?ref=home&v=3"
    assert state.location.count("v=") == 1


def test_write_empty_removes_parameter() -> None:
    state = UrlState("http://explorer.test/?v=1", "http://explorer.test/")

    state.write("")

    assert state.read() == ""
    assert state.location == "http://explorer.test/"


def test_share_link() -> None:
    state = UrlState("http://explorer.test/", "http://explorer.test/")

    assert state.share_link("81767635") == "http://explorer.test/?v=81767635"


def test_config_from_env_overrides_defaults() -> None:
    config = Config.from_env({"METADATA_API_URL": "http://api.test", "METADATA_REQUEST_TIMEOUT": "3.5"})

    assert config.API_BASE_URL == "http://api.test"
    assert config.REQUEST_TIMEOUT == 3.5
    assert config.MAX_BATCH == 4


def test_share_link_keeps_existing_query() -> None:
    state = UrlState("http://explorer.test/", "http://explorer.test/app?ref=share&v=old")

    assert state.share_link("81767635") == "http://explorer.test/app?ref=share&v=81767635"


def test_bad_timeout_setting_is_a_usage_error(monkeypatch, capsys) -> None:
    monkeypatch.setenv("METADATA_REQUEST_TIMEOUT", "soon")
    monkeypatch.setattr(sys, "argv", ["metadata-explorer"])

    with pytest.raises(SystemExit) as exc:
        main.run()

    assert exc.value.code == 2
    assert "invalid METADATA_* environment setting" in capsys.readouterr().err
