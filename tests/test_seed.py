"""
Tests for lienbridge.seed -- Seed Sources.

Covers: JSON and YAML file seeds, missing and malformed files, HTTP seeds
with a mocked session, and source selection by location.
"""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests
import yaml

from lienbridge.seed import (
    DataLoadError,
    FileSeedSource,
    HttpSeedSource,
    seed_source_for,
)


_SEED = {"providers": [], "attorneys": [], "cases": [], "events": []}


class TestFileSeedSource:
    def test_reads_json(self, tmp_path: Path):
        path = tmp_path / "seed.json"
        path.write_text(json.dumps(_SEED))
        assert FileSeedSource(path).fetch() == _SEED

    def test_reads_yaml(self, tmp_path: Path):
        path = tmp_path / "seed.yaml"
        path.write_text(yaml.safe_dump(_SEED))
        assert FileSeedSource(path).fetch() == _SEED

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(DataLoadError, match="not found"):
            FileSeedSource(tmp_path / "absent.json").fetch()

    def test_malformed_json_raises(self, tmp_path: Path):
        path = tmp_path / "seed.json"
        path.write_text("{not json")
        with pytest.raises(DataLoadError):
            FileSeedSource(path).fetch()

    def test_non_mapping_raises(self, tmp_path: Path):
        path = tmp_path / "seed.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(DataLoadError, match="mapping"):
            FileSeedSource(path).fetch()

    @pytest.mark.parametrize("name", ["seed.json", "seed.yaml"])
    def test_invalid_utf8_raises(self, tmp_path: Path, name: str):
        path = tmp_path / name
        path.write_bytes(b'{"providers": "\xff\xfe"}')
        with pytest.raises(DataLoadError, match="Failed to read seed file"):
            FileSeedSource(path).fetch()


def _session_returning(payload=None, status_error=None, exc=None) -> MagicMock:
    session = MagicMock()
    if exc is not None:
        session.get.side_effect = exc
        return session
    response = MagicMock()
    response.json.return_value = payload
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    session.get.return_value = response
    return session


class TestHttpSeedSource:
    def test_fetches_json(self):
        session = _session_returning(payload=_SEED)
        source = HttpSeedSource("https://data.example.com/seed.json", timeout=5, session=session)
        assert source.fetch() == _SEED
        session.get.assert_called_once_with("https://data.example.com/seed.json", timeout=5)

    def test_http_error_raises(self):
        session = _session_returning(status_error=requests.HTTPError("404 Not Found"))
        with pytest.raises(DataLoadError, match="Failed to load application data"):
            HttpSeedSource("https://data.example.com/seed.json", session=session).fetch()

    def test_connection_error_raises(self):
        session = _session_returning(exc=requests.ConnectionError("refused"))
        with pytest.raises(DataLoadError):
            HttpSeedSource("https://data.example.com/seed.json", session=session).fetch()

    def test_invalid_json_raises(self):
        session = MagicMock()
        session.get.return_value.json.side_effect = ValueError("bad json")
        with pytest.raises(DataLoadError, match="not valid JSON"):
            HttpSeedSource("https://data.example.com/seed.json", session=session).fetch()


class TestSeedSourceFor:
    def test_url_selects_http(self):
        assert isinstance(seed_source_for("https://data.example.com/seed.json"), HttpSeedSource)

    def test_path_selects_file(self, tmp_path: Path):
        source = seed_source_for(tmp_path / "seed.json")
        assert isinstance(source, FileSeedSource)
        assert source.location == str(tmp_path / "seed.json")
