"""
Seed Sources -- Read-Only Origins of the Initial Dataset.

A seed source returns the raw ``{providers, attorneys, cases, events}``
document the case store validates into ``AppData``.  Seeds are fetched on
first load (when no cached snapshot exists) and again on every reset.
Nothing is ever written back to a seed source.

Any failure to reach or decode the source is reported as
``DataLoadError`` so the store has exactly one failure type to turn into
its ``error`` state.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import requests
import yaml


class DataLoadError(Exception):
    """Raised when the seed dataset cannot be fetched, parsed, or validated."""
    pass


class SeedSource(ABC):
    """Interface for a read-only seed dataset origin."""

    @abstractmethod
    def fetch(self) -> dict[str, Any]:
        """Return the raw dataset document.

        Raises:
            DataLoadError: If the source is unreachable or not a mapping.
        """

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable location, used in log and error messages."""


def _require_mapping(raw: Any, location: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise DataLoadError(
            f"Seed data at {location} must be a mapping with providers, "
            f"attorneys, cases and events; got {type(raw).__name__}."
        )
    return raw


class FileSeedSource(SeedSource):
    """Seed dataset stored in a local JSON or YAML file.

    The format is chosen by suffix: ``.yaml``/``.yml`` files are parsed with
    PyYAML, everything else as JSON.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def location(self) -> str:
        return str(self._path)

    def fetch(self) -> dict[str, Any]:
        if not self._path.exists():
            raise DataLoadError(f"Seed file not found: {self._path}")
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                if self._path.suffix.lower() in (".yaml", ".yml"):
                    raw = yaml.safe_load(f)
                else:
                    raw = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
            raise DataLoadError(f"Failed to read seed file {self._path}: {exc}") from exc
        return _require_mapping(raw, self.location)


class HttpSeedSource(SeedSource):
    """Seed dataset served over HTTP(S) as JSON.

    Args:
        url: Absolute URL of the dataset.
        timeout: Transport timeout in seconds.
        session: Optional ``requests.Session`` (injected in tests).
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def location(self) -> str:
        return self._url

    def fetch(self) -> dict[str, Any]:
        try:
            response = self._session.get(self._url, timeout=self._timeout)
            response.raise_for_status()
            raw = response.json()
        except requests.RequestException as exc:
            raise DataLoadError(f"Failed to load application data from {self._url}: {exc}") from exc
        except ValueError as exc:
            raise DataLoadError(f"Seed data at {self._url} is not valid JSON: {exc}") from exc
        return _require_mapping(raw, self.location)


def seed_source_for(location: str | Path, timeout: float = 30.0) -> SeedSource:
    """Pick the seed source implementation for a configured location."""
    text = str(location)
    if text.startswith(("http://", "https://")):
        return HttpSeedSource(text, timeout=timeout)
    return FileSeedSource(text)
