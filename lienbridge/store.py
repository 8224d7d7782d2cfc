"""
Case Store -- Owner of the Dataset and Its Session Persistence.

The store holds exactly one ``AppData`` snapshot at a time.  Writes never
edit a snapshot in place: ``add_case()`` and ``add_event()`` build a new
snapshot with the record appended, swap it in, bump ``version`` and mirror
it to the session cache.

**Lifecycle:**

    (empty) -> load() -> loaded -> add_case()/add_event() -> loaded
                  |                      |
                  v                      v
                error   <-- reset() ----+

* ``load()`` prefers a cached snapshot and falls back to the seed source.
  Once data is present, further calls return it without refetching.
* ``reset()`` discards the cached snapshot and reloads from the seed.  A
  reset issued while a load is in flight wins: the older load's result is
  dropped when it completes.
* A failed seed fetch leaves ``data`` as ``None`` and ``error`` set.  No
  partial dataset is ever exposed.

Cache writes are best-effort.  A failing cache backend is logged, counted
and reported to ``on_cache_error``, but the in-memory snapshot stays
authoritative and the calling mutation succeeds.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Callable, Optional

from pydantic import ValidationError

from lienbridge.cache import DirectorySessionCache, MemorySessionCache, SessionCache
from lienbridge.config import DEFAULT_CACHE_KEY, DashboardConfig
from lienbridge.models import AppData, Case, CaseEvent
from lienbridge.seed import DataLoadError, SeedSource, seed_source_for
from lienbridge.selectors import PortfolioSelectors

logger = logging.getLogger(__name__)


class StoreNotLoadedError(Exception):
    """Raised when the store is written to or queried before a successful load."""
    pass


class CaseStore:
    """Single-session owner of the dashboard dataset.

    Args:
        seed_source: Read-only origin of the initial dataset.
        cache: Session cache backend.  Defaults to an in-memory cache.
        cache_key: Key under which the snapshot is cached.
        on_cache_error: Optional callback invoked with each swallowed
            cache-write exception.
        at_risk_limit: Passed through to ``PortfolioSelectors``.
        at_risk_recovery_percent: Passed through to ``PortfolioSelectors``.
        recent_activity_limit: Passed through to ``PortfolioSelectors``.
    """

    def __init__(
        self,
        seed_source: SeedSource,
        cache: Optional[SessionCache] = None,
        cache_key: str = DEFAULT_CACHE_KEY,
        on_cache_error: Optional[Callable[[Exception], None]] = None,
        at_risk_limit: int = 5,
        at_risk_recovery_percent: float = 50.0,
        recent_activity_limit: int = 5,
    ) -> None:
        self._seed_source = seed_source
        self._cache = cache if cache is not None else MemorySessionCache()
        self._cache_key = cache_key
        self._on_cache_error = on_cache_error
        self._selector_options = {
            "at_risk_limit": at_risk_limit,
            "at_risk_recovery_percent": at_risk_recovery_percent,
            "recent_activity_limit": recent_activity_limit,
        }

        self._lock = threading.Lock()
        self._data: Optional[AppData] = None
        self._error: Optional[str] = None
        self._loading = False
        self._generation = 0
        self._version = 0
        self._cache_write_failures = 0
        self._selectors: Optional[PortfolioSelectors] = None
        self._selectors_version = -1

    # -- read state --

    @property
    def data(self) -> Optional[AppData]:
        return self._data

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def version(self) -> int:
        """Incremented every time the snapshot is replaced."""
        return self._version

    @property
    def cache_write_failures(self) -> int:
        return self._cache_write_failures

    def snapshot(self) -> Optional[AppData]:
        """Return the current dataset, or ``None`` before a successful load."""
        return self._data

    def selectors(self) -> PortfolioSelectors:
        """Return the selector view bound to the current snapshot.

        The same instance is returned until the snapshot changes.

        Raises:
            StoreNotLoadedError: If no dataset is loaded.
        """
        with self._lock:
            data = self._require_data()
            if self._selectors is None or self._selectors_version != self._version:
                self._selectors = PortfolioSelectors(data, **self._selector_options)
                self._selectors_version = self._version
            return self._selectors

    # -- helpers --

    def _require_data(self) -> AppData:
        if self._data is None:
            raise StoreNotLoadedError(
                "Case store has no data loaded. Call load() before writing or querying."
            )
        return self._data

    def _replace(self, data: Optional[AppData]) -> None:
        """Swap in a new snapshot.  Caller holds the lock."""
        self._data = data
        self._version += 1

    def _restore_from_cache(self) -> Optional[AppData]:
        try:
            blob = self._cache.get(self._cache_key)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(f"Session cache unreadable for key '{self._cache_key}': {exc}")
            return None
        if blob is None:
            logger.debug(f"Session cache miss for key '{self._cache_key}'")
            return None
        try:
            return AppData.model_validate(json.loads(blob))
        except (ValueError, ValidationError) as exc:
            logger.warning(
                f"Discarding invalid cached snapshot for key '{self._cache_key}': {exc}"
            )
            return None

    def _fetch_seed(self) -> AppData:
        raw = self._seed_source.fetch()
        try:
            return AppData.model_validate(raw)
        except ValidationError as exc:
            raise DataLoadError(
                f"Seed data at {self._seed_source.location} failed validation: {exc}"
            ) from exc

    def _sync_cache(self, data: AppData) -> None:
        """Mirror ``data`` to the session cache.  Never raises."""
        try:
            self._cache.set(self._cache_key, json.dumps(data.to_json_dict()))
        except (OSError, TypeError, ValueError) as exc:
            self._cache_write_failures += 1
            logger.warning(
                f"Failed to write session cache for key '{self._cache_key}' "
                f"({self._cache_write_failures} failures so far): {exc}"
            )
            if self._on_cache_error is not None:
                try:
                    self._on_cache_error(exc)
                except Exception:
                    logger.exception("on_cache_error callback raised; ignoring")

    def _run_load(self, generation: int, use_cache: bool) -> Optional[AppData]:
        try:
            data = self._restore_from_cache() if use_cache else None
            error: Optional[str] = None
            if data is None:
                try:
                    data = self._fetch_seed()
                except DataLoadError as exc:
                    error = str(exc) or "Failed to load application data"
        except Exception as exc:
            # A seed source outside DataLoadError's contract still ends the load.
            with self._lock:
                if generation == self._generation:
                    self._loading = False
                    self._error = f"Failed to load application data: {exc}"
                    logger.exception("Case store load failed")
            raise

        with self._lock:
            if generation != self._generation:
                logger.debug(f"Discarding superseded load (generation {generation})")
                return None
            self._loading = False
            if error is not None:
                self._error = error
                logger.error(f"Case store load failed: {error}")
                return None
            self._error = None
            self._replace(data)
            self._sync_cache(data)
        logger.info(
            f"Case store loaded {len(data.cases)} cases, {len(data.events)} events "
            f"(version {self._version})"
        )
        return data

    # -- lifecycle --

    def load(self) -> Optional[AppData]:
        """Activate the store.

        Returns:
            The loaded dataset; ``None`` if the load failed (see ``error``),
            was superseded by a reset, or another load is already running.
        """
        with self._lock:
            if self._data is not None:
                return self._data
            if self._loading:
                return None
            self._loading = True
            generation = self._generation
        return self._run_load(generation, use_cache=True)

    def reset(self) -> Optional[AppData]:
        """Discard all session changes and reload from the seed source.

        Returns:
            The fresh dataset, or ``None`` if the seed fetch failed.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._loading = True
            self._error = None
            self._replace(None)
            try:
                self._cache.delete(self._cache_key)
            except OSError as exc:
                logger.warning(f"Failed to clear session cache key '{self._cache_key}': {exc}")
        logger.info(f"Resetting case store from {self._seed_source.location}")
        return self._run_load(generation, use_cache=False)

    # -- mutations --

    def add_case(self, case: Case) -> AppData:
        """Append ``case`` to the portfolio.

        Case ids are not checked for uniqueness; a duplicate only shadows
        the later case for first-match lookups.

        Raises:
            StoreNotLoadedError: If no dataset is loaded.
        """
        with self._lock:
            data = self._require_data()
            updated = data.model_copy(update={"cases": [*data.cases, case]})
            self._replace(updated)
            self._sync_cache(updated)
        logger.debug(f"Added case {case.id} (version {self._version})")
        return updated

    def add_event(self, event: CaseEvent) -> AppData:
        """Append ``event`` to the workflow log.  ``case_id`` is not validated.

        Raises:
            StoreNotLoadedError: If no dataset is loaded.
        """
        with self._lock:
            data = self._require_data()
            updated = data.model_copy(update={"events": [*data.events, event]})
            self._replace(updated)
            self._sync_cache(updated)
        logger.debug(f"Added {event.type.value} event for case {event.case_id}")
        return updated


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def build_store(
    config: DashboardConfig,
    on_cache_error: Optional[Callable[[Exception], None]] = None,
) -> CaseStore:
    """Wire the configured seed source and session cache into a ``CaseStore``."""
    cache: SessionCache
    if config.cache_dir is None:
        cache = MemorySessionCache()
    else:
        cache = DirectorySessionCache(config.cache_dir)
    return CaseStore(
        seed_source=seed_source_for(config.seed_source, timeout=config.seed_timeout_seconds),
        cache=cache,
        cache_key=config.cache_key,
        on_cache_error=on_cache_error,
        at_risk_limit=config.at_risk_limit,
        at_risk_recovery_percent=config.at_risk_recovery_percent,
        recent_activity_limit=config.recent_activity_limit,
    )
