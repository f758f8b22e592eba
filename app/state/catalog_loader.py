"""One-shot asynchronous catalog loading with an observable status."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from enum import Enum

from server.catalog import EclipseCatalog
from server.errors import CatalogError, CatalogLoadTimeout, ResourceUnavailable
from server.ingest.eclipse_catalog import CatalogBuild, CatalogReport, load_catalog_text
from server.ingest.sources import CatalogSource, read_source_text

_LOGGER = logging.getLogger(__name__)


class LoadStatus(str, Enum):
    """Lifecycle of a catalog load."""

    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


CatalogObserver = Callable[[LoadStatus, EclipseCatalog | None], None]


class CatalogLoader:
    """Loads a catalog source exactly once and publishes the result.

    ``load()`` may be awaited by any number of callers; the first call starts
    the single load task and every caller awaits that same task. The status
    moves from ``LOADING`` to ``READY`` once decoding finishes, however many
    records were skipped. A source that cannot be read leaves the status at
    ``LOADING`` and its :class:`ResourceUnavailable` is raised to every
    caller. When ``timeout_s`` is set and expires, the status becomes
    ``FAILED`` and callers receive :class:`CatalogLoadTimeout`. A load cut
    short by its event loop closing is forgotten, so a later ``load()`` on
    another loop reads the source again.
    """

    def __init__(self, source: CatalogSource, *, timeout_s: float | None = None) -> None:
        if timeout_s is not None and timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self._source = source
        self._timeout_s = timeout_s
        self._guard = threading.Lock()
        self._task: asyncio.Future[EclipseCatalog] | None = None
        self._status = LoadStatus.LOADING
        self._catalog: EclipseCatalog | None = None
        self._report: CatalogReport | None = None
        self._error: CatalogError | None = None
        self._observers: list[CatalogObserver] = []

    @property
    def source(self) -> CatalogSource:
        return self._source

    @property
    def status(self) -> LoadStatus:
        return self._status

    @property
    def catalog(self) -> EclipseCatalog | None:
        """The published catalog, or ``None`` until the status is ``READY``."""

        return self._catalog

    @property
    def report(self) -> CatalogReport | None:
        return self._report

    @property
    def error(self) -> CatalogError | None:
        return self._error

    def subscribe(self, observer: CatalogObserver) -> Callable[[], None]:
        """Register ``observer`` for the terminal transition; returns an unsubscribe callable.

        Observers subscribing after the load has finished are called immediately.
        """

        with self._guard:
            self._observers.append(observer)
            status, catalog = self._status, self._catalog
        if status is not LoadStatus.LOADING:
            self._notify(observer, status, catalog)

        def _unsubscribe() -> None:
            with self._guard:
                if observer in self._observers:
                    self._observers.remove(observer)

        return _unsubscribe

    async def load(self) -> EclipseCatalog:
        if self._status is LoadStatus.READY and self._catalog is not None:
            return self._catalog
        with self._guard:
            if self._task is None or self._task.cancelled():
                self._task = asyncio.ensure_future(self._run())
            task = self._task
        return await asyncio.shield(task)

    async def _decode(self) -> CatalogBuild:
        text = await asyncio.to_thread(read_source_text, self._source)
        return await asyncio.to_thread(load_catalog_text, text, source_name=self._source.name)

    async def _run(self) -> EclipseCatalog:
        try:
            if self._timeout_s is None:
                build = await self._decode()
            else:
                build = await asyncio.wait_for(self._decode(), timeout=self._timeout_s)
        except asyncio.CancelledError:
            # The owning event loop is shutting down; the next load() starts a fresh task.
            with self._guard:
                self._task = None
            _LOGGER.warning("Catalog %s load was cancelled before it finished", self._source.name)
            raise
        except ResourceUnavailable as exc:
            self._error = exc
            _LOGGER.error("Catalog %s unavailable: %s", self._source.name, exc)
            raise
        except TimeoutError:
            error = CatalogLoadTimeout(
                f"Catalog {self._source.name!r} did not load within {self._timeout_s} s"
            )
            self._error = error
            _LOGGER.error("%s", error)
            self._publish(LoadStatus.FAILED, None)
            raise error from None

        self._report = build.report
        self._catalog = build.catalog
        self._publish(LoadStatus.READY, build.catalog)
        return build.catalog

    def _publish(self, status: LoadStatus, catalog: EclipseCatalog | None) -> None:
        with self._guard:
            self._status = status
            observers = list(self._observers)
        _LOGGER.info("Catalog %s is %s", self._source.name, status.value)
        for observer in observers:
            self._notify(observer, status, catalog)

    def _notify(
        self, observer: CatalogObserver, status: LoadStatus, catalog: EclipseCatalog | None
    ) -> None:
        try:
            observer(status, catalog)
        except Exception as exc:
            _LOGGER.warning("Catalog observer %r failed: %s", observer, exc)


__all__ = ["CatalogLoader", "CatalogObserver", "LoadStatus"]
