from __future__ import annotations

import logging
import time

import httpx

from .surveycache import CacheMode
from .surveycache import ResponseCache
from .surveyconfig import SurveyConfig
from .surveycrawler import HierarchyCrawler
from .surveyemitter import SurveyEmitter
from .surveyfetcher import ArtifactFetcher
from .surveyinspector import ArtifactInspector
from .surveymodel import CrawlTally
from .surveystore import CacheStore


class Survey:
    """Crawl a package repository once and report what was found."""

    logger = logging.getLogger(__name__)

    def __init__(
        self,
        config: SurveyConfig,
        *,
        cache_mode: CacheMode | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize a new Survey.

        Args:
            config: The configuration to use for this survey.

        Keyword Args:
            cache_mode: Overrides the cache mode of the config.
            transport: Transport for the http client, the network by default.

        NOTE: Opening the database is the one failure that stops the survey
            before it starts.
        """
        self._config = config
        self._store = CacheStore.from_config(config)
        self._client = httpx.Client(
            follow_redirects=True,
            timeout=config.http_timeout,
            transport=transport,
        )
        self._cache = ResponseCache(
            self._store,
            self._client,
            mode=cache_mode or config.cache_mode,
        )
        self._emitter = SurveyEmitter(config)
        self._crawler = HierarchyCrawler(
            self._cache,
            ArtifactFetcher(self._client, config.root_url),
            ArtifactInspector(),
            self._emitter,
            root_url=config.root_url,
            artifact_directory=config.artifact_directory,
            target_month=config.target_month,
            reporting_depth=config.reporting_depth,
            max_artifacts_per_parent=config.max_artifacts_per_parent,
            workers=config.workers,
        )

    def run_once(self) -> CrawlTally:
        """Run the survey once, emit the results and release resources."""
        try:
            tally = self.crawl()
            self.emit()

        finally:
            self.close()

        return tally

    def crawl(self) -> CrawlTally:
        """Walk the repository and queue the results for emitting."""
        self.logger.info(
            "Surveying %s for %04d-%02d (cache mode %s)...",
            self._config.root_url,
            *self._config.target_month,
            self._cache.mode.value,
        )
        tic = time.perf_counter()

        with self._store as data_store:
            tally = self._crawler.crawl()
            cached = data_store.count()

        self._emitter.add_line(str(tally))

        toc = time.perf_counter()
        self.logger.info("Survey finished in %s seconds", toc - tic)
        self.logger.info("%s listing pages held in cache", cached)
        return tally

    def emit(self) -> None:
        """Emit the queued results to defined outputs."""
        self.logger.info("Emitting results...")
        tic = time.perf_counter()

        self._emitter.emit()

        toc = time.perf_counter()
        self.logger.info("Emitting finished in %s seconds", toc - tic)

    def close(self) -> None:
        """Close the http client and the database."""
        self._client.close()
        self._store.close()
