from __future__ import annotations

import logging
import os
import re
from concurrent.futures import Executor
from concurrent.futures import Future
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from .surveycache import ResponseCache
from .surveyemitter import SurveyEmitter
from .surveyfetcher import ArtifactFetcher
from .surveyinspector import ArtifactInspector
from .surveymodel import SEPARATOR
from .surveymodel import Classification
from .surveymodel import CrawlTally
from .surveymodel import DirectoryEntry
from .surveymodel import Reachable
from .surveymodel import TraversalPath
from .surveymodel import Unreachable

# An anchor followed by the date column, `-` for directories.
LISTING_PATTERN = re.compile(r'href="([^"]*)".*</a>\s+([-0-9]+) ')
DIRECTORY_DATE = "-"
METADATA_PREFIXES = ("maven-metadata.xml",)
PARENT_LINK = "../"
PRIMARY_EXTENSIONS = (".jar", ".aar")

logger = logging.getLogger(__name__)


def parse_listing(page: str) -> list[DirectoryEntry]:
    """Parse the rows of a directory listing page into entries."""
    entries: list[DirectoryEntry] = []

    for match in LISTING_PATTERN.finditer(page):
        name, token = match.group(1), match.group(2)

        # Empty anchors show up on some group pages
        if not name or name == PARENT_LINK or name.startswith(METADATA_PREFIXES):
            continue

        if token == DIRECTORY_DATE:
            entries.append(DirectoryEntry(name))
            continue

        try:
            last_modified = datetime.strptime(token[:10], "%Y-%m-%d").date()

        except ValueError:
            logger.debug("Ignoring '%s' with unparsable date '%s'", name, token)
            continue

        entries.append(DirectoryEntry(name, last_modified))

    return entries


class HierarchyCrawler:
    """Walk a repository listing and inspect artifacts from a target month."""

    logger = logging.getLogger(__name__)

    def __init__(
        self,
        cache: ResponseCache,
        fetcher: ArtifactFetcher,
        inspector: ArtifactInspector,
        emitter: SurveyEmitter,
        *,
        root_url: str,
        artifact_directory: str,
        target_month: tuple[int, int],
        reporting_depth: int = 2,
        max_artifacts_per_parent: int = 5,
        workers: int = 1,
    ) -> None:
        """
        Initialize the crawler.

        Args:
            cache: Every listing page is fetched through this cache.
            fetcher: Downloads artifacts selected for inspection.
            inspector: Classifies downloaded artifacts.
            emitter: Receives reported paths and signed artifacts.

        Keyword Args:
            root_url: The repository root, ending in a slash.
            artifact_directory: Local directory mirroring downloaded artifacts.
            target_month: The (year, month) versions must be dated in.
            reporting_depth: Paths at this depth are reported when their
                subtree held an inspected artifact. Defaults to 2.
            max_artifacts_per_parent: Artifacts inspected per listing before
                further candidates are skipped. Defaults to 5.
            workers: Threads walking the root's subdirectories. Defaults to 1.
        """
        self._cache = cache
        self._fetcher = fetcher
        self._inspector = inspector
        self._emitter = emitter
        self._root_url = root_url
        self._artifact_directory = artifact_directory
        self._target_month = target_month
        self._reporting_depth = reporting_depth
        self._max_artifacts_per_parent = max_artifacts_per_parent
        self._workers = workers

    def crawl(self, root: TraversalPath | None = None) -> CrawlTally:
        """Walk the whole hierarchy below root and return the tally."""
        root = root or TraversalPath()

        if self._workers <= 1:
            return self._walk(root)

        with ThreadPoolExecutor(max_workers=self._workers) as executor:
            return self._walk(root, executor)

    def _walk(
        self,
        path: TraversalPath,
        executor: Executor | None = None,
    ) -> CrawlTally:
        """
        Walk one listing and everything below it.

        When an executor is given the subdirectories of this listing are
        walked on it. Deeper levels always run on the calling thread.
        """
        page = self._fetch_listing(path)
        if isinstance(page, Unreachable):
            self.logger.debug("Skipping '%s': %s", path, page.reason)
            return CrawlTally(unreachable=1)

        tally = CrawlTally()
        pending: list[Future[CrawlTally]] = []
        inspected = 0

        for entry in parse_listing(page.body):
            child = path + entry.name

            if entry.is_subdirectory:
                if executor is not None:
                    pending.append(executor.submit(self._walk, child))
                else:
                    tally += self._walk(child)
                continue

            if not self._is_candidate(path, entry, inspected):
                continue

            try:
                classification = self.resolve_artifact(child)

            except Exception as error:
                # One bad artifact only drops itself.
                self.logger.warning("Could not resolve '%s': %s", child, error)
                tally.failed += 1
                continue

            tally.count(classification)
            if classification is not None:
                inspected += 1

        for future in pending:
            tally += future.result()

        if path.depth == self._reporting_depth:
            tally.visited += 1
            if tally.found:
                tally.reported += 1
                self.logger.info("Reporting '%s'", path)
                self._emitter.add_line(str(path))

        return tally

    def _fetch_listing(self, path: TraversalPath) -> Reachable | Unreachable:
        """Fetch a listing page. Any failure makes the page unreachable."""
        try:
            return Reachable(self._cache.get(self._root_url + str(path)))

        except Exception as error:
            return Unreachable(f"{type(error).__name__}: {error}")

    def _is_candidate(
        self,
        path: TraversalPath,
        entry: DirectoryEntry,
        inspected: int,
    ) -> bool:
        """True if a dated entry of the listing at path should be resolved."""
        # The root and its children are group levels, never versions.
        if path.depth == 0 or not entry.in_month(*self._target_month):
            return False

        if inspected >= self._max_artifacts_per_parent:
            self.logger.debug("Quota reached in '%s', skipping '%s'", path, entry.name)
            return False

        return True

    def resolve_artifact(self, path: TraversalPath) -> Classification | None:
        """
        Find, download and classify the primary binary of a version directory.

        The artifact name and version are the last two segments of the path.
        `name-version.jar` is preferred over `name-version.aar`.

        Returns:
            The classification, or None when the listing offers neither file.

        Raises:
            UnexpectedResponse: the listing or the artifact could not be fetched.
            httpx.HTTPError: the transfer failed.
        """
        if path.depth < 2 or not path.is_directory:
            return None

        name = path.segments[-2].rstrip(SEPARATOR)
        version = path.segments[-1].rstrip(SEPARATOR)

        page = self._cache.get(self._root_url + str(path))

        for extension in PRIMARY_EXTENSIONS:
            filename = f"{name}-{version}{extension}"
            if f'href="{filename}"' in page:
                return self._inspect(path + filename)

        self.logger.debug("No primary artifact in '%s'", path)
        return None

    def _inspect(self, path: TraversalPath) -> Classification:
        """Download the artifact at path if needed and classify it."""
        remote_path = str(path)
        local_path = os.path.join(
            self._artifact_directory, *remote_path.split(SEPARATOR)
        )

        self._fetcher.fetch(remote_path, local_path)
        classification = self._inspector.classify(local_path)

        if classification is Classification.SIGNED:
            self.logger.info("Found signed artifact: %s", remote_path)
            self._emitter.add_line(f"FOUND SIGNED ARTIFACT: {remote_path}")

        return classification
