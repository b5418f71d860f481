from __future__ import annotations

import dataclasses
import enum
from datetime import date

SEPARATOR = "/"


class Classification(enum.Enum):
    """Result of inspecting a downloaded artifact."""

    SIGNED = "signed"
    UNSIGNED = "unsigned"
    UNREADABLE = "unreadable"


@dataclasses.dataclass(frozen=True)
class DirectoryEntry:
    """A single row of a directory listing page."""

    name: str
    last_modified: date | None = None

    @property
    def is_subdirectory(self) -> bool:
        """True when the listing showed no date for the entry."""
        return self.last_modified is None

    def in_month(self, year: int, month: int) -> bool:
        """True if the entry was last modified within the given month."""
        if self.last_modified is None:
            return False
        return (self.last_modified.year, self.last_modified.month) == (year, month)


@dataclasses.dataclass(frozen=True)
class TraversalPath:
    """Position in the repository hierarchy, relative to the root."""

    segments: tuple[str, ...] = ()

    def __add__(self, name: str) -> TraversalPath:
        return TraversalPath(self.segments + (name,))

    def __str__(self) -> str:
        return "".join(self.segments)

    @property
    def depth(self) -> int:
        """The root has depth 0, its children depth 1, and so on."""
        return len(self.segments)

    @property
    def is_directory(self) -> bool:
        return not self.segments or self.segments[-1].endswith(SEPARATOR)

    @classmethod
    def parse(cls, path: str) -> TraversalPath:
        """Build a path from its string form, e.g. `com/example/`."""
        segments = [f"{part}{SEPARATOR}" for part in path.split(SEPARATOR)[:-1]]
        tail = path.split(SEPARATOR)[-1]
        if tail:
            segments.append(tail)
        return cls(tuple(segment for segment in segments if segment != SEPARATOR))


@dataclasses.dataclass(frozen=True)
class CacheRecord:
    """A cache row in the database."""

    uri: str
    body: str
    validator: str | None = None
    fetched_at: int = 0


@dataclasses.dataclass(frozen=True)
class Reachable:
    """A listing page that was fetched."""

    body: str


@dataclasses.dataclass(frozen=True)
class Unreachable:
    """A listing page that could not be fetched; its subtree is pruned."""

    reason: str


@dataclasses.dataclass
class CrawlTally:
    """Counters for one subtree of the crawl. Tallies merge with `+`."""

    signed: int = 0
    unsigned: int = 0
    unreadable: int = 0
    unrecognized: int = 0
    failed: int = 0
    unreachable: int = 0
    visited: int = 0
    reported: int = 0

    def __add__(self, other: CrawlTally) -> CrawlTally:
        return CrawlTally(
            **{
                field.name: getattr(self, field.name) + getattr(other, field.name)
                for field in dataclasses.fields(self)
            }
        )

    @property
    def classified(self) -> int:
        """Artifacts that were classified as signed or unsigned."""
        return self.signed + self.unsigned

    @property
    def found(self) -> bool:
        """True if the subtree held at least one classified artifact."""
        return self.classified > 0

    def count(self, classification: Classification | None) -> None:
        """Add a single artifact resolution to the tally."""
        if classification is Classification.SIGNED:
            self.signed += 1
        elif classification is Classification.UNSIGNED:
            self.unsigned += 1
        elif classification is Classification.UNREADABLE:
            self.unreadable += 1
        else:
            self.unrecognized += 1

    def __str__(self) -> str:
        """Return the one line summary of the tally."""
        percent = (self.reported / self.visited * 100) if self.visited else 0.0
        return (
            f"{self.reported} of {self.visited} paths reported ({percent:.2f}%),"
            f" {self.signed} signed, {self.unsigned} unsigned,"
            f" {self.unreadable} unreadable, {self.unrecognized} unrecognized,"
            f" {self.failed} failed, {self.unreachable} unreachable"
        )
