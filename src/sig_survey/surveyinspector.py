from __future__ import annotations

import logging
import zipfile
import zlib

from .surveymodel import Classification

MANIFEST_NAME = "META-INF/MANIFEST.MF"
METADATA_DIRECTORY = "META-INF/"
SIGNATURE_EXTENSION = ".SF"


class UnreadableArchive(Exception):
    """The file is not an archive we can read."""


def parse_manifest(text: str) -> tuple[dict[str, str], list[dict[str, str]]]:
    """
    Split a jar manifest into its main attributes and per-entry sections.

    Sections are separated by blank lines. Lines starting with a single space
    continue the previous line. Only sections carrying a `Name` attribute
    count as entries.
    """
    sections: list[dict[str, str]] = []
    current: dict[str, str] = {}
    last_key = ""

    for line in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        if not line:
            if current:
                sections.append(current)
            current = {}
            last_key = ""
            continue

        if line.startswith(" ") and last_key:
            current[last_key] += line[1:]
            continue

        key, _, value = line.partition(":")
        last_key = key.strip()
        current[last_key] = value.strip()

    if current:
        sections.append(current)

    if not sections:
        return {}, []

    main, *rest = sections
    if "Name" in main:
        # No main section at all, every section is an entry.
        return {}, [section for section in sections if "Name" in section]

    return main, [section for section in rest if "Name" in section]


class ArtifactInspector:
    """Classify a local archive as signed, unsigned or unreadable."""

    logger = logging.getLogger(__name__)

    def classify(self, local_path: str) -> Classification:
        """Return the classification of the archive at local_path."""
        try:
            entries, names = self._read_archive(local_path)

        except UnreadableArchive as error:
            self.logger.debug("Unreadable archive %s: %s", local_path, error)
            return Classification.UNREADABLE

        if entries and any(self._is_signature_file(name) for name in names):
            return Classification.SIGNED

        return Classification.UNSIGNED

    def _read_archive(self, local_path: str) -> tuple[list[dict[str, str]], list[str]]:
        """
        Return the manifest entries and member names of the archive.

        Raises:
            UnreadableArchive
        """
        try:
            with zipfile.ZipFile(local_path) as archive:
                names = archive.namelist()
                manifest = self._find_manifest(names)
                if manifest is None:
                    return [], names

                text = archive.read(manifest).decode("utf-8", errors="replace")

        except (
            zipfile.BadZipFile,
            zlib.error,
            EOFError,
            OSError,
            RuntimeError,
        ) as error:
            # Encrypted members raise RuntimeError and unsupported compression
            # methods raise NotImplementedError, a RuntimeError subclass.
            raise UnreadableArchive(str(error)) from error

        _, entries = parse_manifest(text)
        return entries, names

    @staticmethod
    def _find_manifest(names: list[str]) -> str | None:
        """Return the manifest member name, matched case-insensitively."""
        for name in names:
            if name.upper() == MANIFEST_NAME:
                return name
        return None

    @staticmethod
    def _is_signature_file(name: str) -> bool:
        """True for a signature file under the metadata directory."""
        return name.startswith(METADATA_DIRECTORY) and name.endswith(
            SIGNATURE_EXTENSION
        )
