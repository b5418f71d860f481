from __future__ import annotations

import logging
import os
import re
from configparser import ConfigParser

from .surveycache import CacheMode

NEW_CONFIG = """\
[system]
# config_name should be unique for each configuration file.
config_name = {config_name}
database_path = {filename}
artifact_directory = jars
max_is_running_seconds = 86400

[survey]
root_url = https://repo1.maven.org/maven2/
# Versions last modified within this month (YYYY-MM) are inspected.
target_month = 2023-10
# Paths at this depth below the root are reported when they contain
# at least one inspected artifact.
reporting_depth = 2
# At most this many artifacts are inspected per directory listing.
max_artifacts_per_parent = 5
# Subdirectories of the root are walked on this many threads.
workers = 1

[cache]
# bypass: trust cached listing pages, verify: revalidate them with the etag.
mode = bypass

[http]
timeout = 5.0

[emit]
# Emit results to the following destinations.
stdout = true
file = false

    """

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


class SurveyConfig:
    """Configuration for the Survey."""

    logger = logging.getLogger("sig_survey.SurveyConfig")

    def __init__(self, filepath: str) -> None:
        """Load the configuration from the given file."""
        self._config = ConfigParser()
        success = self._config.read(filepath)

        if not success:
            raise ValueError(f"Could not read config file at {filepath}")

        self.logger.debug("Loaded config from %s", filepath)

    @property
    def config_name(self) -> str:
        """Return the name of the config."""
        return self._config.get("system", "config_name", fallback="sig_survey")

    @property
    def database_path(self) -> str:
        """Return the path to the database file, or ":memory:" if not set."""
        return self._config.get("system", "database_path", fallback=":memory:")

    @property
    def artifact_directory(self) -> str:
        """Return the directory downloaded artifacts are stored in."""
        return self._config.get("system", "artifact_directory", fallback="jars")

    @property
    def max_is_running_seconds(self) -> int:
        """Return the maximum age of the is_running flag in seconds."""
        return self._config.getint(
            "system", "max_is_running_seconds", fallback=86400
        )

    @property
    def root_url(self) -> str:
        """Return the repository root, always ending in a slash."""
        url = self._config.get(
            "survey", "root_url", fallback="https://repo1.maven.org/maven2/"
        )
        return url if url.endswith("/") else f"{url}/"

    @property
    def target_month(self) -> tuple[int, int]:
        """Return the (year, month) to survey. Will raise if malformed."""
        value = self._config.get("survey", "target_month", fallback="2023-10")
        match = MONTH_PATTERN.match(value.strip())
        if not match or not 1 <= int(match.group(2)) <= 12:
            raise ValueError(f"Invalid target_month '{value}', expected YYYY-MM")

        return int(match.group(1)), int(match.group(2))

    @property
    def reporting_depth(self) -> int:
        """Return the depth at which paths are reported."""
        return self._config.getint("survey", "reporting_depth", fallback=2)

    @property
    def max_artifacts_per_parent(self) -> int:
        """Return the number of artifacts inspected per directory listing."""
        return self._config.getint("survey", "max_artifacts_per_parent", fallback=5)

    @property
    def workers(self) -> int:
        """Return the number of threads walking the root's subdirectories."""
        return max(1, self._config.getint("survey", "workers", fallback=1))

    @property
    def cache_mode(self) -> CacheMode:
        """Return the cache mode. Will raise if unknown."""
        value = self._config.get("cache", "mode", fallback="bypass")
        try:
            return CacheMode(value.strip().lower())
        except ValueError:
            raise ValueError(f"Invalid cache mode '{value}'") from None

    @property
    def http_timeout(self) -> float:
        """Return the timeout in seconds for http requests."""
        return self._config.getfloat("http", "timeout", fallback=5.0)

    @property
    def emit_stdout(self) -> bool:
        """Return whether to emit results to stdout."""
        return self._config.getboolean("emit", "stdout", fallback=True)

    @property
    def emit_file(self) -> bool:
        """Return whether to emit results to a file."""
        return self._config.getboolean("emit", "file", fallback=False)


def write_new_config(filename: str) -> None:
    """Write a new config file if one does not exist."""
    if os.path.exists(filename):
        return

    database_path = filename.replace(".ini", ".db")
    config_name = os.path.splitext(os.path.basename(filename))[0]
    config = NEW_CONFIG.format(config_name=config_name, filename=database_path)

    with open(filename, "w") as config_file:
        config_file.write(config)
