from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Protocol

    class _SurveyConfig(Protocol):
        @property
        def config_name(self) -> str:
            ...

        @property
        def emit_stdout(self) -> bool:
            ...

        @property
        def emit_file(self) -> bool:
            ...


class SurveyEmitter:
    """A class to emit result lines to various targets."""

    logger = logging.getLogger(__name__)

    def __init__(self, config: _SurveyConfig) -> None:
        """Initialize the emitter."""
        self._config = config
        self._lines: deque[str] = deque()

    def emit(self, *, batch_size: int = 500) -> None:
        """
        Emit all stored lines to the configured targets. Empties the queue.

        Keyword Args:
            batch_size: The number of lines to emit at a time. Defaults to 500.
        """
        count = 0
        while self._lines:
            lines = self._get_lines(batch_size)

            self.to_stdout(lines)
            self.to_file(lines)

            count += len(lines)

        self.logger.info("Emitted %d result lines.", count)

    def add_line(self, line: str) -> None:
        """Add a line to the queue. Safe to call from several threads."""
        self._lines.append(line)

    def _get_lines(self, max_lines: int) -> list[str]:
        """Build a list of lines to emit, removing them from the emitter."""
        lines: list[str] = []
        while self._lines and len(lines) < max_lines:
            lines.append(self._lines.popleft())

        return lines

    def to_file(self, lines: list[str]) -> None:
        """
        Emit lines to a file.

        Args:
            lines: A list of lines to emit.

        Output:
            A file named <config_name>_<date>_results.txt
        """
        if not self._config.emit_file or not lines:
            return
        date = datetime.now().strftime("%Y%m%d")
        filename = f"{self._config.config_name}_{date}_results.txt"

        with open(filename, "a") as file_out:
            file_out.write("\n".join(lines) + "\n")

        self.logger.debug("Emitted %d lines to %s", len(lines), filename)

    def to_stdout(self, lines: list[str]) -> None:
        """
        Emit lines to stdout.

        Args:
            lines: A list of lines to emit.
        """
        if not self._config.emit_stdout or not lines:
            return

        print("\n".join(lines))

        self.logger.debug("Emitted %d lines to stdout", len(lines))
