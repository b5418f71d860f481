from __future__ import annotations

from typing import Callable

import pytest

ROW_WIDTH = 60


def _row(name: str, date: str) -> str:
    """One row of a listing page in the repository's layout."""
    anchor = f'<a href="{name}" title="{name}">{name}</a>'
    column = "-      " if date == "-" else f"{date} 12:00      1024      "
    return f"{anchor}{' ' * max(1, ROW_WIDTH - len(name))}{column}"


def build_listing(*rows: tuple[str, str]) -> str:
    """Build a listing page from (name, date) pairs. Use "-" for directories."""
    lines = [
        "<html><head><title>Central Repository</title></head><body>",
        "<pre id=\"contents\">",
        '<a href="../">../</a>',
        *(_row(name, date) for name, date in rows),
        "</pre>",
        "</body></html>",
    ]
    return "\n".join(lines)


@pytest.fixture
def make_listing() -> Callable[..., str]:
    return build_listing
