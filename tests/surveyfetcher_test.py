from __future__ import annotations

import os

import httpx
import pytest

from sig_survey.surveycache import UnexpectedResponse
from sig_survey.surveyfetcher import ArtifactFetcher

BASE_URL = "https://repo.example.test/maven2/"
REMOTE_PATH = "com/example/foo/1.0/foo-1.0.jar"


class FakeFiles:
    def __init__(
        self, status_code: int = 200, content: bytes = b"PK\x03\x04data"
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=self.content)


def build_fetcher(files: FakeFiles) -> ArtifactFetcher:
    return ArtifactFetcher(httpx.Client(transport=httpx.MockTransport(files)), BASE_URL)


def test_fetch_writes_file_and_creates_parents(tmp_path) -> None:
    files = FakeFiles()
    local_path = str(tmp_path / "jars" / "com" / "example" / "foo-1.0.jar")

    transferred = build_fetcher(files).fetch(REMOTE_PATH, local_path)

    assert transferred is True
    with open(local_path, "rb") as file_in:
        assert file_in.read() == files.content
    assert str(files.requests[0].url) == BASE_URL + REMOTE_PATH


def test_fetch_twice_transfers_once(tmp_path) -> None:
    files = FakeFiles()
    fetcher = build_fetcher(files)
    local_path = str(tmp_path / "foo-1.0.jar")

    first = fetcher.fetch(REMOTE_PATH, local_path)
    second = fetcher.fetch(REMOTE_PATH, local_path)

    assert (first, second) == (True, False)
    assert len(files.requests) == 1


def test_fetch_failure_leaves_nothing_behind(tmp_path) -> None:
    files = FakeFiles(status_code=404, content=b"not found")
    local_path = str(tmp_path / "foo-1.0.jar")

    with pytest.raises(UnexpectedResponse) as error:
        build_fetcher(files).fetch(REMOTE_PATH, local_path)

    assert error.value.status_code == 404
    assert os.listdir(tmp_path) == []


def test_fetch_transport_error_propagates(tmp_path) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = httpx.Client(transport=httpx.MockTransport(refuse))
    fetcher = ArtifactFetcher(client, BASE_URL)

    with pytest.raises(httpx.ReadTimeout):
        fetcher.fetch(REMOTE_PATH, str(tmp_path / "foo-1.0.jar"))

    assert os.listdir(tmp_path) == []
