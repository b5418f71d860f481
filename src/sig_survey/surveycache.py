from __future__ import annotations

import enum
import logging

import httpx

from .surveystore import CacheStore

NOT_MODIFIED = 304


class CacheMode(enum.Enum):
    """How a cached record with a validator is treated."""

    # Trust every record that has a validator, no network call.
    BYPASS = "bypass"
    # Revalidate every record with a conditional GET.
    VERIFY = "verify"


class UnexpectedResponse(Exception):
    """The remote server answered with a status we cannot use."""

    def __init__(
        self,
        status_code: int,
        uri: str,
        headers: httpx.Headers | dict[str, str] | None = None,
        body: str = "",
    ) -> None:
        self.status_code = status_code
        self.uri = uri
        self.headers = dict(headers or {})
        self.body = body
        super().__init__(f"Unexpected response {status_code}: {uri}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> UnexpectedResponse:
        """Build the error from an httpx response."""
        try:
            body = response.text
        except httpx.ResponseNotRead:
            body = ""
        return cls(response.status_code, str(response.url), response.headers, body)


class ResponseCache:
    """Return response bodies for GET requests, backed by a CacheStore."""

    logger = logging.getLogger(__name__)

    def __init__(
        self,
        store: CacheStore,
        client: httpx.Client,
        *,
        mode: CacheMode = CacheMode.BYPASS,
    ) -> None:
        """
        Initialize the cache.

        Args:
            store: The persistent store holding bodies and validators.
            client: The http client used for every outbound request.

        Keyword Args:
            mode: BYPASS returns stored bodies without contacting the server.
                VERIFY revalidates them with If-None-Match. Defaults to BYPASS.
        """
        self._store = store
        self._client = client
        self.mode = mode

    def get(self, uri: str) -> str:
        """
        Return the body for the uri.

        Raises:
            UnexpectedResponse: the server answered with a non-success status.
            httpx.HTTPError: the request failed in transport.
        """
        record = self._store.get(uri)

        if record is None or record.validator is None:
            return self._fetch(uri, replaces=record is not None)

        if self.mode is CacheMode.BYPASS:
            self.logger.debug("Bypass etag check: %s", uri)
            return record.body

        response = self._client.get(uri, headers={"If-None-Match": record.validator})

        if response.status_code == NOT_MODIFIED:
            self.logger.debug("Found in cache: %s", uri)
            return record.body

        if not response.is_success:
            raise UnexpectedResponse.from_response(response)

        self._store.save(uri, response.text, response.headers.get("ETag"))
        self.logger.debug("Found in cache, but since updated: %s", uri)
        return response.text

    def _fetch(self, uri: str, *, replaces: bool) -> str:
        """Unconditional GET, storing the body when a validator comes back."""
        response = self._client.get(uri)
        if not response.is_success:
            raise UnexpectedResponse.from_response(response)

        etag = response.headers.get("ETag")
        if etag is not None or replaces:
            self._store.save(uri, response.text, etag)
            self.logger.debug("Stored in cache: %s", uri)
        else:
            self.logger.debug("No etag: %s", uri)

        return response.text
