from __future__ import annotations

import logging
import os

import httpx

from .surveycache import UnexpectedResponse


class ArtifactFetcher:
    """Download remote binaries into a local directory tree."""

    logger = logging.getLogger(__name__)

    def __init__(self, client: httpx.Client, base_url: str) -> None:
        self._client = client
        self._base_url = base_url

    def fetch(self, remote_path: str, local_path: str) -> bool:
        """
        Copy the remote resource to local_path unless it already exists.

        The body is streamed into a temporary sibling file which is moved into
        place once complete, a failed transfer leaves nothing behind.

        Args:
            remote_path: Path relative to the repository root.
            local_path: Destination on disk.

        Returns:
            True if a transfer happened, False if the file was already present.

        Raises:
            UnexpectedResponse: the server answered with a non-success status.
            httpx.HTTPError: the transfer failed.
        """
        if os.path.exists(local_path):
            self.logger.debug("Already downloaded: %s", local_path)
            return False

        os.makedirs(os.path.dirname(local_path) or ".", exist_ok=True)
        tmp_path = f"{local_path}.tmp"
        uri = self._base_url + remote_path

        try:
            with self._client.stream("GET", uri) as response:
                if not response.is_success:
                    response.read()
                    raise UnexpectedResponse.from_response(response)

                with open(tmp_path, "wb") as file_out:
                    for chunk in response.iter_bytes():
                        file_out.write(chunk)

            os.replace(tmp_path, local_path)

        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

        self.logger.debug("Downloaded %s to %s", uri, local_path)
        return True
