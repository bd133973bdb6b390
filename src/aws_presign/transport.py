# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import logging
import threading
from collections.abc import Mapping

from ._http import AWSRequest
from .aio.aiohttp import AIOHTTPClient
from .interfaces.http import HTTPClient, HTTPRequestConfiguration, Response

logger = logging.getLogger(__name__)


class Transport:
    """The request path shared by code that issues HTTP requests.

    Requests go to the live client unless another client has been installed, in which
    case they go to the most recently installed client only. A mock dispatcher uses
    this to make the network unreachable for as long as it is active.
    """

    def __init__(self, client: HTTPClient | None = None) -> None:
        """
        :param client: The live client. Defaults to an aiohttp client created on first
            use.
        """
        self._client = client
        self._installed: list[HTTPClient] = []
        self._lock = threading.Lock()

    @property
    def client(self) -> HTTPClient:
        """The client requests are currently sent through."""
        with self._lock:
            if self._installed:
                return self._installed[-1]
            if self._client is None:
                self._client = AIOHTTPClient()
            return self._client

    @property
    def is_intercepted(self) -> bool:
        with self._lock:
            return bool(self._installed)

    def install(self, client: HTTPClient) -> None:
        """Route every request through ``client`` until it is uninstalled."""
        with self._lock:
            self._installed.append(client)
        logger.debug("Installed %r as the request path", client)

    def uninstall(self, client: HTTPClient) -> None:
        """Remove ``client``, restoring whichever path was active before it.

        :raises ValueError: If ``client`` was never installed.
        """
        with self._lock:
            for index in range(len(self._installed) - 1, -1, -1):
                if self._installed[index] is client:
                    del self._installed[index]
                    break
            else:
                raise ValueError(f"{client!r} is not installed on this transport.")
        logger.debug("Uninstalled %r from the request path", client)

    async def send(
        self,
        request: AWSRequest,
        *,
        request_config: HTTPRequestConfiguration | None = None,
    ) -> Response:
        return await self.client.send(request, request_config=request_config)

    async def get(
        self, url: str, *, headers: Mapping[str, str] | None = None
    ) -> Response:
        """Issue a GET for ``url``, which may be a presigned URL."""
        return await self.send(AWSRequest.from_url("GET", url, headers=headers))

    async def close(self) -> None:
        """Close the live client if it supports closing."""
        client = self._client
        close = getattr(client, "close", None)
        if close is not None:
            await close()
