#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import logging
from collections.abc import Iterable
from itertools import chain

import aiohttp
from yarl import URL

from .._http import AWSRequest, HTTPResponse, tuples_to_fields
from ..interfaces.http import (
    HTTPClient,
    HTTPClientConfiguration,
    HTTPRequestConfiguration,
)

logger = logging.getLogger(__name__)


class AIOHTTPClient(HTTPClient):
    """Implementation of :py:class:`.interfaces.http.HTTPClient` using aiohttp.

    This is the live request path. The URL is handed to aiohttp already encoded so a
    presigned query reaches the server byte for byte as it was signed.
    """

    def __init__(
        self,
        *,
        client_config: HTTPClientConfiguration | None = None,
        _session: aiohttp.ClientSession | None = None,
    ) -> None:
        """
        :param client_config: Connection settings for every request this client sends.
        :param _session: A session to use instead of creating one on first send.
        """
        self._config = client_config or HTTPClientConfiguration()
        self._session = _session

    async def send(
        self,
        request: AWSRequest,
        *,
        request_config: HTTPRequestConfiguration | None = None,
    ) -> HTTPResponse:
        """Send ``request`` over the network and read the whole response.

        :param request: The request to send. Its URL is used exactly as built.
        :param request_config: Read timeout for this request.
        """
        request_config = request_config or HTTPRequestConfiguration()

        headers_list = list(
            chain.from_iterable(fld.as_tuples() for fld in request.fields)
        )
        logger.debug("Sending %s %s", request.method, request.url)

        async with self._get_session().request(
            method=request.method,
            url=URL(request.url, encoded=True),
            headers=headers_list,
            data=self._read_body(request),
            timeout=aiohttp.ClientTimeout(sock_read=request_config.read_timeout),
        ) as resp:
            return await self._marshal_response(resp)

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        # Sessions must be created inside a running event loop.
        if self._session is None:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(force_close=self._config.force_close)
            )
        return self._session

    def _read_body(self, request: AWSRequest) -> bytes | None:
        body = request.body
        if body is None or isinstance(body, bytes):
            return body
        if isinstance(body, bytearray):
            return bytes(body)
        if isinstance(body, Iterable):
            return b"".join(body)
        raise TypeError(
            f"AIOHTTPClient requires a bytes or Iterable[bytes] body, got {type(body)}."
        )

    async def _marshal_response(
        self, aiohttp_resp: aiohttp.ClientResponse
    ) -> HTTPResponse:
        """Convert a ``aiohttp.ClientResponse`` to a ``aws_presign.HTTPResponse``"""
        return HTTPResponse(
            status=aiohttp_resp.status,
            fields=tuples_to_fields(aiohttp_resp.headers.items()),
            body=await aiohttp_resp.read(),
            reason=aiohttp_resp.reason,
        )
