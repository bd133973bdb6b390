# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .._http import AWSRequest


class Field(Protocol):
    """A header name with its values."""

    name: str
    values: list[str]

    def add(self, value: str) -> None: ...

    def as_string(self, delimiter: str = ",") -> str:
        """All values as a single header line."""
        ...

    def as_tuples(self) -> list[tuple[str, str]]: ...


class Fields(Protocol):
    """Headers looked up by case-insensitive name."""

    def set_field(self, field: Field) -> None: ...

    def __getitem__(self, name: str) -> Field: ...

    def __contains__(self, name: str) -> bool: ...

    def __iter__(self) -> Iterator[Field]: ...

    def __len__(self) -> int: ...


@runtime_checkable
class URI(Protocol):
    """The components of a request target that take part in signing."""

    scheme: str
    host: str
    port: int | None
    path: str | None
    query: str | None

    @property
    def host_port(self) -> str: ...

    @property
    def netloc(self) -> str: ...

    def build(self) -> str:
        """The absolute URL."""
        ...


class Request(Protocol):
    method: str
    destination: URI
    fields: Fields
    body: AsyncIterable[bytes] | Iterable[bytes] | None


class Response(Protocol):
    status: int
    fields: Fields
    body: bytes
    reason: str | None


@dataclass(kw_only=True)
class HTTPClientConfiguration:
    """Settings shared by every request a client sends.

    :param force_close: Open a new connection for each request instead of reusing
        one.
    """

    force_close: bool = False


@dataclass(kw_only=True)
class HTTPRequestConfiguration:
    """Settings for a single request.

    :param read_timeout: Seconds to wait for data on an open connection. ``None``
        waits indefinitely.
    """

    read_timeout: float | None = None


class HTTPClient(Protocol):
    """Anything that can send a request and hand back the full response.

    Both the live aiohttp client and the mock dispatcher implement this, which is what
    lets a :py:class:`aws_presign.transport.Transport` swap one for the other.
    """

    async def send(
        self,
        request: AWSRequest,
        *,
        request_config: HTTPRequestConfiguration | None = None,
    ) -> Response:
        """Send ``request`` and return its response.

        :param request: The request including destination URI, fields, payload.
        :param request_config: Configuration specific to this request.
        """
        ...
