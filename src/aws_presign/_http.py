# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

from collections.abc import AsyncIterable, Iterable, Iterator, Mapping
from copy import deepcopy
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

from .exceptions import InvalidRequestError
from .interfaces import http as interfaces_http

_QUOTED_FIELD_CHARS = (",", '"')


class Field(interfaces_http.Field):
    """One header and every value sent for it, in order.

    Names compare case-insensitively wherever a :py:class:`Fields` is involved, but
    the spelling given here is what goes on the wire.
    """

    def __init__(self, *, name: str, values: Iterable[str] | None = None):
        self.name = name
        self.values: list[str] = list(values or ())

    def add(self, value: str) -> None:
        self.values.append(value)

    def as_string(self, delimiter: str = ",") -> str:
        """Join the values into one header line.

        A lone value is returned as is. When there are several, any value holding a
        comma or a double quote is quoted so the line can be split again.
        """
        if len(self.values) == 1:
            return self.values[0]
        return delimiter.join(quote_and_escape_field_value(v) for v in self.values)

    def as_tuples(self) -> list[tuple[str, str]]:
        """One ``(name, value)`` pair per value, the shape HTTP libraries expect."""
        return [(self.name, value) for value in self.values]

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, Field)
            and (self.name, self.values) == (other.name, other.values)
        )

    def __repr__(self) -> str:
        return f"Field(name={self.name!r}, values={self.values!r})"


class Fields(interfaces_http.Fields):
    """Headers of a request or response, keyed by lower-cased name."""

    def __init__(self, initial: Iterable[Field] | None = None):
        """
        :param initial: Fields to start with. No two may share a name once
            lower-cased.
        """
        self.entries: dict[str, Field] = {}
        for fld in initial or ():
            if fld.name.lower() in self.entries:
                raise ValueError(f"Duplicate field name in initial fields: {fld.name}")
            self.entries[fld.name.lower()] = fld

    def set_field(self, field: Field) -> None:
        """Store ``field`` under its own name, replacing any field of that name."""
        self[field.name] = field

    def __setitem__(self, name: str, field: Field) -> None:
        if name.lower() != field.name.lower():
            raise ValueError(f"Cannot store field {field.name!r} under name {name!r}.")
        self.entries[name.lower()] = field

    def __getitem__(self, name: str) -> Field:
        return self.entries[name.lower()]

    def __delitem__(self, name: str) -> None:
        del self.entries[name.lower()]

    def extend(self, other: Iterable[Field]) -> None:
        """Add every field of ``other``. Values for names already present are
        appended to the existing field."""
        for fld in other:
            if fld.name in self:
                for value in fld.values:
                    self[fld.name].add(value)
            else:
                self.set_field(Field(name=fld.name, values=fld.values))

    def as_dict(self) -> dict[str, str]:
        return {fld.name: fld.as_string() for fld in self}

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self.entries

    def __iter__(self) -> Iterator[Field]:
        return iter(self.entries.values())

    def __len__(self) -> int:
        return len(self.entries)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Fields) and self.entries == other.entries

    def __repr__(self) -> str:
        return f"Fields({list(self)!r})"


def tuples_to_fields(tuples: Iterable[tuple[str, str]]) -> Fields:
    """Build a :py:class:`Fields` from ``(name, value)`` pairs, merging repeated
    names."""
    fields = Fields()
    fields.extend(Field(name=name, values=[value]) for name, value in tuples)
    return fields


def encode_query(params: Iterable[tuple[str, str]]) -> str:
    """Percent-encode query pairs, leaving only RFC 3986 unreserved characters
    bare."""
    return "&".join(
        f"{quote(key, safe='')}={quote(value, safe='')}" for key, value in params
    )


@dataclass(kw_only=True, frozen=True)
class URI(interfaces_http.URI):
    """Where a request is sent: an absolute URL broken into its components.

    ``path`` and ``query`` are kept exactly as they appear on the wire, which is also
    what gets signed.
    """

    scheme: str = "https"
    username: str | None = None
    password: str | None = None
    host: str
    """Host name without port, e.g. ``test-bucket.s3.us-west-2.amazonaws.com``."""

    port: int | None = None
    """Only set when the URL names a port explicitly."""

    path: str | None = None
    query: str | None = None
    fragment: str | None = None
    """Dropped from presigned URLs. Fragments are never transmitted."""

    @classmethod
    def from_string(cls, url: str) -> URI:
        """Parse an absolute URL.

        :raises InvalidRequestError: If the URL has no host.
        """
        parts = urlsplit(url)
        if not parts.hostname:
            raise InvalidRequestError(f"URL {url!r} does not contain a host.")
        return cls(
            scheme=parts.scheme or "https",
            username=parts.username,
            password=parts.password,
            host=parts.hostname,
            port=parts.port,
            path=parts.path or None,
            query=parts.query or None,
            fragment=parts.fragment or None,
        )

    @property
    def host_port(self) -> str:
        """``host`` followed by any explicit port, with IPv6 addresses bracketed."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is not None:
            return f"{host}:{self.port}"
        return host

    @property
    def netloc(self) -> str:
        """:py:attr:`host_port`, preceded by any user info."""
        netloc = self.host_port
        if self.username is not None:
            userinfo = self.username
            if self.password is not None:
                userinfo = f"{userinfo}:{self.password}"
            netloc = f"{userinfo}@{netloc}"
        return netloc

    @property
    def query_params(self) -> list[tuple[str, str]]:
        """Decoded query pairs in their original order, blank values included."""
        if not self.query:
            return []
        return parse_qsl(self.query, keep_blank_values=True)

    def with_query_params(self, params: Iterable[tuple[str, str]]) -> URI:
        """Return a copy of this URI whose query is replaced by ``params``."""
        return replace(self, query=encode_query(params) or None)

    def build(self) -> str:
        return urlunsplit(
            (self.scheme, self.netloc, self.path or "", self.query, self.fragment)
        )

    def build_without_query(self) -> str:
        return urlunsplit((self.scheme, self.netloc, self.path or "", None, None))

    def __str__(self) -> str:
        return self.build()


class AWSRequest(interfaces_http.Request):
    """An HTTP request to be signed, sent, or dispatched to a mock responder."""

    def __init__(
        self,
        *,
        destination: URI,
        method: str,
        body: AsyncIterable[bytes] | Iterable[bytes] | None = None,
        fields: Fields | None = None,
    ):
        self.destination = destination
        self.method = method
        self.body = body
        self.fields = fields if fields is not None else Fields()

    @classmethod
    def from_url(
        cls,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: Iterable[bytes] | None = None,
    ) -> AWSRequest:
        fields = Fields(Field(name=k, values=[v]) for k, v in (headers or {}).items())
        return cls(
            destination=URI.from_string(url),
            method=method,
            body=body,
            fields=fields,
        )

    @property
    def url(self) -> str:
        """The full request URL including its query."""
        return self.destination.build()

    def __deepcopy__(self, memo: dict[int, Any]) -> AWSRequest:
        # Only the fields are copied. URIs are immutable and a body may be a stream
        # that can only be consumed once.
        if id(self) not in memo:
            memo[id(self)] = type(self)(
                destination=self.destination,
                method=self.method,
                body=self.body,
                fields=deepcopy(self.fields, memo),
            )
        return memo[id(self)]

    def __repr__(self) -> str:
        return f"AWSRequest(method={self.method!r}, url={self.url!r})"


@dataclass(kw_only=True)
class HTTPResponse(interfaces_http.Response):
    """A response whose body has been read in full."""

    status: int
    fields: Fields = field(default_factory=Fields)
    body: bytes = b""
    reason: str | None = None

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding)


def quote_and_escape_field_value(value: str) -> str:
    """Wrap ``value`` in double quotes, escaping backslashes and quotes, when it
    contains a character that would break a comma-joined header line."""
    if not any(char in value for char in _QUOTED_FIELD_CHARS):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
