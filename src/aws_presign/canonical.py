# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Construction of the SigV4 canonical request.

The canonical request is a standardized string laying out the components used in the
SigV4 signing algorithm. It is defined as::

    <HTTPMethod>\\n
    <CanonicalURI>\\n
    <CanonicalQueryString>\\n
    <CanonicalHeaders>\\n
    <SignedHeaders>\\n
    <HashedPayload>

Everything here is a pure function of its inputs. Nothing is returned until every
component has been computed, so a failure never leaves a partial result behind.
"""

from dataclasses import dataclass, replace
from hashlib import sha256
from urllib.parse import parse_qsl, quote

from ._http import URI, AWSRequest, Field
from .exceptions import EncodingError

HEADERS_EXCLUDED_FROM_SIGNING: tuple[str, ...] = (
    "accept",
    "accept-encoding",
    "authorization",
    "connection",
    "expect",
    "user-agent",
    "x-amzn-trace-id",
)
DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}
SIGNATURE_QUERY_PARAM = "X-Amz-Signature"


@dataclass(frozen=True)
class CanonicalRequest:
    method: str
    path: str
    query: str
    fields: str
    signed_headers: tuple[str, ...]
    payload_hash: str

    def __str__(self) -> str:
        return (
            f"{self.method}\n"
            f"{self.path}\n"
            f"{self.query}\n"
            f"{self.fields}\n"
            f"{';'.join(self.signed_headers)}\n"
            f"{self.payload_hash}"
        )

    def hexdigest(self) -> str:
        return sha256(str(self).encode()).hexdigest()


def canonical_request(
    request: AWSRequest, *, payload_hash: str, uri_encode_path: bool = True
) -> CanonicalRequest:
    """Build the canonical form of ``request``.

    :param request: The request to canonicalize. Its destination path is expected in
        the form it takes on the wire.
    :param payload_hash: Hex SHA-256 of the body, or ``UNSIGNED-PAYLOAD``.
    :param uri_encode_path: Whether the path is normalized and encoded a second time.
        S3 is the only service that disables this.
    :raises EncodingError: If a header value is not valid UTF-8.
    """
    normalized_fields = normalize_signing_fields(request)
    return CanonicalRequest(
        method=request.method.upper(),
        path=canonical_path(request.destination.path, uri_encode_path=uri_encode_path),
        query=canonical_query(request.destination.query),
        fields=canonical_fields(normalized_fields),
        signed_headers=tuple(normalized_fields),
        payload_hash=payload_hash,
    )


def canonical_path(path: str | None, *, uri_encode_path: bool = True) -> str:
    if not path:
        path = "/"

    if uri_encode_path:
        return quote(string=remove_dot_segments(path), safe="/")
    return wire_path(path)


def wire_path(path: str | None) -> str:
    """Encode any characters in ``path`` that are not already percent-encoded."""
    return quote(string=path or "/", safe="/%")


def canonical_query(query: str | None) -> str:
    if not query:
        return ""

    query_parts = (
        (quote(string=key, safe=""), quote(string=value, safe=""))
        for key, value in parse_qsl(qs=query, keep_blank_values=True)
        if key != SIGNATURE_QUERY_PARAM
    )
    # Sorted by encoded key, then encoded value.
    return "&".join(f"{key}={value}" for key, value in sorted(query_parts))


def normalize_signing_fields(request: AWSRequest) -> dict[str, str]:
    """Map of lower-cased signable header names to normalized values, sorted by
    name."""
    normalized_fields = {
        fld.name.lower(): _normalize_field_value(fld)
        for fld in request.fields
        if is_signable_header(fld.name.lower())
    }
    if "host" not in normalized_fields:
        normalized_fields["host"] = normalize_host_field(request.destination)

    return dict(sorted(normalized_fields.items()))


def signed_field_names(request: AWSRequest) -> list[str]:
    return list(normalize_signing_fields(request))


def canonical_fields(fields: dict[str, str]) -> str:
    return "".join(f"{key}:{value}\n" for key, value in fields.items())


def is_signable_header(field_name: str) -> bool:
    return field_name not in HEADERS_EXCLUDED_FROM_SIGNING


def normalize_host_field(uri: URI) -> str:
    if uri.port is not None and DEFAULT_PORTS.get(uri.scheme) == uri.port:
        uri = replace(uri, port=None)
    return uri.host_port


def _normalize_field_value(fld: Field) -> str:
    return ",".join(_collapse(fld.name, value) for value in fld.values)


def _collapse(name: str, value: str | bytes) -> str:
    if isinstance(value, bytes | bytearray):
        try:
            value = bytes(value).decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError(f"Value of field {name!r} is not valid UTF-8.") from e
    else:
        try:
            value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodingError(
                f"Value of field {name!r} cannot be encoded as UTF-8."
            ) from e
    return " ".join(value.split())


def remove_dot_segments(path: str, remove_consecutive_slashes: bool = True) -> str:
    """Resolve ``.`` and ``..`` segments as described in :rfc:`3986#section-5.2.4`.

    A ``..`` above the root is dropped. Runs of slashes collapse to one unless
    ``remove_consecutive_slashes`` is false.
    """
    output: list[str] = []
    for segment in path.split("/"):
        if segment == ".":
            continue
        elif segment != "..":
            output.append(segment)
        elif output:
            output.pop()
    if path.startswith("/") and (not output or output[0]):
        output.insert(0, "")
    if output and path.endswith(("/.", "/..")):
        output.append("")
    result = "/".join(output)
    if remove_consecutive_slashes:
        result = result.replace("//", "/")
    return result
