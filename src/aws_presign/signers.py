# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import datetime
import hmac
import io
import logging
import warnings
from collections.abc import Callable, Iterable, Mapping
from copy import deepcopy
from dataclasses import dataclass, replace
from hashlib import sha256
from typing import Required, TypedDict

from ._http import AWSRequest, Field
from .canonical import canonical_request, signed_field_names, wire_path
from .exceptions import (
    ExpiredCredentialError,
    InvalidExpiryError,
    InvalidRequestError,
    PresignWarning,
    UnsupportedAlgorithmError,
)
from .interfaces.identity import AWSCredentialsIdentity
from .interfaces.io import Seekable

logger = logging.getLogger(__name__)

ALGORITHM: str = "AWS4-HMAC-SHA256"
SCOPE_TERMINATOR: str = "aws4_request"
SIGV4_TIMESTAMP_FORMAT: str = "%Y%m%dT%H%M%SZ"
UNSIGNED_PAYLOAD: str = "UNSIGNED-PAYLOAD"
EMPTY_SHA256_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
MIN_EXPIRES: int = 1
MAX_EXPIRES: int = 604800
DEFAULT_EXPIRES: int = 900

# Order matters, these are appended to the query of a presigned URL as listed.
PRESIGN_QUERY_PARAMS: tuple[str, ...] = (
    "X-Amz-Algorithm",
    "X-Amz-Credential",
    "X-Amz-Date",
    "X-Amz-Expires",
    "X-Amz-SignedHeaders",
    "X-Amz-Security-Token",
    "X-Amz-Signature",
)
SIGNING_HEADERS: tuple[str, ...] = (
    "Authorization",
    "X-Amz-Date",
    "X-Amz-Security-Token",
    "X-Amz-Content-SHA256",
)

type Clock = Callable[[], datetime.datetime]


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class SigV4SigningProperties(TypedDict, total=False):
    region: Required[str]
    service: Required[str]
    date: str
    expires: int
    algorithm: str
    payload_signing_enabled: bool
    content_checksum_enabled: bool
    uri_encode_path: bool


@dataclass(frozen=True)
class SigningScope:
    """The date, region, and service a signature is valid for."""

    date: str
    region: str
    service: str
    terminator: str = SCOPE_TERMINATOR

    @classmethod
    def from_properties(cls, properties: SigV4SigningProperties) -> "SigningScope":
        if "date" not in properties:
            raise InvalidRequestError("Signing properties do not contain a date.")
        return cls(
            date=properties["date"][0:8],
            region=properties["region"],
            service=properties["service"],
        )

    def __str__(self) -> str:
        return f"{self.date}/{self.region}/{self.service}/{self.terminator}"


@dataclass(frozen=True, kw_only=True)
class PresignedURL:
    """A URL carrying a query-string SigV4 signature."""

    url: str
    signature: str
    signed_headers: tuple[str, ...]
    signed_at: datetime.datetime
    expires_in: int

    @property
    def expires_at(self) -> datetime.datetime:
        """The last instant at which the URL is still valid."""
        return self.signed_at + datetime.timedelta(seconds=self.expires_in)

    def __str__(self) -> str:
        return self.url


def format_timestamp(value: datetime.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC).strftime(SIGV4_TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime.datetime:
    """Parse a SigV4 ``YYYYMMDDTHHMMSSZ`` timestamp into an aware UTC datetime.

    :raises ValueError: If the value is not in SigV4 basic format.
    """
    parsed = datetime.datetime.strptime(value, SIGV4_TIMESTAMP_FORMAT)
    return parsed.replace(tzinfo=datetime.UTC)


def normalize_expires(expires_in: int | datetime.timedelta) -> int:
    """Convert an expiry to whole seconds, enforcing SigV4's 1 second to 7 day range.

    :raises InvalidExpiryError: If the expiry is out of range or not whole seconds.
    """
    if isinstance(expires_in, datetime.timedelta):
        seconds = expires_in.total_seconds()
        if seconds != int(seconds):
            raise InvalidExpiryError(
                f"Presign expiry must be a whole number of seconds, got {seconds}."
            )
        expires_in = int(seconds)
    if isinstance(expires_in, bool) or not isinstance(expires_in, int):
        raise InvalidExpiryError(
            f"Presign expiry must be an int or timedelta, got {type(expires_in)}."
        )
    if not MIN_EXPIRES <= expires_in <= MAX_EXPIRES:
        raise InvalidExpiryError(
            f"Presign expiry must be between {MIN_EXPIRES} and {MAX_EXPIRES} seconds, "
            f"got {expires_in}."
        )
    return expires_in


def _hash(key: bytes, value: str) -> bytes:
    return hmac.new(key=key, msg=value.encode(), digestmod=sha256).digest()


def _check_algorithm(algorithm: str) -> None:
    if algorithm != ALGORITHM:
        raise UnsupportedAlgorithmError(
            f"Unsupported signing algorithm {algorithm!r}, only {ALGORITHM} is "
            "supported."
        )


def derive_signing_key(secret_key: str, date: str, region: str, service: str) -> bytes:
    """Derive the key used to sign requests for one day, region, and service.

    The secret itself never signs anything. It seeds a chain of HMAC-SHA256 steps
    over the date, region, service and ``aws4_request``, each step keyed by the
    previous result. Only ``date[0:8]`` is used, so a full timestamp may be passed.
    """
    k_date = _hash(key=f"AWS4{secret_key}".encode(), value=date[0:8])
    k_region = _hash(key=k_date, value=region)
    k_service = _hash(key=k_region, value=service)
    return _hash(key=k_service, value=SCOPE_TERMINATOR)


def string_to_sign(
    *,
    timestamp: str,
    scope: SigningScope | str,
    canonical_request: str,
    algorithm: str = ALGORITHM,
) -> str:
    """Build the four newline-separated lines a signature is computed over.

    They are the algorithm name, the request timestamp, the credential scope, and
    the hex SHA-256 of the canonical request.
    """
    _check_algorithm(algorithm)
    return (
        f"{algorithm}\n"
        f"{timestamp}\n"
        f"{scope}\n"
        f"{sha256(canonical_request.encode()).hexdigest()}"
    )


def compute_signature(
    signing_key: bytes, string_to_sign: str, *, algorithm: str = ALGORITHM
) -> str:
    """Sign the string to sign with a derived key, returning lower-case hex."""
    _check_algorithm(algorithm)
    return _hash(key=signing_key, value=string_to_sign).hex()


class SigV4Signer:
    """Request signer for applying the AWS Signature Version 4 algorithm.

    Signing never modifies the supplied request and holds no state between calls, so
    one signer may be shared freely across threads.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        """
        :param clock: Returns the current time in UTC. It is only consulted when the
            signing properties don't carry an explicit ``date``.
        """
        self._clock = clock or _utcnow

    def sign(
        self,
        *,
        properties: SigV4SigningProperties,
        request: AWSRequest,
        identity: AWSCredentialsIdentity,
    ) -> AWSRequest:
        """Return a copy of ``request`` carrying a SigV4 ``Authorization`` header.

        :param properties: Region and service to sign for, plus optional overrides.
        :param request: The request to sign. It is left untouched.
        :param identity: The credentials to sign with.
        :raises ExpiredCredentialError: If ``identity`` has expired.
        """
        self._validate_identity(identity=identity)
        self._validate_request(request=request)
        new_properties = self._normalize_signing_properties(properties=properties)

        new_request = deepcopy(request)
        self._apply_required_fields(
            request=new_request, properties=new_properties, identity=identity
        )

        canonical = self.canonical_request(
            properties=new_properties, request=new_request
        )
        to_sign = self.string_to_sign(
            canonical_request=canonical, properties=new_properties
        )
        signature = self._signature(
            string_to_sign=to_sign,
            secret_key=identity.secret_access_key,
            properties=new_properties,
        )

        scope = SigningScope.from_properties(new_properties)
        new_request.fields.set_field(
            self.generate_authorization_field(
                credential=f"{identity.access_key_id}/{scope}",
                signed_headers=signed_field_names(new_request),
                signature=signature,
            )
        )
        logger.debug("Signed %s %s with scope %s", request.method, request.url, scope)
        return new_request

    def presign(
        self,
        *,
        properties: SigV4SigningProperties,
        request: AWSRequest,
        identity: AWSCredentialsIdentity,
        expires_in: int | datetime.timedelta | None = None,
    ) -> PresignedURL:
        """Generate a URL that carries its SigV4 signature in the query string.

        The ``X-Amz-*`` authentication parameters are appended after any query
        parameters already on the request. The payload is never signed.

        :param properties: Region and service to sign for, plus optional overrides.
        :param request: The request the URL should authorize. Headers present on it
            are signed and must accompany the eventual request.
        :param identity: The credentials to sign with.
        :param expires_in: Seconds, or a timedelta, the URL remains valid for. Falls
            back to ``properties["expires"]`` and then to 15 minutes.
        :raises InvalidExpiryError: If the expiry is outside 1 second to 7 days.
        :raises InvalidRequestError: If the request has no host.
        """
        self._validate_identity(identity=identity)
        self._validate_request(request=request)
        new_properties = self._normalize_signing_properties(properties=properties)
        if expires_in is None:
            expires_in = new_properties.get("expires", DEFAULT_EXPIRES)
        expires = normalize_expires(expires_in)

        timestamp = new_properties["date"]
        scope = SigningScope.from_properties(new_properties)
        destination = replace(
            request.destination,
            path=wire_path(request.destination.path),
            fragment=None,
        )
        new_request = deepcopy(request)
        new_request.destination = destination
        signed_headers = signed_field_names(new_request)

        existing_params = [
            (key, value)
            for key, value in destination.query_params
            if key not in PRESIGN_QUERY_PARAMS
        ]
        auth_params = [
            ("X-Amz-Algorithm", new_properties.get("algorithm", ALGORITHM)),
            ("X-Amz-Credential", f"{identity.access_key_id}/{scope}"),
            ("X-Amz-Date", timestamp),
            ("X-Amz-Expires", str(expires)),
            ("X-Amz-SignedHeaders", ";".join(signed_headers)),
        ]
        if identity.session_token is not None:
            auth_params.append(("X-Amz-Security-Token", identity.session_token))

        new_request.destination = destination.with_query_params(
            existing_params + auth_params
        )
        canonical = canonical_request(
            new_request,
            payload_hash=UNSIGNED_PAYLOAD,
            uri_encode_path=self._uri_encode_path(new_properties),
        )
        logger.debug("Canonical request for presigning:\n%s", canonical)
        to_sign = self.string_to_sign(
            canonical_request=str(canonical), properties=new_properties
        )
        signature = self._signature(
            string_to_sign=to_sign,
            secret_key=identity.secret_access_key,
            properties=new_properties,
        )

        signed_destination = destination.with_query_params(
            existing_params + auth_params + [("X-Amz-Signature", signature)]
        )
        presigned = PresignedURL(
            url=signed_destination.build(),
            signature=signature,
            signed_headers=tuple(signed_headers),
            signed_at=parse_timestamp(timestamp),
            expires_in=expires,
        )
        logger.debug(
            "Presigned %s %s, valid until %s",
            request.method,
            destination.build_without_query(),
            presigned.expires_at.isoformat(),
        )
        return presigned

    def generate_signature_headers(
        self,
        *,
        properties: SigV4SigningProperties,
        method: str,
        url: str,
        identity: AWSCredentialsIdentity,
        headers: Mapping[str, str] | None = None,
        body: Iterable[bytes] | None = None,
    ) -> dict[str, str]:
        """Sign a request described by plain values and return only the headers to
        add to it, for use with HTTP libraries that have their own request types."""
        signed_request = self.sign(
            properties=properties,
            request=AWSRequest.from_url(method, url, headers=headers, body=body),
            identity=identity,
        )
        return {
            header: signed_request.fields[header].as_string()
            for header in SIGNING_HEADERS
            if header in signed_request.fields
        }

    def generate_authorization_field(
        self, *, credential: str, signed_headers: list[str], signature: str
    ) -> Field:
        """Build the ``Authorization`` header for a header-signed request.

        :param credential: ``<access key id>/<credential scope>``.
        :param signed_headers: Names of the headers in the canonical request.
        :param signature: Hex signature over the string to sign.
        """
        value = (
            f"{ALGORITHM} Credential={credential}, "
            f"SignedHeaders={';'.join(signed_headers)}, Signature={signature}"
        )
        return Field(name="Authorization", values=[value])

    def canonical_request(
        self, *, properties: SigV4SigningProperties, request: AWSRequest
    ) -> str:
        """The canonical request for header-based signing of ``request``.

        Comparing it with the server's version is the quickest way to track down a
        signature mismatch. ``X-Amz-Content-SHA256`` is added to ``request`` first
        when content checksums are enabled, so that it is signed too.
        """
        payload_hash = self._format_canonical_payload(
            request=request, properties=properties
        )
        canonical = canonical_request(
            request,
            payload_hash=payload_hash,
            uri_encode_path=self._uri_encode_path(properties),
        )
        logger.debug("Canonical request:\n%s", canonical)
        return str(canonical)

    def string_to_sign(
        self, *, canonical_request: str, properties: SigV4SigningProperties
    ) -> str:
        """The string to sign for a canonical request produced by this signer."""
        date = properties.get("date")
        if date is None:
            raise InvalidRequestError(
                "Signing properties must contain a date before a string to sign "
                "can be built."
            )
        result = string_to_sign(
            timestamp=date,
            scope=SigningScope.from_properties(properties),
            canonical_request=canonical_request,
            algorithm=properties.get("algorithm", ALGORITHM),
        )
        logger.debug("String to sign:\n%s", result)
        return result

    def _signature(
        self,
        *,
        string_to_sign: str,
        secret_key: str,
        properties: SigV4SigningProperties,
    ) -> str:
        scope = SigningScope.from_properties(properties)
        signing_key = derive_signing_key(
            secret_key, scope.date, scope.region, scope.service
        )
        return compute_signature(
            signing_key,
            string_to_sign,
            algorithm=properties.get("algorithm", ALGORITHM),
        )

    def _validate_identity(self, *, identity: AWSCredentialsIdentity) -> None:
        if not isinstance(identity, AWSCredentialsIdentity):  # pyright: ignore
            raise InvalidRequestError(
                "Signing requires an AWS credentials identity, got "
                f"{type(identity).__name__}."
            )
        if identity.expired_at(self._clock()):
            raise ExpiredCredentialError(
                f"Credentials for {identity.access_key_id} expired at "
                f"{identity.expiration.isoformat()}."
            )

    def _validate_request(self, *, request: AWSRequest) -> None:
        if not request.destination.host:
            raise InvalidRequestError("Cannot sign a request without a host.")

    def _normalize_signing_properties(
        self, *, properties: SigV4SigningProperties
    ) -> SigV4SigningProperties:
        new_properties = SigV4SigningProperties(**properties)
        _check_algorithm(new_properties.get("algorithm", ALGORITHM))
        if "date" not in new_properties:
            new_properties["date"] = format_timestamp(self._clock())
        else:
            try:
                parse_timestamp(new_properties["date"])
            except ValueError as e:
                raise InvalidRequestError(
                    f"Signing date {new_properties['date']!r} is not in "
                    f"{SIGV4_TIMESTAMP_FORMAT} format."
                ) from e
        return new_properties

    def _uri_encode_path(self, properties: SigV4SigningProperties) -> bool:
        return properties.get("uri_encode_path", properties["service"] != "s3")

    def _apply_required_fields(
        self,
        *,
        request: AWSRequest,
        properties: SigV4SigningProperties,
        identity: AWSCredentialsIdentity,
    ) -> None:
        # A caller-supplied Date or X-Amz-Date header is signed as given.
        if "Date" not in request.fields and "X-Amz-Date" not in request.fields:
            request.fields.set_field(
                Field(name="X-Amz-Date", values=[properties["date"]])
            )
        if (
            "X-Amz-Security-Token" not in request.fields
            and identity.session_token is not None
        ):
            request.fields.set_field(
                Field(name="X-Amz-Security-Token", values=[identity.session_token])
            )

    def _should_sha256_sign_payload(
        self, *, request: AWSRequest, properties: SigV4SigningProperties
    ) -> bool:
        # Plain HTTP payloads are always hashed.
        if request.destination.scheme != "https":
            return True

        return properties.get("payload_signing_enabled", True)

    def _format_canonical_payload(
        self, *, request: AWSRequest, properties: SigV4SigningProperties
    ) -> str:
        payload_hash = self._compute_payload_hash(
            request=request, properties=properties
        )
        if properties.get("content_checksum_enabled", True):
            request.fields.set_field(
                Field(name="X-Amz-Content-SHA256", values=[payload_hash])
            )
        return payload_hash

    def _compute_payload_hash(
        self, *, request: AWSRequest, properties: SigV4SigningProperties
    ) -> str:
        if not self._should_sha256_sign_payload(
            request=request, properties=properties
        ):
            return UNSIGNED_PAYLOAD

        body = request.body

        if body is None:
            return EMPTY_SHA256_HASH

        if isinstance(body, bytes | bytearray):
            return sha256(body).hexdigest()

        if not isinstance(body, Iterable):
            raise TypeError(
                "An async body was attached to a synchronous signer. Please ensure "
                "your body is bytes or of type Iterable[bytes]."
            )

        warnings.warn(
            "Hashing a streamed request body for signing reads it in full. Pass "
            "bytes or disable payload_signing_enabled for large bodies.",
            PresignWarning,
        )

        checksum = sha256()
        if isinstance(body, Seekable):
            position = body.tell()
            for chunk in body:
                checksum.update(chunk)
            body.seek(position)
        else:
            buffer = io.BytesIO()
            for chunk in body:
                buffer.write(chunk)
                checksum.update(chunk)
            buffer.seek(0)
            request.body = buffer
        return checksum.hexdigest()
