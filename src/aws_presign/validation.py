# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Server-side checks for presigned URLs.

A :py:class:`PresignedURLValidator` answers the questions a service asks of an
incoming presigned request: are all of the ``X-Amz-*`` parameters there, are they well
formed, has the URL expired, and (given the secret for the access key) does the
signature match. The answer is always a :py:class:`ValidationResult`; an expired or
tampered URL is an ordinary outcome, not an exception.
"""

import datetime
import hmac
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from ._http import URI, AWSRequest, Field, Fields
from .canonical import canonical_request
from .exceptions import InvalidRequestError
from .interfaces.identity import AWSCredentialsIdentity
from .signers import (
    ALGORITHM,
    MAX_EXPIRES,
    MIN_EXPIRES,
    SCOPE_TERMINATOR,
    UNSIGNED_PAYLOAD,
    Clock,
    SigningScope,
    compute_signature,
    derive_signing_key,
    parse_timestamp,
    string_to_sign,
)

logger = logging.getLogger(__name__)

REQUIRED_QUERY_PARAMS: tuple[str, ...] = (
    "X-Amz-Algorithm",
    "X-Amz-Credential",
    "X-Amz-Date",
    "X-Amz-Expires",
    "X-Amz-SignedHeaders",
    "X-Amz-Signature",
)


class ValidationOutcome(Enum):
    VALID = "valid"
    MISSING_PARAMETER = "missing_parameter"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    UNKNOWN_ACCESS_KEY = "unknown_access_key"
    SIGNATURE_MISMATCH = "signature_mismatch"


_OUTCOME_STATUS: dict[ValidationOutcome, int] = {
    ValidationOutcome.VALID: 200,
    ValidationOutcome.MISSING_PARAMETER: 400,
    ValidationOutcome.MALFORMED: 400,
    ValidationOutcome.EXPIRED: 403,
    ValidationOutcome.UNKNOWN_ACCESS_KEY: 403,
    ValidationOutcome.SIGNATURE_MISMATCH: 403,
}


@dataclass(frozen=True, kw_only=True)
class ValidationResult:
    outcome: ValidationOutcome
    message: str = ""
    parameter: str | None = None
    """The query parameter the outcome concerns, if any."""

    expires_at: datetime.datetime | None = None

    @property
    def is_valid(self) -> bool:
        return self.outcome is ValidationOutcome.VALID

    @property
    def status(self) -> int:
        """The HTTP status a service would answer with."""
        return _OUTCOME_STATUS[self.outcome]


class PresignedURLValidator:
    """Checks presigned URLs against the rules a SigV4 service enforces."""

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        credentials: Mapping[str, AWSCredentialsIdentity]
        | Iterable[AWSCredentialsIdentity]
        | None = None,
    ) -> None:
        """
        :param clock: Returns the current time in UTC, used for the expiry check.
        :param credentials: Identities whose signatures can be verified, either as a
            mapping from access key ID or as a plain collection. When omitted, only
            presence, format, and expiry are checked.
        """
        self._clock = clock or (lambda: datetime.datetime.now(datetime.UTC))
        if credentials is None:
            self._credentials: dict[str, AWSCredentialsIdentity] | None = None
        elif isinstance(credentials, Mapping):
            self._credentials = dict(credentials)
        else:
            self._credentials = {
                identity.access_key_id: identity for identity in credentials
            }

    def validate(
        self, request: AWSRequest | str, *, headers: Mapping[str, str] | None = None
    ) -> ValidationResult:
        """Validate a presigned URL, or a request sent to one.

        :param request: The URL string, or the request that carried it.
        :param headers: Headers that accompany a bare URL. Ignored for requests, which
            carry their own.
        """
        if isinstance(request, str):
            try:
                request = AWSRequest.from_url("GET", request, headers=headers)
            except InvalidRequestError as e:
                return self._result(ValidationOutcome.MALFORMED, str(e))

        params: dict[str, str] = {}
        for key, value in request.destination.query_params:
            params.setdefault(key, value)

        for name in REQUIRED_QUERY_PARAMS:
            if not params.get(name):
                return self._result(
                    ValidationOutcome.MISSING_PARAMETER,
                    f"Missing required parameter: {name}",
                    parameter=name,
                )

        if params["X-Amz-Algorithm"] != ALGORITHM:
            return self._result(
                ValidationOutcome.MALFORMED,
                f"Unsupported algorithm: {params['X-Amz-Algorithm']}",
                parameter="X-Amz-Algorithm",
            )

        credential_parts = params["X-Amz-Credential"].split("/")
        if len(credential_parts) != 5 or credential_parts[4] != SCOPE_TERMINATOR:
            return self._result(
                ValidationOutcome.MALFORMED,
                "Invalid credential scope.",
                parameter="X-Amz-Credential",
            )
        access_key, date, region, service, _ = credential_parts

        try:
            signed_at = parse_timestamp(params["X-Amz-Date"])
        except ValueError:
            return self._result(
                ValidationOutcome.MALFORMED,
                f"X-Amz-Date {params['X-Amz-Date']!r} is not a valid timestamp.",
                parameter="X-Amz-Date",
            )
        if params["X-Amz-Date"][0:8] != date:
            return self._result(
                ValidationOutcome.MALFORMED,
                f"Date in credential scope ({date}) does not match X-Amz-Date.",
                parameter="X-Amz-Date",
            )

        raw_expires = params["X-Amz-Expires"]
        expires = 0
        if raw_expires.isascii() and raw_expires.isdigit():
            expires = int(raw_expires)
        if not MIN_EXPIRES <= expires <= MAX_EXPIRES:
            return self._result(
                ValidationOutcome.MALFORMED,
                f"X-Amz-Expires must be between {MIN_EXPIRES} and {MAX_EXPIRES}.",
                parameter="X-Amz-Expires",
            )

        expires_at = signed_at + datetime.timedelta(seconds=expires)
        if expires_at < self._clock():
            return self._result(
                ValidationOutcome.EXPIRED,
                "Request has expired",
                parameter="X-Amz-Expires",
                expires_at=expires_at,
            )

        if self._credentials is not None:
            identity = self._credentials.get(access_key)
            if identity is None:
                return self._result(
                    ValidationOutcome.UNKNOWN_ACCESS_KEY,
                    f"The access key ID {access_key} does not exist.",
                    parameter="X-Amz-Credential",
                )
            signed_headers = params["X-Amz-SignedHeaders"].split(";")
            missing = [
                name
                for name in signed_headers
                if name != "host" and name not in request.fields
            ]
            if missing:
                return self._result(
                    ValidationOutcome.MALFORMED,
                    "Signed headers are missing from the request: "
                    f"{', '.join(missing)}",
                    parameter="X-Amz-SignedHeaders",
                )
            expected = self._expected_signature(
                request=request,
                signed_headers=signed_headers,
                timestamp=params["X-Amz-Date"],
                scope=SigningScope(date=date, region=region, service=service),
                secret_key=identity.secret_access_key,
            )
            if not hmac.compare_digest(expected, params["X-Amz-Signature"]):
                return self._result(
                    ValidationOutcome.SIGNATURE_MISMATCH,
                    "The request signature we calculated does not match the "
                    "signature you provided.",
                    parameter="X-Amz-Signature",
                )

        return self._result(ValidationOutcome.VALID, expires_at=expires_at)

    def _expected_signature(
        self,
        *,
        request: AWSRequest,
        signed_headers: list[str],
        timestamp: str,
        scope: SigningScope,
        secret_key: str,
    ) -> str:
        fields = Fields(
            Field(name=name, values=list(request.fields[name].values))
            for name in signed_headers
            if name in request.fields
        )
        destination: URI = request.destination
        signed_request = AWSRequest(
            destination=destination, method=request.method, fields=fields
        )
        canonical = canonical_request(
            signed_request,
            payload_hash=UNSIGNED_PAYLOAD,
            uri_encode_path=scope.service != "s3",
        )
        logger.debug("Canonical request for validation:\n%s", canonical)
        signing_key = derive_signing_key(
            secret_key, scope.date, scope.region, scope.service
        )
        return compute_signature(
            signing_key,
            string_to_sign(
                timestamp=timestamp, scope=scope, canonical_request=str(canonical)
            ),
        )

    def _result(
        self,
        outcome: ValidationOutcome,
        message: str = "",
        *,
        parameter: str | None = None,
        expires_at: datetime.datetime | None = None,
    ) -> ValidationResult:
        logger.debug("Presigned URL validation outcome %s: %s", outcome.name, message)
        return ValidationResult(
            outcome=outcome,
            message=message,
            parameter=parameter,
            expires_at=expires_at,
        )
