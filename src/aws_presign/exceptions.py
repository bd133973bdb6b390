# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0


class PresignWarning(UserWarning): ...


class AWSPresignError(Exception):
    """Top-level exception to capture signing and mock dispatch errors."""


class EncodingError(AWSPresignError, ValueError):
    """A request component could not be represented as valid UTF-8."""


class InvalidRequestError(AWSPresignError, ValueError):
    """The request is missing a component that signing requires."""


class ExpiredCredentialError(InvalidRequestError):
    """The credentials supplied for signing have passed their expiration."""


class InvalidExpiryError(AWSPresignError, ValueError):
    """A presign expiry was outside of the range allowed by SigV4."""


class UnsupportedAlgorithmError(AWSPresignError, ValueError):
    """Only ``AWS4-HMAC-SHA256`` signatures can be produced."""


class NoResponderError(AWSPresignError):
    """No registered responder matched a request sent through a mock dispatcher."""

    def __init__(self, method: str, url: str) -> None:
        self.method = method
        self.url = url
        super().__init__(f"No responder found for {method} {url}")


class ResponderError(AWSPresignError):
    """A responder reported a failure for the request it was given.

    Responders may return an instance instead of raising it; the dispatcher raises it
    to the caller unchanged either way.
    """
