# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""AWS Presign generates and checks SigV4 presigned URLs, and signs requests for use
with HTTP tools such as AioHTTP, Curl, Requests, urllib3, etc."""

from __future__ import annotations

from ._http import URI, AWSRequest, Field, Fields, HTTPResponse
from ._identity import AWSCredentialIdentity
from .signers import (
    PresignedURL,
    SigningScope,
    SigV4Signer,
    SigV4SigningProperties,
    derive_signing_key,
)
from .transport import Transport
from .validation import PresignedURLValidator, ValidationOutcome, ValidationResult

__license__ = "Apache-2.0"
__version__ = "0.1.0"

__all__ = (
    "URI",
    "AWSCredentialIdentity",
    "AWSRequest",
    "Field",
    "Fields",
    "HTTPResponse",
    "PresignedURL",
    "PresignedURLValidator",
    "SigV4Signer",
    "SigV4SigningProperties",
    "SigningScope",
    "Transport",
    "ValidationOutcome",
    "ValidationResult",
    "derive_signing_key",
)
