# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Deterministic HTTP mocking for tests of code that uses presigned URLs."""

from .mockhttp import (
    ExactPattern,
    MockDispatcher,
    RegexPattern,
    Responder,
    bytes_responder,
    error_responder,
    new_bytes_response,
    new_string_response,
    presigned_url_responder,
    string_responder,
)
from .utils import create_test_request

__all__ = (
    "ExactPattern",
    "MockDispatcher",
    "RegexPattern",
    "Responder",
    "bytes_responder",
    "create_test_request",
    "error_responder",
    "new_bytes_response",
    "new_string_response",
    "presigned_url_responder",
    "string_responder",
)
