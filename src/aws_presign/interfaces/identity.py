# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol, runtime_checkable


@runtime_checkable
class Identity(Protocol):
    """Who a signature is produced on behalf of."""

    expiration: datetime | None = None
    """When the identity stops being usable for signing, always in UTC."""

    def expired_at(self, now: datetime) -> bool:
        """Whether the identity has expired as of ``now``."""
        if self.expiration is None:
            return False
        return now >= self.expiration

    @property
    def is_expired(self) -> bool:
        return self.expired_at(datetime.now(tz=UTC))


@runtime_checkable
class AWSCredentialsIdentity(Identity, Protocol):
    """An access key pair, optionally with the token of a temporary session."""

    access_key_id: str
    """Appears in the credential scope of every signature, e.g. ``AKIDEXAMPLE``."""

    secret_access_key: str
    """Never transmitted; only used to derive signing keys."""

    session_token: str | None = None
    """Sent as ``X-Amz-Security-Token`` when present."""
