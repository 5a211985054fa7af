# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/errors.py
from __future__ import annotations

from typing import Optional


class KetoTokensError(RuntimeError):
    """Base class for keto-tokens failures."""


class ConfigInvalidError(KetoTokensError, ValueError):
    """Raised when a server or client configuration is missing required fields."""


class NotFoundError(KetoTokensError):
    """The tag store does not know the node id."""


class ProviderNotRegisteredError(KetoTokensError, LookupError):
    pass


class TimedOutError(KetoTokensError, TimeoutError):
    """The client gave up waiting for a registration token."""


class RandomSourceError(KetoTokensError):
    pass


class MalformedTokenError(KetoTokensError, ValueError):
    pass


class IssuanceFailedError(KetoTokensError):
    """Creating the bootstrap credential failed; the node is retried next cycle."""


class TagWriteFailedError(KetoTokensError):
    """
    Writing the token into the node tag failed after the credential was created.

    compensation_error is set when deleting the just-created credential failed
    too; the credential is then orphaned until it expires.
    """

    def __init__(
        self,
        message: str,
        *,
        write_error: Exception,
        compensation_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.write_error = write_error
        self.compensation_error = compensation_error

    @property
    def orphaned(self) -> bool:
        return self.compensation_error is not None


# ----------------------------------------------------------------------
# Secret store
# ----------------------------------------------------------------------
class StoreError(KetoTokensError):
    """Non-retryable failure talking to the credential store."""


class TransientStoreError(StoreError):
    pass


class SecretConflictError(StoreError):
    """A secret with the same name already exists."""


class IdCollisionError(StoreError):
    """The generated token id is already taken by a different token."""
