# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/tokens/issuer.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, List, Optional, Protocol

from keto_tokens.cloud.models import NodeID
from keto_tokens.errors import (
    IdCollisionError,
    IssuanceFailedError,
    SecretConflictError,
    StoreError,
    TransientStoreError,
)
from keto_tokens.tokens import codec
from keto_tokens.tokens.codec import (
    DEFAULT_FORMAT,
    SECRET_TYPE_BOOTSTRAP_TOKEN,
    TOKEN_SECRET_KEY,
    BootstrapToken,
    CredentialRecord,
    TokenFormat,
)
from keto_tokens.utils.retry import RetryError, RetryPolicy

log = logging.getLogger("keto_tokens")

RETRYABLE_STORE_ERRORS: tuple[type[Exception], ...] = (
    TransientStoreError,
    SecretConflictError,
    IdCollisionError,
)

DEFAULT_ISSUE_POLICY = RetryPolicy(attempts=5, retry_on=RETRYABLE_STORE_ERRORS)


class SecretStore(Protocol):
    """
    Namespaced secrets with plain string data.

    create raises SecretConflictError when the name is taken and
    TransientStoreError for failures worth retrying. delete of a missing
    secret is not an error.
    """

    def get(self, name: str, namespace: str) -> Optional[Dict[str, str]]: ...

    def create(self, name: str, namespace: str, data: Dict[str, str], secret_type: str) -> None: ...

    def delete(self, name: str, namespace: str) -> None: ...


class CredentialIssuer(Protocol):
    def create(self, node_id: NodeID, ttl: timedelta, usages: List[str], namespace: str) -> str: ...

    def delete(self, token: str, namespace: str) -> None: ...


class TokenIssuer:
    """
    Issues bootstrap tokens as secrets in a SecretStore.
    """

    def __init__(
        self,
        store: SecretStore,
        *,
        fmt: TokenFormat = DEFAULT_FORMAT,
        policy: RetryPolicy = DEFAULT_ISSUE_POLICY,
    ):
        self.store = store
        self.fmt = fmt
        self.policy = policy

    def create(
        self,
        node_id: NodeID,
        ttl: timedelta,
        usages: List[str],
        namespace: str,
    ) -> str:
        """
        Generate a token and persist it, returning the full "id.secret" string.

        Each attempt first looks the secret up by name: our own secret means a
        previous attempt landed and is reused, somebody else's secret means the
        id collided and a fresh token is generated.
        """
        current: List[BootstrapToken] = [codec.generate(self.fmt)]

        def attempt() -> BootstrapToken:
            token = current[0]
            name = codec.secret_name(token.id)
            existing = self.store.get(name, namespace)
            if existing is not None:
                if existing.get(TOKEN_SECRET_KEY) == token.secret:
                    log.debug("secret %s/%s already present, reusing", namespace, name)
                    return token
                current[0] = codec.generate(self.fmt)
                raise IdCollisionError(f"token id {token.id} already in use")

            self.store.create(
                name,
                namespace,
                codec.encode_secret_data(token, usages, ttl),
                SECRET_TYPE_BOOTSTRAP_TOKEN,
            )
            return token

        def on_retry(n: int, exc: Exception) -> None:
            log.debug("token create for node %s failed (attempt %d/%d): %s",
                      node_id, n, self.policy.attempts, exc)

        try:
            token = self.policy.call(attempt, on_retry=on_retry)
        except RetryError as e:
            raise IssuanceFailedError(
                f"failed to add the token for {node_id} after {e.attempts} attempts: {e.last_error}"
            ) from e.last_error
        except StoreError as e:
            raise IssuanceFailedError(f"failed to add the token for {node_id}: {e}") from e

        return str(token)

    def delete(self, token: str, namespace: str) -> None:
        parsed = codec.parse(token, self.fmt)
        name = codec.secret_name(parsed.id)
        if self.store.get(name, namespace) is None:
            return
        self.store.delete(name, namespace)

    def lookup(self, token_id: str, namespace: str) -> Optional[CredentialRecord]:
        codec.validate_id(token_id, self.fmt)
        data = self.store.get(codec.secret_name(token_id), namespace)
        if data is None:
            return None
        return codec.decode_secret_data(data)
