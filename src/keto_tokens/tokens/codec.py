# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/tokens/codec.py

"""
Bootstrap tokens in the format the Kubernetes bootstrap authenticator
understands: "<id>.<secret>", stored as a secret named bootstrap-token-<id>.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Mapping, Optional

from keto_tokens.errors import MalformedTokenError, RandomSourceError

BOOTSTRAP_TOKEN_SECRET_PREFIX = "bootstrap-token-"
SECRET_TYPE_BOOTSTRAP_TOKEN = "bootstrap.kubernetes.io/token"

TOKEN_ID_KEY = "token-id"
TOKEN_SECRET_KEY = "token-secret"
EXPIRATION_KEY = "expiration"
USAGE_PREFIX = "usage-bootstrap-"

DEFAULT_USAGES = ("authentication", "signing")

_RFC3339 = "%Y-%m-%dT%H:%M:%SZ"


@dataclass(frozen=True)
class TokenFormat:
    """Random bytes per segment; each byte becomes two hex characters."""
    id_bytes: int = 3
    secret_bytes: int = 8

    @property
    def id_length(self) -> int:
        return self.id_bytes * 2

    @property
    def secret_length(self) -> int:
        return self.secret_bytes * 2

    @property
    def id_pattern(self) -> str:
        return f"^([a-z0-9]{{{self.id_length}}})$"

    @property
    def token_pattern(self) -> str:
        return rf"^([a-z0-9]{{{self.id_length}}})\.([a-z0-9]{{{self.secret_length}}})$"


DEFAULT_FORMAT = TokenFormat()


@dataclass(frozen=True)
class BootstrapToken:
    id: str
    secret: str = field(repr=False)

    def __str__(self) -> str:
        return f"{self.id}.{self.secret}"


@dataclass(frozen=True)
class CredentialRecord:
    token_id: str
    token_secret: str = field(repr=False)
    usages: List[str] = field(default_factory=list)
    expires: Optional[datetime] = None


def _rand_hex(length: int) -> str:
    try:
        return secrets.token_hex(length)
    except (OSError, NotImplementedError) as e:
        raise RandomSourceError(f"unable to read {length} random bytes: {e}") from e


def generate(fmt: TokenFormat = DEFAULT_FORMAT) -> BootstrapToken:
    token_id = _rand_hex(fmt.id_bytes)
    token_secret = _rand_hex(fmt.secret_bytes)
    return parse(f"{token_id}.{token_secret}", fmt)


def parse(s: str, fmt: TokenFormat = DEFAULT_FORMAT) -> BootstrapToken:
    if not isinstance(s, str):
        raise MalformedTokenError(f"token must be a string, got {type(s).__name__}")
    m = re.fullmatch(fmt.token_pattern, s)
    if not m:
        raise MalformedTokenError(f"token [{s!r}] was not of form [{fmt.token_pattern!r}]")
    return BootstrapToken(id=m.group(1), secret=m.group(2))


def validate_id(s: str, fmt: TokenFormat = DEFAULT_FORMAT) -> str:
    if not isinstance(s, str) or not re.fullmatch(fmt.id_pattern, s):
        raise MalformedTokenError(f"token ID [{s!r}] was not of form [{fmt.id_pattern!r}]")
    return s


def secret_name(token_id: str) -> str:
    return f"{BOOTSTRAP_TOKEN_SECRET_PREFIX}{token_id}"


def encode_secret_data(
    token: BootstrapToken,
    usages: List[str],
    ttl: timedelta,
    now: Optional[datetime] = None,
) -> Dict[str, str]:
    """
    Build the .data of a bootstrap token secret (plain strings, not base64).
    A zero ttl means the token never expires.
    """
    data = {
        TOKEN_ID_KEY: token.id,
        TOKEN_SECRET_KEY: token.secret,
    }
    if ttl > timedelta(0):
        now = now or datetime.now(timezone.utc)
        data[EXPIRATION_KEY] = (now + ttl).astimezone(timezone.utc).strftime(_RFC3339)
    for usage in usages:
        data[f"{USAGE_PREFIX}{usage}"] = "true"
    return data


def decode_secret_data(data: Mapping[str, str]) -> CredentialRecord:
    try:
        token_id = data[TOKEN_ID_KEY]
        token_secret = data[TOKEN_SECRET_KEY]
    except KeyError as e:
        raise MalformedTokenError(f"secret data is missing {e.args[0]}") from None

    expires = None
    if data.get(EXPIRATION_KEY):
        expires = datetime.strptime(data[EXPIRATION_KEY], _RFC3339).replace(tzinfo=timezone.utc)

    usages = sorted(
        k[len(USAGE_PREFIX):]
        for k, v in data.items()
        if k.startswith(USAGE_PREFIX) and v == "true"
    )
    return CredentialRecord(
        token_id=token_id,
        token_secret=token_secret,
        usages=usages,
        expires=expires,
    )
