# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/config/models.py

from datetime import timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from keto_tokens.cloud.registration import DEFAULT_TAG_NAME
from keto_tokens.tokens.codec import DEFAULT_USAGES


def _non_empty(v: str, what: str) -> str:
    if not v or not v.strip():
        raise ValueError(f"no {what} specified")
    return v


class ServerConfig(BaseModel):
    """Configuration for the token service (reconciler)."""

    # Kubernetes API access: master + kube_token, else kubeconfig, else in-cluster
    master: Optional[str] = None
    kube_token: Optional[str] = None
    kubeconfig: Optional[str] = None

    tag_name: str = DEFAULT_TAG_NAME
    filters: Dict[str, str] = Field(default_factory=dict)   # AND-combined key=value
    token_namespace: str = "kube-system"
    token_ttl_seconds: float = 30 * 60
    reconcile_interval_seconds: float = 10
    usages: List[str] = Field(default_factory=lambda: list(DEFAULT_USAGES))

    workers: int = 4
    queue_size: int = 10

    @field_validator("tag_name")
    @classmethod
    def _tag_name(cls, v: str) -> str:
        return _non_empty(v, "tag name")

    @field_validator("token_namespace")
    @classmethod
    def _namespace(cls, v: str) -> str:
        return _non_empty(v, "token namespace")

    @field_validator("reconcile_interval_seconds")
    @classmethod
    def _interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("reconcile interval must be greater than zero")
        return v

    @field_validator("token_ttl_seconds")
    @classmethod
    def _ttl(cls, v: float) -> float:
        if v < 0:
            raise ValueError("token ttl cannot be negative")
        return v

    @field_validator("workers", "queue_size")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @property
    def token_ttl(self) -> timedelta:
        return timedelta(seconds=self.token_ttl_seconds)


class ClientConfig(BaseModel):
    """Configuration for the node side token consumer."""

    master: str = "https://127.0.0.1:6443"
    kubeconfig: str = "kubeconfig-bootstrap"     # output path
    ca_path: Optional[str] = None                # unset -> insecure-skip-tls-verify
    tag_name: str = DEFAULT_TAG_NAME
    interval_seconds: float = 5
    timeout_seconds: Optional[float] = None      # None or 0 -> wait forever

    @field_validator("tag_name")
    @classmethod
    def _tag_name(cls, v: str) -> str:
        return _non_empty(v, "tag name")

    @field_validator("interval_seconds")
    @classmethod
    def _interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("interval must be greater than zero")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def _timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("timeout cannot be negative")
        return v or None
