# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events of one reconcile cycle / claim run
    component: str    # server / client

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(component: str) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": str(uuid.uuid4()),
        "component": component,
    }


# ---------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ReconcileStarted(BaseEvent):
    pools: int
    filters: str

@dataclass(frozen=True)
class PoolDiscoveryFailed(BaseEvent):
    error: str

@dataclass(frozen=True)
class NodeSkipped(BaseEvent):
    node: str
    pool: str
    reason: str

@dataclass(frozen=True)
class TokenIssued(BaseEvent):
    node: str
    pool: str
    expires: Optional[str] = None

@dataclass(frozen=True)
class TokenIssueFailed(BaseEvent):
    node: str
    pool: str
    error: str

@dataclass(frozen=True)
class CompensationFailed(BaseEvent):
    node: str
    write_error: str
    delete_error: str

@dataclass(frozen=True)
class ReconcileCompleted(BaseEvent):
    issued: int
    skipped: int
    failed: int
    duration_ms: int


# ---------------------------------------------------------------------
# Claimant
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ClaimWaiting(BaseEvent):
    node: str
    tag: str

@dataclass(frozen=True)
class TokenClaimed(BaseEvent):
    node: str
    tag: str

@dataclass(frozen=True)
class TokenAlreadyConsumed(BaseEvent):
    node: str
    tag: str

@dataclass(frozen=True)
class ClaimTimedOut(BaseEvent):
    node: str
    timeout_s: float
