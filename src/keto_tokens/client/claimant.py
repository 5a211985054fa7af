# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/client/claimant.py

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from keto_tokens.cloud.models import NodeID
from keto_tokens.cloud.provider import TagStore
from keto_tokens.cloud.registration import RegistrationTag, TagState
from keto_tokens.config.models import ClientConfig
from keto_tokens.errors import TimedOutError
from keto_tokens.observers.dispatcher import EventBus
from keto_tokens.observers.events import (
    new_ctx,
    ClaimTimedOut,
    ClaimWaiting,
    TokenAlreadyConsumed,
    TokenClaimed,
)

log = logging.getLogger("keto_tokens")


class ClaimStatus(str, enum.Enum):
    CLAIMED = "CLAIMED"
    ALREADY_CONSUMED = "ALREADY_CONSUMED"


@dataclass(frozen=True)
class ClaimResult:
    status: ClaimStatus
    node: NodeID
    token: Optional[str] = field(default=None, repr=False)

    @property
    def claimed(self) -> bool:
        return self.status is ClaimStatus.CLAIMED


class Claimant:
    """
    Runs on the node: waits for the registration token to show up in the
    node's own tag, swaps it for the completion marker and returns it.
    """

    def __init__(
        self,
        config: ClientConfig,
        provider: TagStore,
        *,
        bus: Optional[EventBus] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.provider = provider
        self.bus = bus or EventBus()
        self.registration = RegistrationTag(provider, config.tag_name)
        self._clock = clock
        self._sleep = sleep

    def start(self) -> ClaimResult:
        """
        Block until the token is claimed, found already consumed, or the
        timeout expires (TimedOutError). Tag store errors propagate untouched.
        """
        cfg = self.config
        ctx = new_ctx(component="client")
        node_id = self.provider.get_node_id()

        deadline = None
        if cfg.timeout_seconds:
            deadline = self._clock() + cfg.timeout_seconds

        waiting_reported = False
        while True:
            result = self._poll(node_id, ctx)
            if result is not None:
                return result

            if not waiting_reported:
                log.debug("registration token not yet available: id=%s tag=%s", node_id, cfg.tag_name)
                self.bus.emit(ClaimWaiting(node=node_id, tag=cfg.tag_name, **ctx))
                waiting_reported = True

            pause = cfg.interval_seconds
            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    self._timed_out(node_id, ctx)
                pause = min(pause, remaining)
            self._sleep(pause)

            if deadline is not None and self._clock() >= deadline:
                self._timed_out(node_id, ctx)

    def _poll(self, node_id: NodeID, ctx: dict) -> Optional[ClaimResult]:
        tag = self.config.tag_name
        state = self.registration.read(node_id)

        if state.state is TagState.ABSENT:
            return None

        if state.state is TagState.CLAIMED:
            log.info("registration token already consumed: id=%s tag=%s", node_id, tag)
            self.bus.emit(TokenAlreadyConsumed(node=node_id, tag=tag, **ctx))
            return ClaimResult(ClaimStatus.ALREADY_CONSUMED, node_id)

        log.info("found kubelet registration token: id=%s tag=%s", node_id, tag)
        self.registration.mark_claimed(node_id)
        self.bus.emit(TokenClaimed(node=node_id, tag=tag, **ctx))
        return ClaimResult(ClaimStatus.CLAIMED, node_id, token=state.token)

    def _timed_out(self, node_id: NodeID, ctx: dict) -> None:
        timeout = self.config.timeout_seconds or 0
        self.bus.emit(ClaimTimedOut(node=node_id, timeout_s=timeout, **ctx))
        raise TimedOutError(f"operation timed out after {timeout}s waiting for tag {self.config.tag_name}")
