# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/server/reconciler.py

from __future__ import annotations

import enum
import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from keto_tokens.cloud.models import NodeID, NodeTags, Pool
from keto_tokens.cloud.provider import TagStore
from keto_tokens.cloud.registration import RegistrationTag
from keto_tokens.config.models import ServerConfig
from keto_tokens.errors import IssuanceFailedError, TagWriteFailedError
from keto_tokens.observers.dispatcher import EventBus
from keto_tokens.observers.events import (
    new_ctx,
    CompensationFailed,
    NodeSkipped,
    PoolDiscoveryFailed,
    ReconcileCompleted,
    ReconcileStarted,
    TokenIssued,
    TokenIssueFailed,
)
from keto_tokens.tokens.issuer import CredentialIssuer

log = logging.getLogger("keto_tokens")


class NodeStatus(str, enum.Enum):
    ISSUED = "ISSUED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass
class NodeOutcome:
    node: NodeID
    pool: str
    status: NodeStatus
    error: Optional[str] = None
    exc: Optional[Exception] = field(default=None, repr=False)


@dataclass
class ReconcileReport:
    outcomes: List[NodeOutcome] = field(default_factory=list)

    def add(self, outcome: NodeOutcome) -> None:
        self.outcomes.append(outcome)

    def by_status(self, status: NodeStatus) -> List[NodeOutcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def issued(self) -> int:
        return len(self.by_status(NodeStatus.ISSUED))

    @property
    def skipped(self) -> int:
        return len(self.by_status(NodeStatus.SKIPPED))

    @property
    def failed(self) -> int:
        return len(self.by_status(NodeStatus.FAILED))

    def summary(self) -> str:
        return f"ISSUED={self.issued} SKIPPED={self.skipped} FAILED={self.failed}"


# (pool name, node) or None to tell a worker to stop
_WorkItem = Optional[Tuple[str, NodeID]]


class Reconciler:
    """
    Finds compute nodes without a registration tag and hands each one a
    bootstrap token through its tag.

    The tag is the only record of what has been issued: a node whose tag is
    present (offered or claimed) is never issued again.
    """

    def __init__(
        self,
        config: ServerConfig,
        provider: TagStore,
        issuer: CredentialIssuer,
        *,
        bus: Optional[EventBus] = None,
    ):
        self.config = config
        self.provider = provider
        self.issuer = issuer
        self.bus = bus or EventBus()
        self.registration = RegistrationTag(provider, config.tag_name)
        self._stop = threading.Event()

        log.info(
            "starting the kubernetes token service: filters=%s tag-name=%s ttl=%ss",
            NodeTags(config.filters).render(), config.tag_name, config.token_ttl_seconds,
        )

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Reconcile now, then every reconcile interval until stop()."""
        while not self._stop.is_set():
            self.reconcile()
            self._stop.wait(self.config.reconcile_interval_seconds)

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    # ------------------------------------------------------------------
    # One cycle
    # ------------------------------------------------------------------
    def reconcile(self) -> ReconcileReport:
        ctx = new_ctx(component="server")
        started = time.monotonic()
        report = ReconcileReport()

        try:
            pools = self.provider.describe_pools(self.config.filters)
        except Exception as e:
            log.error("failed to get list of node pools: %s", e)
            self.bus.emit(PoolDiscoveryFailed(error=str(e), **ctx))
            return report

        log.debug("found %d node pools tagged", len(pools))
        self.bus.emit(
            ReconcileStarted(pools=len(pools), filters=NodeTags(self.config.filters).render(), **ctx)
        )

        lock = threading.Lock()

        def record(outcome: NodeOutcome) -> None:
            with lock:
                report.add(outcome)

        work: "queue.Queue[_WorkItem]" = queue.Queue(maxsize=self.config.queue_size)
        workers = self.config.workers

        producer = threading.Thread(
            target=self._discover,
            args=(pools, work, workers, record, ctx),
            name="keto-discover",
            daemon=True,
        )
        producer.start()
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="keto-issue") as pool:
            for f in [pool.submit(self._drain, work, record, ctx) for _ in range(workers)]:
                f.result()
        producer.join()

        duration_ms = int((time.monotonic() - started) * 1000)
        self.bus.emit(
            ReconcileCompleted(
                issued=report.issued,
                skipped=report.skipped,
                failed=report.failed,
                duration_ms=duration_ms,
                **ctx,
            )
        )
        if report.issued or report.failed:
            log.info("reconcile complete: %s", report.summary())
        else:
            log.debug("reconcile complete: %s", report.summary())
        return report

    def _discover(
        self,
        pools: List[Pool],
        work: "queue.Queue[_WorkItem]",
        workers: int,
        record: Callable[[NodeOutcome], None],
        ctx: dict,
    ) -> None:
        seen = set()
        try:
            for pool in pools:
                for node in pool.nodes:
                    if node in seen:
                        continue
                    seen.add(node)

                    try:
                        state = self.registration.read(node)
                    except Exception as e:
                        log.error("failed to get instance tag: node=%s pool=%s error=%s",
                                  node, pool.name, e)
                        record(NodeOutcome(node, pool.name, NodeStatus.FAILED, str(e), e))
                        continue

                    if state.present:
                        log.debug("skipping node as token already set: node=%s pool=%s",
                                  node, pool.name)
                        record(NodeOutcome(node, pool.name, NodeStatus.SKIPPED))
                        self.bus.emit(
                            NodeSkipped(node=node, pool=pool.name, reason=state.state.value, **ctx)
                        )
                        continue

                    work.put((pool.name, node))
        finally:
            for _ in range(workers):
                work.put(None)

    def _drain(
        self,
        work: "queue.Queue[_WorkItem]",
        record: Callable[[NodeOutcome], None],
        ctx: dict,
    ) -> None:
        while True:
            item = work.get()
            if item is None:
                return
            pool_name, node = item
            record(self._process(pool_name, node, ctx))

    # ------------------------------------------------------------------
    # Per node: create credential -> write tag -> (compensate)
    # ------------------------------------------------------------------
    def _process(self, pool_name: str, node: NodeID, ctx: dict) -> NodeOutcome:
        cfg = self.config
        try:
            token = self.issuer.create(node, cfg.token_ttl, list(cfg.usages), cfg.token_namespace)
        except Exception as e:
            err = e if isinstance(e, IssuanceFailedError) else IssuanceFailedError(
                f"failed to create token: {e}"
            )
            log.error("failed to create registration token: node=%s error=%s", node, err)
            self.bus.emit(TokenIssueFailed(node=node, pool=pool_name, error=str(err), **ctx))
            return NodeOutcome(node, pool_name, NodeStatus.FAILED, str(err), err)

        try:
            self.registration.offer(node, token)
        except Exception as write_err:
            err = self._compensate(node, token, write_err, ctx)
            log.error("failed to create registration token: node=%s error=%s", node, err)
            self.bus.emit(TokenIssueFailed(node=node, pool=pool_name, error=str(err), **ctx))
            return NodeOutcome(node, pool_name, NodeStatus.FAILED, str(err), err)

        expires = None
        if cfg.token_ttl_seconds > 0:
            expires = (datetime.now(timezone.utc) + cfg.token_ttl).isoformat(timespec="seconds")
        log.info("successfully generated token for node: node=%s expires=%s", node, expires)
        self.bus.emit(TokenIssued(node=node, pool=pool_name, expires=expires, **ctx))
        return NodeOutcome(node, pool_name, NodeStatus.ISSUED)

    def _compensate(
        self,
        node: NodeID,
        token: str,
        write_err: Exception,
        ctx: dict,
    ) -> TagWriteFailedError:
        try:
            self.issuer.delete(token, self.config.token_namespace)
        except Exception as del_err:
            log.error(
                "failed to delete the created token on failure to update tags, "
                "token is orphaned until it expires: node=%s write_error=%s delete_error=%s",
                node, write_err, del_err,
            )
            self.bus.emit(
                CompensationFailed(node=node, write_error=str(write_err), delete_error=str(del_err), **ctx)
            )
            return TagWriteFailedError(
                f"failed to update tags: {write_err}; "
                f"failed to delete the created token: {del_err}",
                write_error=write_err,
                compensation_error=del_err,
            )
        return TagWriteFailedError(f"failed to update tags: {write_err}", write_error=write_err)
