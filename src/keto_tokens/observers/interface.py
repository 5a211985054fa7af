# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
from typing import Protocol
from .events import BaseEvent


class Observer(Protocol):
    """
    Receives reconcile and claim lifecycle events from an EventBus.

    notify runs on the emitting thread (a reconcile worker or the claim
    loop); exceptions it raises are logged and dropped by the bus.
    """

    def notify(self, event: BaseEvent) -> None: ...
