# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/cli/helper.py

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, Optional

from keto_tokens.errors import ConfigInvalidError
from keto_tokens.observers.dispatcher import EventBus
from keto_tokens.observers.jsonfile import JsonFileObserver
from keto_tokens.observers.logger import LoggerObserver

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value: Optional[str]) -> Optional[float]:
    """
    Parse '90', '10s', '30m', '1h30m' or '500ms' into seconds.
    None / empty returns None.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        pass

    parts = _DURATION_PART.findall(value)
    if not parts or "".join(n + u for n, u in parts) != value:
        raise ConfigInvalidError(f"invalid duration: {value!r}")
    return sum(float(n) * _UNIT_SECONDS[u] for n, u in parts)


def parse_filters(filters: Optional[Iterable[str]]) -> Dict[str, str]:
    """
    Convert a collection of key=value items (each may itself be comma
    separated) into filter tags.
    """
    tags: Dict[str, str] = {}
    for raw in filters or []:
        for item in raw.split(","):
            item = item.strip()
            if not item:
                continue
            e = item.split("=")
            if len(e) != 2:
                raise ConfigInvalidError(f"filter: {item} is invalid")
            if not e[0] or not e[1]:
                raise ConfigInvalidError(f"filter: {item} is invalid length")
            tags[e[0]] = e[1]
    return tags


def build_bus(logger: logging.Logger, events_file: Optional[Path] = None) -> EventBus:
    observers = [LoggerObserver(logger)]
    if events_file is not None:
        observers.append(JsonFileObserver(events_file))
    return EventBus(observers=observers)
