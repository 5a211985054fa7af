# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/keto_tokens/logging/log.py

from __future__ import annotations

import logging
import sys
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional

LOGGER_NAME = "keto_tokens"


def init_logging(
    *,
    verbose: bool = False,
    base_dir: Optional[Path] = None,
    name: str = LOGGER_NAME,
) -> tuple[logging.Logger, Optional[Path]]:
    """
    Initializes:
      - console output on stderr (INFO, DEBUG with --verbose)
      - optionally a full DEBUG trace file under base_dir
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    log_path = None
    if base_dir is not None:
        base_dir.mkdir(parents=True, exist_ok=True)
        ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        log_path = base_dir / f"{name}-{ts}.log"

        fh = logging.FileHandler(log_path)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(formatter)
        logger.addHandler(fh)
        logger.debug("log_file=%s", log_path)

    return logger, log_path
