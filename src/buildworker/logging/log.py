# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/buildworker/logging/log.py

from __future__ import annotations

import logging
import os
from pathlib import Path
from datetime import datetime, timezone
import uuid

LOG_DIR_ENV = "BUILDWORKER_LOG_DIR"
KEEP_LOGS = 20


def _prune(base_dir: Path, keep: int) -> None:
    logs = sorted(base_dir.glob("*.log"), key=lambda p: p.stat().st_mtime, reverse=True)
    for old in logs[keep:]:
        old.unlink(missing_ok=True)


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "buildworker",
    stack: str = "local",
    verbose: bool = False,
    keep: int = KEEP_LOGS,
) -> tuple[logging.Logger, str, Path]:
    """
    Initializes:
      - a full-trace log file per run, named after the stack
        (``$BUILDWORKER_LOG_DIR`` or ``~/.buildworker/logs``; the newest
        *keep* files are kept)
      - a stderr handler (INFO, DEBUG when verbose) so documents printed on
        stdout stay clean
      - returns run_id so observers can reuse it
    """
    run_id = str(uuid.uuid4())

    if base_dir is None:
        env = os.environ.get(LOG_DIR_ENV)
        base_dir = Path(env) if env else Path.home() / ".buildworker" / "logs"
    base_dir.mkdir(parents=True, exist_ok=True)
    _prune(base_dir, max(keep - 1, 0))

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{stack}-{ts}-{run_id[:8]}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for h in list(logger.handlers):
        h.close()
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    fh = logging.FileHandler(log_path)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)

    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(formatter)

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.debug("buildworker run %s on stack %s, log %s", run_id, stack, log_path)
    return logger, run_id, log_path
