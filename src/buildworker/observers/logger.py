# src/buildworker/observers/logger.py

from __future__ import annotations
import logging
from .events import BaseEvent, PlanFailed

# envelope fields printed in the prefix, not the body
_ENVELOPE = ("ts", "run_id", "stack", "context")


class LoggerObserver:
    """Writes each event as one line: ``[EVENT] Name stack/context: k=v, ...``."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        fields = {k: v for k, v in event.dict().items() if k not in _ENVELOPE}
        if "fingerprint" in fields:
            fields["fingerprint"] = fields["fingerprint"][:12]
        where = event.stack if event.context is None else f"{event.stack}/{event.context}"
        body = ", ".join(f"{k}={v}" for k, v in fields.items())

        level = logging.WARNING if isinstance(event, PlanFailed) else logging.INFO
        self.logger.log(level, "[EVENT] %s %s: %s", event.__class__.__name__, where, body)
