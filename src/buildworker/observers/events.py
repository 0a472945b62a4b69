# src/buildworker/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single provisioning run
    stack: str        # pulumi stack or "local" for offline renders
    context: Optional[str]  # domain strategy in effect

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(stack: str, context: Optional[str], run_id: Optional[str] = None) -> Dict[str, Any]:
    """Envelope fields for an event; pass the run_id from init_logging to correlate."""
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "stack": stack,
        "context": context,
    }


# ---------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanComputed(BaseEvent):
    order: List[str]

@dataclass(frozen=True)
class PlanFailed(BaseEvent):
    error: str


# ---------------------------------------------------------------------
# Bootstrap synthesis
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BootstrapSynthesized(BaseEvent):
    domain: str
    image: str
    fingerprint: str


# ---------------------------------------------------------------------
# Compute instance lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class InstanceStateChanged(BaseEvent):
    previous: str
    current: str
    reason: str
