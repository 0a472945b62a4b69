# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
from typing import Protocol
from .events import BaseEvent

class Observer(Protocol):
    """Anything with ``notify``: the logger observer, or a capture list in tests.

    Raising from ``notify`` is tolerated by ``EventBus``; it never reaches the
    Pulumi program.
    """

    def notify(self, event: BaseEvent) -> None: ...
