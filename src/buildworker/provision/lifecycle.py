# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/buildworker/provision/lifecycle.py

"""
Replacement policy for the worker VM.

The VM's identity includes its cloud-init document: when the document's
content changes the VM is destroyed and created again. The old VM is deleted
*before* the new one is created, because both would need the same NIC. That
costs a short outage on every bootstrap change. No other attribute forces a
replacement.

``replacement_options`` is what the Pulumi engine sees; ``InstanceLifecycle``
models the same rule as an explicit state machine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import pulumi

from buildworker.bootstrap.cloudinit import document_fingerprint
from buildworker.observers.dispatcher import EventBus
from buildworker.observers.events import InstanceStateChanged, new_ctx

log = logging.getLogger("buildworker")

# Pulumi property path of the base64 cloud-init document on the VM
CUSTOM_DATA_PROPERTY = "osProfile.customData"


class InstanceState(str, Enum):
    ABSENT = "Absent"
    CREATING = "Creating"
    RUNNING = "Running"
    PENDING_REPLACE = "PendingReplace"
    DELETING = "Deleting"


ALLOWED_TRANSITIONS = {
    InstanceState.ABSENT: {InstanceState.CREATING},
    InstanceState.CREATING: {InstanceState.RUNNING},
    InstanceState.RUNNING: {InstanceState.PENDING_REPLACE},
    # back to Running when the document reverts before the replacement runs
    InstanceState.PENDING_REPLACE: {InstanceState.DELETING, InstanceState.RUNNING},
    InstanceState.DELETING: {InstanceState.CREATING},
}


class InvalidStateTransition(Exception):
    pass


@dataclass(frozen=True)
class InstanceSpec:
    vm_size: str
    image: str
    bootstrap_document: str

    @property
    def fingerprint(self) -> str:
        return document_fingerprint(self.bootstrap_document)


def requires_replacement(current: InstanceSpec, desired: InstanceSpec) -> bool:
    return current.fingerprint != desired.fingerprint


def replacement_options(
    opts: Optional[pulumi.ResourceOptions] = None,
) -> pulumi.ResourceOptions:
    policy = pulumi.ResourceOptions(
        replace_on_changes=[CUSTOM_DATA_PROPERTY],
        delete_before_replace=True,
    )
    return pulumi.ResourceOptions.merge(opts, policy) if opts else policy


class InstanceLifecycle:
    """
    Absent -> Creating -> Running -> PendingReplace -> Deleting -> Creating -> Running

    PendingReplace falls back to Running if the document reverts first.
    """

    def __init__(
        self,
        *,
        bus: Optional[EventBus] = None,
        stack: str = "local",
        run_id: Optional[str] = None,
    ):
        self.state = InstanceState.ABSENT
        self.spec: Optional[InstanceSpec] = None
        self.pending: Optional[InstanceSpec] = None
        self._bus = bus
        self._stack = stack
        self._run_id = run_id

    def transition(self, new_state: InstanceState, *, reason: str = "") -> InstanceState:
        current = self.state
        if current == new_state:
            return current

        allowed = ALLOWED_TRANSITIONS.get(current, set())
        if new_state not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {current.value} to {new_state.value}"
            )

        self.state = new_state
        log.debug("instance %s -> %s (%s)", current.value, new_state.value, reason)
        if self._bus:
            self._bus.emit(
                InstanceStateChanged(
                    previous=current.value,
                    current=new_state.value,
                    reason=reason,
                    **new_ctx(stack=self._stack, context=None, run_id=self._run_id),
                )
            )
        return new_state

    def create(self, spec: InstanceSpec) -> InstanceState:
        self.transition(InstanceState.CREATING, reason="create")
        self.spec = spec
        return self.transition(InstanceState.RUNNING, reason="created")

    def observe(self, desired: InstanceSpec) -> InstanceState:
        """
        Compare *desired* with the running spec.

        A different bootstrap document marks the VM PendingReplace; any other
        difference is applied in place. A pending replacement is dropped when
        the document goes back to what the running VM booted with.
        """
        if self.state == InstanceState.ABSENT:
            return self.create(desired)

        if self.state == InstanceState.PENDING_REPLACE:
            if self.spec is not None and not requires_replacement(self.spec, desired):
                self.pending = None
                self.spec = desired
                return self.transition(InstanceState.RUNNING, reason="bootstrap document reverted")
            self.pending = desired
            return self.state

        if self.state != InstanceState.RUNNING or self.spec is None:
            raise InvalidStateTransition(f"Cannot observe changes while {self.state.value}")

        if requires_replacement(self.spec, desired):
            self.pending = desired
            return self.transition(InstanceState.PENDING_REPLACE, reason="bootstrap document changed")

        if desired != self.spec:
            log.info(
                "updating instance in place (vm_size %s -> %s)",
                self.spec.vm_size,
                desired.vm_size,
            )
            self.spec = desired
        return self.state

    def replace(self) -> List[InstanceState]:
        """Delete the old VM, then create the pending one. Returns the states visited."""
        if self.state != InstanceState.PENDING_REPLACE or self.pending is None:
            raise InvalidStateTransition(f"Nothing to replace while {self.state.value}")

        visited = [self.transition(InstanceState.DELETING, reason="delete before replace")]
        self.spec = None
        visited.append(self.transition(InstanceState.CREATING, reason="recreate"))
        self.spec, self.pending = self.pending, None
        visited.append(self.transition(InstanceState.RUNNING, reason="replaced"))
        return visited
