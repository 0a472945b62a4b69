# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import List, Dict, Set, Optional, Tuple

# Observer bits
from ..observers.dispatcher import EventBus
from ..observers.events import PlanComputed, PlanFailed, new_ctx


class UnknownDependencyError(ValueError):
    pass


class CyclicDependencyError(ValueError):
    pass


@dataclass(frozen=True)
class ResourceNode:
    name: str
    kind: str
    dependencies: Tuple[str, ...] = ()


@dataclass
class ResourceGraph:
    nodes: List[ResourceNode] = field(default_factory=list)
    strategy: Optional[str] = None

    def by_name(self) -> Dict[str, ResourceNode]:
        return {n.name: n for n in self.nodes}


def worker_graph(strategy: str) -> ResourceGraph:
    """
    Resources of one build worker and what each one waits on.

    Descriptive: the engine orders the real resources from the inputs
    ``provision`` wires between them. This graph feeds the plan log line and
    the ``plan`` command, and tests keep its resource kinds in step with what
    ``provision`` registers.

    The DNS record (managed zones only) waits on the address, never on the VM.
    """
    nodes = [
        ResourceNode("resource-group", "resource-group"),
        ResourceNode("public-ip", "public-address", ("resource-group",)),
        ResourceNode("domain", "domain", ("public-ip",)),
    ]
    if strategy == "managed":
        nodes.append(ResourceNode("dns-record", "dns-record", ("public-ip",)))
    nodes += [
        ResourceNode("virtual-network", "virtual-network", ("resource-group",)),
        ResourceNode("subnet", "subnet", ("virtual-network",)),
        ResourceNode("security-group", "security-group", ("resource-group",)),
        ResourceNode(
            "network-interface",
            "network-interface",
            ("subnet", "security-group", "public-ip"),
        ),
        ResourceNode("ssh-key", "key-pair"),
        ResourceNode("bootstrap", "bootstrap-document", ("domain",)),
        ResourceNode(
            "vm",
            "compute-instance",
            ("network-interface", "ssh-key", "bootstrap"),
        ),
    ]
    return ResourceGraph(nodes=nodes, strategy=strategy)


def _validate_dependencies(graph: ResourceGraph) -> None:
    names: Set[str] = {n.name for n in graph.nodes}
    for n in graph.nodes:
        for d in n.dependencies:
            if d not in names:
                raise UnknownDependencyError(
                    f"Resource '{n.name}' depends on unknown resource '{d}'"
                )


def plan(
    graph: ResourceGraph,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
) -> List[ResourceNode]:
    """
    Stable topological sort of the graph; ties keep declaration order.
    Emits PlanComputed / PlanFailed if an EventBus is provided.
    """
    ctx = run_ctx or new_ctx(stack="local", context=graph.strategy)
    try:
        _validate_dependencies(graph)

        position = {n.name: i for i, n in enumerate(graph.nodes)}
        by_name = graph.by_name()
        indeg: Dict[str, int] = {n.name: len(set(n.dependencies)) for n in graph.nodes}
        dependents: Dict[str, List[str]] = {n.name: [] for n in graph.nodes}
        for n in graph.nodes:
            for d in set(n.dependencies):
                dependents[d].append(n.name)

        ready = [(position[name], name) for name, deg in indeg.items() if deg == 0]
        heapq.heapify(ready)
        order: List[ResourceNode] = []

        while ready:
            _, name = heapq.heappop(ready)
            order.append(by_name[name])
            for m in dependents[name]:
                indeg[m] -= 1
                if indeg[m] == 0:
                    heapq.heappush(ready, (position[m], m))

        if len(order) != len(graph.nodes):
            raise CyclicDependencyError("Cyclic dependency detected among resources")

        if bus:
            bus.emit(PlanComputed(order=[n.name for n in order], **ctx))
        return order

    except Exception as e:
        if bus:
            bus.emit(PlanFailed(error=str(e), **ctx))
        raise
