# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/buildworker/provision/perimeter.py

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import pulumi
from pulumi_azure_native import network

VNET_CIDR = "10.0.0.0/16"
SUBNET_CIDR = "10.0.1.0/24"


@dataclass(frozen=True)
class InboundRule:
    name: str
    priority: int
    protocol: str        # Azure SecurityRuleProtocol value
    port: str            # "*" for any


# Lower number wins in Azure. SSH is allowed at the NSG but the VM only
# carries an emergency key; password auth is disabled.
SECURITY_RULES: Tuple[InboundRule, ...] = (
    InboundRule("allow-icmp", 100, "Icmp", "*"),
    InboundRule("allow-http", 110, "Tcp", "80"),
    InboundRule("allow-https", 120, "Tcp", "443"),
    InboundRule("allow-ssh", 130, "Tcp", "22"),
)


@dataclass
class NetworkPerimeter:
    virtual_network: network.VirtualNetwork
    subnet: network.Subnet
    security_group: network.NetworkSecurityGroup

    @property
    def virtual_network_id(self) -> pulumi.Output[str]:
        return self.virtual_network.id

    @property
    def subnet_id(self) -> pulumi.Output[str]:
        return self.subnet.id

    @property
    def security_group_id(self) -> pulumi.Output[str]:
        return self.security_group.id


def security_rules() -> List[network.SecurityRuleArgs]:
    return [
        network.SecurityRuleArgs(
            name=rule.name,
            priority=rule.priority,
            direction="Inbound",
            access="Allow",
            protocol=rule.protocol,
            source_port_range="*",
            destination_port_range=rule.port,
            source_address_prefix="*",
            destination_address_prefix="*",
        )
        for rule in SECURITY_RULES
    ]


def declare_perimeter(
    prefix: str,
    resource_group_name: pulumi.Input[str],
    opts: Optional[pulumi.ResourceOptions] = None,
) -> NetworkPerimeter:
    vnet = network.VirtualNetwork(
        f"{prefix}-vnet",
        resource_group_name=resource_group_name,
        address_space=network.AddressSpaceArgs(address_prefixes=[VNET_CIDR]),
        opts=opts,
    )

    subnet = network.Subnet(
        f"{prefix}-subnet",
        resource_group_name=resource_group_name,
        virtual_network_name=vnet.name,
        address_prefix=SUBNET_CIDR,
        opts=opts,
    )

    nsg = network.NetworkSecurityGroup(
        f"{prefix}-nsg",
        resource_group_name=resource_group_name,
        security_rules=security_rules(),
        opts=opts,
    )

    return NetworkPerimeter(virtual_network=vnet, subnet=subnet, security_group=nsg)
