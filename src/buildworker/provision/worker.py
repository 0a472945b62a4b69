# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/buildworker/provision/worker.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import pulumi
import pulumi_tls as tls
from pulumi_azure_native import compute, network, resources

from buildworker.bootstrap.cloudinit import (
    document_fingerprint,
    encode_custom_data,
    synthesize_output,
)
from buildworker.bootstrap.image import require_image
from buildworker.config.models import WorkerSettings
from buildworker.deploy.planner import plan, worker_graph
from buildworker.observers.dispatcher import EventBus
from buildworker.observers.events import BootstrapSynthesized, new_ctx
from buildworker.provision.domain import ephemeral_domain, resolve_strategy
from buildworker.provision.lifecycle import replacement_options
from buildworker.provision.perimeter import declare_perimeter

log = logging.getLogger("buildworker")

COMPUTER_NAME = "caddy-builder"
ADMIN_USERNAME = "azureuser"

OS_IMAGE = compute.ImageReferenceArgs(
    publisher="Canonical",
    offer="ubuntu-24_04-lts",
    sku="server",
    version="latest",
)


@dataclass
class WorkerOutputs:
    resource_group_name: pulumi.Output[str]
    public_ip_address: pulumi.Output[Optional[str]]
    vm_name: pulumi.Output[str]
    url: pulumi.Output[str]
    sslip_url: pulumi.Output[str]
    ssh_private_key: pulumi.Output[str]

    def export(self) -> None:
        pulumi.export("resourceGroupName", self.resource_group_name)
        pulumi.export("publicIpAddress", self.public_ip_address)
        pulumi.export("vmName", self.vm_name)
        pulumi.export("url", self.url)
        pulumi.export("sslipUrl", self.sslip_url)
        pulumi.export("sshPrivateKey", pulumi.Output.secret(self.ssh_private_key))


def provision(
    settings: WorkerSettings,
    *,
    registry_username: pulumi.Input[Optional[str]] = None,
    registry_password: pulumi.Input[Optional[str]] = None,
    bus: Optional[EventBus] = None,
    stack: str = "local",
    run_id: Optional[str] = None,
) -> WorkerOutputs:
    """
    Declare one build worker.

    Order: resource group, public IP, domain (+ DNS record for managed zones),
    network perimeter, NIC, SSH key, cloud-init document, VM. The VM is
    replaced (delete first) whenever the cloud-init document changes.
    """
    image = require_image(settings.container_image)
    strategy = resolve_strategy(settings.domain)
    ctx = new_ctx(stack=stack, context=strategy.name, run_id=run_id)
    order = plan(worker_graph(strategy.name), bus=bus, run_ctx=ctx)
    log.info("build worker plan: %s", " -> ".join(n.name for n in order))

    prefix = settings.name_prefix

    resource_group = resources.ResourceGroup(f"{prefix}-rg")

    # static, so the address (and any DNS record) survives VM replacement
    public_ip = network.PublicIPAddress(
        f"{prefix}-pip",
        resource_group_name=resource_group.name,
        public_ip_allocation_method=network.IPAllocationMethod.STATIC,
        sku=network.PublicIPAddressSkuArgs(name=network.PublicIPAddressSkuName.STANDARD),
    )

    domain = strategy.resolve(public_ip.ip_address)
    strategy.declare_records(f"{prefix}-dns", public_ip.ip_address)

    perimeter = declare_perimeter(prefix, resource_group.name)

    nic = network.NetworkInterface(
        f"{prefix}-nic",
        resource_group_name=resource_group.name,
        network_security_group=network.NetworkSecurityGroupArgs(id=perimeter.security_group_id),
        ip_configurations=[
            network.NetworkInterfaceIPConfigurationArgs(
                name="ipconfig",
                subnet=network.SubnetArgs(id=perimeter.subnet_id),
                public_ip_address=network.PublicIPAddressArgs(id=public_ip.id),
            )
        ],
    )

    # Azure insists on an auth method; this key is for emergencies only
    ssh_key = tls.PrivateKey(f"{prefix}-ssh-key", algorithm="ED25519")

    document = synthesize_output(
        domain=domain,
        container_image=image,
        auth_password_hash=settings.auth_password_hash,
        registry_username=registry_username,
        registry_password=registry_password,
        go_version=settings.go_version,
    )

    def _announce(args) -> None:
        resolved_domain, doc = args
        if bus:
            bus.emit(
                BootstrapSynthesized(
                    domain=resolved_domain,
                    image=image,
                    fingerprint=document_fingerprint(doc),
                    **ctx,
                )
            )

    pulumi.Output.all(domain, document).apply(_announce)

    vm = compute.VirtualMachine(
        f"{prefix}-vm",
        resource_group_name=resource_group.name,
        hardware_profile=compute.HardwareProfileArgs(vm_size=settings.vm_size),
        os_profile=compute.OSProfileArgs(
            computer_name=COMPUTER_NAME,
            admin_username=ADMIN_USERNAME,
            linux_configuration=compute.LinuxConfigurationArgs(
                disable_password_authentication=True,
                ssh=compute.SshConfigurationArgs(
                    public_keys=[
                        compute.SshPublicKeyArgs(
                            path=f"/home/{ADMIN_USERNAME}/.ssh/authorized_keys",
                            key_data=ssh_key.public_key_openssh,
                        )
                    ],
                ),
            ),
            custom_data=document.apply(encode_custom_data),
        ),
        storage_profile=compute.StorageProfileArgs(
            image_reference=OS_IMAGE,
            os_disk=compute.OSDiskArgs(
                create_option="FromImage",
                caching="ReadWrite",
                managed_disk=compute.ManagedDiskParametersArgs(
                    storage_account_type="StandardSSD_LRS",
                ),
                delete_option="Delete",
            ),
        ),
        network_profile=compute.NetworkProfileArgs(
            network_interfaces=[compute.NetworkInterfaceReferenceArgs(id=nic.id)],
        ),
        opts=replacement_options(),
    )

    sslip_url = public_ip.ip_address.apply(lambda ip: f"https://{ephemeral_domain(ip)}" if ip else "")

    return WorkerOutputs(
        resource_group_name=resource_group.name,
        public_ip_address=public_ip.ip_address,
        vm_name=vm.name,
        url=domain.apply(lambda d: f"https://{d}"),
        sslip_url=sslip_url,
        ssh_private_key=ssh_key.private_key_openssh,
    )
