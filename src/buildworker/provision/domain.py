# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/buildworker/provision/domain.py

"""
How the worker's public hostname is derived.

- ``EphemeralWildcardDomain``: ``<ip>.sslip.io``; needs no DNS resource but
  only exists once the public IP has been allocated.
- ``ManagedZoneDomain``: ``<hostname>.<zone>`` in an existing Azure DNS zone;
  known up front, plus an A record pointing at the public IP.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import pulumi
from pulumi_azure_native import dns

from buildworker.config.models import DomainSettings
from buildworker.errors import ConfigError

log = logging.getLogger("buildworker")

WILDCARD_DNS_SUFFIX = "sslip.io"
DEFAULT_HOSTNAME = "caddy-builder"
RECORD_TTL_SECONDS = 300


def ephemeral_domain(ip_address: str, suffix: str = WILDCARD_DNS_SUFFIX) -> str:
    return f"{ip_address}.{suffix}"


def managed_domain(hostname: str, zone_name: str) -> str:
    return f"{hostname}.{zone_name.rstrip('.')}"


class DomainStrategy(ABC):
    name: str

    @abstractmethod
    def resolve(self, ip_address: pulumi.Input[Optional[str]]) -> pulumi.Output[str]:
        """Domain the worker answers on, possibly deferred on *ip_address*."""

    def declare_records(
        self,
        resource_name: str,
        ip_address: pulumi.Input[Optional[str]],
        opts: Optional[pulumi.ResourceOptions] = None,
    ) -> Optional[pulumi.CustomResource]:
        """Companion DNS resources, if the strategy needs any."""
        return None


class EphemeralWildcardDomain(DomainStrategy):
    name = "ephemeral"

    def __init__(self, suffix: str = WILDCARD_DNS_SUFFIX):
        self.suffix = suffix

    def resolve(self, ip_address: pulumi.Input[Optional[str]]) -> pulumi.Output[str]:
        # no placeholder here: the route must never match a half-known host,
        # so this stays unknown until the address is assigned
        return pulumi.Output.from_input(ip_address).apply(self._domain_for)

    def _domain_for(self, ip: Optional[str]) -> str:
        if not ip:
            raise ConfigError("public IP address resolved empty; no ephemeral domain to derive")
        return ephemeral_domain(ip, self.suffix)


class ManagedZoneDomain(DomainStrategy):
    name = "managed"

    def __init__(self, hostname: str, zone_name: str, zone_resource_group: str):
        self.hostname = hostname
        self.zone_name = zone_name
        self.zone_resource_group = zone_resource_group

    def resolve(self, ip_address: pulumi.Input[Optional[str]]) -> pulumi.Output[str]:
        return pulumi.Output.from_input(managed_domain(self.hostname, self.zone_name))

    def declare_records(
        self,
        resource_name: str,
        ip_address: pulumi.Input[Optional[str]],
        opts: Optional[pulumi.ResourceOptions] = None,
    ) -> dns.RecordSet:
        zone = dns.get_zone_output(
            resource_group_name=self.zone_resource_group,
            zone_name=self.zone_name,
        )
        # the record does not wait on the address; "" until it resolves
        target = pulumi.Output.from_input(ip_address).apply(lambda ip: ip or "")
        log.debug("declaring A record %s in zone %s", self.hostname, self.zone_name)
        return dns.RecordSet(
            resource_name,
            resource_group_name=self.zone_resource_group,
            zone_name=zone.name,
            relative_record_set_name=self.hostname,
            record_type="A",
            ttl=RECORD_TTL_SECONDS,
            a_records=[dns.ARecordArgs(ipv4_address=target)],
            opts=opts,
        )


def resolve_strategy(settings: DomainSettings) -> DomainStrategy:
    if settings.strategy == "ephemeral":
        return EphemeralWildcardDomain(settings.wildcard_suffix)

    if not settings.zone:
        raise ConfigError("domain.zone is required for the managed domain strategy")
    if not settings.zone_resource_group:
        raise ConfigError("domain.zone_resource_group is required for the managed domain strategy")
    return ManagedZoneDomain(
        hostname=settings.hostname or DEFAULT_HOSTNAME,
        zone_name=settings.zone,
        zone_resource_group=settings.zone_resource_group,
    )
