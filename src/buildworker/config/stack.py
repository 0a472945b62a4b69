# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/buildworker/config/stack.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import pulumi
from pydantic import ValidationError

from buildworker.errors import ConfigError
from .models import WorkerSettings


@dataclass
class StackInputs:
    """Worker settings plus the registry credentials, still secret outputs."""

    settings: WorkerSettings
    registry_username: Optional[pulumi.Output[str]] = None
    registry_password: Optional[pulumi.Output[str]] = None


def from_pulumi_config(config: Optional[pulumi.Config] = None) -> StackInputs:
    """
    Read the stack config:

        pulumi config set containerImage ghcr.io/org/caddy-builder:latest
        pulumi config set authPasswordHash '$2a$14$...'
        pulumi config set --secret dockerUsername ...
        pulumi config set --secret dockerPassword ...
        pulumi config set domainStrategy managed     # optional
        pulumi config set hostname worker-0          # optional
        pulumi config set dnsZone infra.example.com
        pulumi config set dnsZoneResourceGroup dns-rg
    """
    config = config or pulumi.Config()

    domain = {
        "strategy": config.get("domainStrategy") or "ephemeral",
        "hostname": config.get("hostname"),
        "zone": config.get("dnsZone"),
        "zone_resource_group": config.get("dnsZoneResourceGroup"),
    }
    data = {
        "container_image": config.get("containerImage"),
        "auth_password_hash": config.get("authPasswordHash"),
        "vm_size": config.get("vmSize"),
        "name_prefix": config.get("namePrefix"),
        "go_version": config.get("goVersion"),
        "domain": {k: v for k, v in domain.items() if v is not None},
    }
    try:
        settings = WorkerSettings.model_validate({k: v for k, v in data.items() if v is not None})
    except ValidationError as exc:
        raise ConfigError(f"invalid stack config:\n{exc}") from exc

    return StackInputs(
        settings=settings,
        registry_username=config.get_secret("dockerUsername"),
        registry_password=config.get_secret("dockerPassword"),
    )
