# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/buildworker/config/models.py

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from buildworker.bootstrap.secrets import validate_auth_hash


class DomainSettings(BaseModel):
    """How the worker's public hostname is derived."""

    strategy: Literal["ephemeral", "managed"] = "ephemeral"
    hostname: Optional[str] = None             # managed only; defaults to "caddy-builder"
    zone: Optional[str] = None                 # existing Azure DNS zone, e.g. infra.example.com
    zone_resource_group: Optional[str] = None  # resource group holding the zone
    wildcard_suffix: str = "sslip.io"


class RegistrySettings(BaseModel):
    # None = not supplied, "" = supplied empty; both skip docker login at boot
    username: Optional[str] = None
    password: Optional[str] = None


class WorkerSettings(BaseModel):
    container_image: Optional[str] = None      # checked before any resource is declared
    auth_password_hash: str                    # bcrypt, produced with `buildworker hash-password`
    vm_size: str = "Standard_B4s_v2"
    name_prefix: str = "caddy"
    go_version: Optional[str] = None           # e.g. "1.24.1" mounts a Go toolchain into the container
    domain: DomainSettings = Field(default_factory=DomainSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)

    @field_validator("auth_password_hash")
    @classmethod
    def _bcrypt_hash(cls, v: str) -> str:
        return validate_auth_hash(v)
