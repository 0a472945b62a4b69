# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/buildworker/bootstrap/cloudinit.py

"""
Cloud-init document for the build worker.

The document is a typed ``CloudConfig`` serialized once through a canonical
YAML dumper, so identical inputs always give a byte-identical document. That
matters: the VM is replaced whenever the document changes (see
``buildworker.provision.lifecycle``).

Boot sequence:
  1. apt update/upgrade + prerequisite packages
  2. write the Caddy JSON config to /etc/caddy/config.json
  3. install Docker from its apt repository, enable + start it
  4. docker login, evaluated on the VM, only when both credentials are set
  5. (optional) unpack a Go toolchain to mount into the container
  6. docker pull + docker run the Caddy image with restart=always
"""

from __future__ import annotations

import base64
import hashlib
import logging
import shlex
from dataclasses import dataclass
from typing import Optional, Tuple

import pulumi
import yaml
from pydantic import BaseModel, ConfigDict

from buildworker.bootstrap.caddy import CaddyConfig, build_caddy_config, render_caddy_json
from buildworker.bootstrap.image import registry_host, require_image
from buildworker.bootstrap.secrets import SecretBundle

log = logging.getLogger("buildworker")

HEADER = "#cloud-config"

CADDY_CONFIG_PATH = "/etc/caddy/config.json"
CADDY_CONFIG_MODE = "0644"
CADDY_DATA_DIR = "/data/caddy"
CONTAINER_NAME = "caddy"

PACKAGES: Tuple[str, ...] = (
    "apt-transport-https",
    "ca-certificates",
    "curl",
    "gnupg",
    "lsb-release",
)

DOCKER_KEYRING = "/usr/share/keyrings/docker-archive-keyring.gpg"
DOCKER_INSTALL: Tuple[str, ...] = (
    f"curl -fsSL https://download.docker.com/linux/ubuntu/gpg | gpg --dearmor -o {DOCKER_KEYRING}",
    'echo "deb [arch=$(dpkg --print-architecture) '
    f'signed-by={DOCKER_KEYRING}] https://download.docker.com/linux/ubuntu '
    '$(lsb_release -cs) stable" | tee /etc/apt/sources.list.d/docker.list > /dev/null',
    "apt-get update",
    "apt-get install -y docker-ce docker-ce-cli containerd.io",
    "systemctl enable docker",
    "systemctl start docker",
)

GO_ROOT = "/usr/local/go"
CONTAINER_PATH = "/usr/local/go/bin:/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"

# keeps long runcmd lines on one line
_YAML_WIDTH = 4096


# ---------------------------------------------------------------------
# Typed document
# ---------------------------------------------------------------------
class WriteFile(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    permissions: str
    content: str


class CloudConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    package_update: bool = True
    package_upgrade: bool = True
    packages: Tuple[str, ...] = PACKAGES
    write_files: Tuple[WriteFile, ...] = ()
    runcmd: Tuple[str, ...] = ()


class _CloudInitDumper(yaml.SafeDumper):
    """SafeDumper that indents block sequences and keeps multi-line strings literal."""

    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)


def _represent_str(dumper: yaml.SafeDumper, data: str):
    style = "|" if "\n" in data else None
    return dumper.represent_scalar("tag:yaml.org,2002:str", data, style=style)


_CloudInitDumper.add_representer(str, _represent_str)


def render_cloud_config(doc: CloudConfig) -> str:
    body = yaml.dump(
        doc.model_dump(mode="json"),
        Dumper=_CloudInitDumper,
        sort_keys=False,
        default_flow_style=False,
        width=_YAML_WIDTH,
    )
    return f"{HEADER}\n{body}"


# ---------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BootstrapInputs:
    domain: str
    container_image: str
    registry_host: str
    caddy_config: CaddyConfig
    registry_username: Optional[str] = None
    registry_password: Optional[str] = None
    go_version: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "container_image", require_image(self.container_image))
        if self.caddy_config.domain != self.domain:
            raise ValueError(
                f"caddy config routes {self.caddy_config.domain!r}, expected {self.domain!r}"
            )

    @classmethod
    def for_worker(
        cls,
        *,
        domain: str,
        container_image: str,
        secrets: SecretBundle,
        go_version: Optional[str] = None,
    ) -> "BootstrapInputs":
        domain = (domain or "").strip()
        return cls(
            domain=domain,
            container_image=container_image,
            registry_host=registry_host(container_image),
            caddy_config=build_caddy_config(domain, secrets.auth_password_hash),
            registry_username=secrets.registry_username,
            registry_password=secrets.registry_password,
            go_version=go_version,
        )


# ---------------------------------------------------------------------
# runcmd pieces
# ---------------------------------------------------------------------
def registry_login_script(
    registry: str,
    username: Optional[str],
    password: Optional[str],
) -> str:
    """
    Shell conditional that logs in only when both credentials are non-empty.

    The test runs on the VM; a missing credential renders as '' and the
    branch is skipped.
    """
    user = shlex.quote(username or "")
    secret = shlex.quote(password or "")
    login = " ".join(
        part
        for part in ("docker login", shlex.quote(registry) if registry else "", f"-u {user} --password-stdin")
        if part
    )
    return (
        f"if [ -n {user} ] && [ -n {secret} ]; then\n"
        f"  printf '%s\\n' {secret} | {login}\n"
        "fi\n"
    )


def go_toolchain_command(version: str) -> str:
    url = f"https://go.dev/dl/go{version}.linux-amd64.tar.gz"
    return f"curl -fsSL {url} | tar -C /usr/local -xz"


def docker_run_command(image: str, *, with_go: bool = False) -> str:
    parts = [
        "docker run -d --restart=always",
        f"--name {CONTAINER_NAME}",
        "-p 80:80 -p 443:443",
        f"-v {CADDY_CONFIG_PATH}:{CADDY_CONFIG_PATH}:ro",
        f"-v {CADDY_DATA_DIR}:/data",
    ]
    if with_go:
        parts.append(f"-v {GO_ROOT}:{GO_ROOT}")
        parts.append(f'-e PATH="{CONTAINER_PATH}"')
    parts.append(shlex.quote(image))
    parts.append(f"caddy run --config {CADDY_CONFIG_PATH}")
    return " ".join(parts)


# ---------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------
def build_cloud_config(inputs: BootstrapInputs) -> CloudConfig:
    runcmd = [f"mkdir -p {CADDY_DATA_DIR}"]
    runcmd.extend(DOCKER_INSTALL)
    runcmd.append(
        registry_login_script(
            inputs.registry_host,
            inputs.registry_username,
            inputs.registry_password,
        )
    )
    if inputs.go_version:
        runcmd.append(go_toolchain_command(inputs.go_version))
    runcmd.append(f"docker pull {shlex.quote(inputs.container_image)}")
    runcmd.append(docker_run_command(inputs.container_image, with_go=bool(inputs.go_version)))

    return CloudConfig(
        write_files=(
            WriteFile(
                path=CADDY_CONFIG_PATH,
                permissions=CADDY_CONFIG_MODE,
                content=render_caddy_json(inputs.caddy_config) + "\n",
            ),
        ),
        runcmd=tuple(runcmd),
    )


def synthesize(inputs: BootstrapInputs) -> str:
    document = render_cloud_config(build_cloud_config(inputs))
    log.debug(
        "bootstrap synthesized domain=%s image=%s fingerprint=%s",
        inputs.domain,
        inputs.container_image,
        document_fingerprint(document),
    )
    return document


def document_fingerprint(document: str) -> str:
    return hashlib.sha256(document.encode("utf-8")).hexdigest()


def encode_custom_data(document: str) -> str:
    """Azure osProfile.customData wants base64."""
    return base64.b64encode(document.encode("utf-8")).decode("ascii")


def synthesize_output(
    *,
    domain: pulumi.Input[str],
    container_image: str,
    auth_password_hash: str,
    registry_username: pulumi.Input[Optional[str]] = None,
    registry_password: pulumi.Input[Optional[str]] = None,
    go_version: Optional[str] = None,
) -> pulumi.Output[str]:
    """
    Deferred form of ``synthesize``.

    *domain* may not be known until the public IP exists, and the registry
    credentials are usually secret outputs; nothing is read before the engine
    resolves them, and the document stays secret if any input is.
    """

    def _render(args) -> str:
        resolved_domain, username, password = args
        secrets = SecretBundle(
            auth_password_hash=auth_password_hash,
            registry_username=username,
            registry_password=password,
        )
        if not secrets.has_registry_credentials:
            log.debug("no registry credentials; docker login stays inert at boot")
        return synthesize(
            BootstrapInputs.for_worker(
                domain=resolved_domain,
                container_image=container_image,
                secrets=secrets,
                go_version=go_version,
            )
        )

    return pulumi.Output.all(domain, registry_username, registry_password).apply(_render)
