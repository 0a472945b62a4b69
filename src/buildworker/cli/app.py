# src/buildworker/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from buildworker.bootstrap.caddy import build_caddy_config, render_caddy_json
from buildworker.bootstrap.cloudinit import BootstrapInputs, document_fingerprint, synthesize
from buildworker.bootstrap.secrets import DEFAULT_HASH_ROUNDS, SecretBundle, hash_password
from buildworker.config.loader import load_config
from buildworker.config.models import WorkerSettings
from buildworker.deploy.planner import plan as plan_resources, worker_graph
from buildworker.errors import BuildWorkerError
from buildworker.logging.log import init_logging
from buildworker.observers.dispatcher import EventBus
from buildworker.observers.events import BootstrapSynthesized, new_ctx
from buildworker.observers.logger import LoggerObserver
from buildworker.provision.domain import ephemeral_domain, managed_domain, DEFAULT_HOSTNAME


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Build worker bootstrap CLI")

ConfigArg = typer.Argument(..., exists=True, dir_okay=False, help="Worker config YAML")
IpOption = typer.Option(None, "--ip", help="Public IP (required for the ephemeral domain strategy)")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Debug logging on the console")


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def local_domain(settings: WorkerSettings, ip: Optional[str]) -> str:
    """The domain the worker would answer on, computed without the cloud."""
    d = settings.domain
    if d.strategy == "managed":
        if not d.zone:
            raise typer.BadParameter("domain.zone is required for the managed strategy")
        return managed_domain(d.hostname or DEFAULT_HOSTNAME, d.zone)
    if not ip:
        raise typer.BadParameter("--ip is required for the ephemeral domain strategy")
    return ephemeral_domain(ip, d.wildcard_suffix)


def _load(config: Path, verbose: bool) -> tuple[WorkerSettings, EventBus, str]:
    logger, run_id, _ = init_logging(verbose=verbose)
    try:
        settings = load_config(config)
    except BuildWorkerError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1)
    return settings, EventBus(observers=[LoggerObserver(logger)]), run_id


def _bootstrap_inputs(settings: WorkerSettings, ip: Optional[str]) -> BootstrapInputs:
    domain = local_domain(settings, ip)
    try:
        return BootstrapInputs.for_worker(
            domain=domain,
            container_image=settings.container_image,
            secrets=SecretBundle(
                auth_password_hash=settings.auth_password_hash,
                registry_username=settings.registry.username,
                registry_password=settings.registry.password,
            ),
            go_version=settings.go_version,
        )
    except BuildWorkerError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1)


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def render(
    config: Path = ConfigArg,
    ip: Optional[str] = IpOption,
    verbose: bool = VerboseOption,
):
    """Print the cloud-init document the VM would boot with."""
    settings, bus, run_id = _load(config, verbose)
    inputs = _bootstrap_inputs(settings, ip)
    document = synthesize(inputs)
    bus.emit(
        BootstrapSynthesized(
            domain=inputs.domain,
            image=inputs.container_image,
            fingerprint=document_fingerprint(document),
            **new_ctx(stack="local", context=settings.domain.strategy, run_id=run_id),
        )
    )
    typer.echo(document, nl=False)


@app.command("caddy-config")
def caddy_config(
    config: Path = ConfigArg,
    ip: Optional[str] = IpOption,
    verbose: bool = VerboseOption,
):
    """Print the Caddy JSON config embedded in the document."""
    settings, _, _ = _load(config, verbose)
    cfg = build_caddy_config(local_domain(settings, ip), settings.auth_password_hash)
    typer.echo(render_caddy_json(cfg))


@app.command()
def fingerprint(
    config: Path = ConfigArg,
    ip: Optional[str] = IpOption,
    verbose: bool = VerboseOption,
):
    """Print the sha256 of the document; a change means the VM gets replaced."""
    settings, _, _ = _load(config, verbose)
    typer.echo(document_fingerprint(synthesize(_bootstrap_inputs(settings, ip))))


@app.command()
def plan(
    config: Path = ConfigArg,
    verbose: bool = VerboseOption,
):
    """Print the order resources are created in."""
    settings, bus, run_id = _load(config, verbose)
    for node in plan_resources(
        worker_graph(settings.domain.strategy),
        bus=bus,
        run_ctx=new_ctx(stack="local", context=settings.domain.strategy, run_id=run_id),
    ):
        deps = ", ".join(node.dependencies) or "-"
        typer.echo(f"{node.name:<18} {node.kind:<20} after: {deps}")


@app.command("hash-password")
def hash_password_cmd(
    rounds: int = typer.Option(DEFAULT_HASH_ROUNDS, min=4, max=31, help="bcrypt cost"),
    password: str = typer.Option(
        ..., prompt=True, confirmation_prompt=True, hide_input=True,
        help="Basic-auth password for the 'caddy' account",
    ),
):
    """Print a bcrypt hash to use as auth_password_hash."""
    try:
        hashed = hash_password(password, rounds=rounds)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--password")
    typer.echo(hashed)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
