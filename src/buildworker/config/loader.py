# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/buildworker/config/loader.py

import logging
import os
import re
import yaml
from pathlib import Path

from pydantic import ValidationError

from buildworker.errors import ConfigError
from .models import WorkerSettings

log = logging.getLogger("buildworker")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    Locate secrets.yaml using this priority:

    1. BUILDWORKER_SECRETS_FILE environment variable (explicit override)
    2. cloud-config/secrets.yaml relative to workspace root
    3. secrets.yaml in the same directory as the worker config
    """
    env = os.environ.get("BUILDWORKER_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("BUILDWORKER_SECRETS_FILE=%s does not exist, skipping", env)
        return None

    workspace = os.environ.get("WORKSPACE_ROOT")
    if workspace:
        p = Path(workspace) / "cloud-config" / "secrets.yaml"
        if p.is_file():
            return p

    p = config_path.parent / "secrets.yaml"
    if p.is_file() and p.resolve() != config_path.resolve():
        return p

    return None


# only the braced form; bare $NAME is left alone so bcrypt hashes and
# passwords containing "$" survive
_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _expand_env(value):
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    if isinstance(value, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)
    return value


def _load_yaml(path: Path, *, expand: bool = True) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references in string values."""
    data = yaml.safe_load(path.read_text()) or {}
    return _expand_env(data) if expand else data


def load_config(path: str | Path) -> WorkerSettings:
    """
    Load and validate a build worker YAML config.

    Secrets (registry credentials, the auth hash) can live in a separate
    ``secrets.yaml`` mirroring the config structure; it is deep-merged before
    validation. Discovery order:
      1. ``BUILDWORKER_SECRETS_FILE`` env var -> explicit path
      2. ``$WORKSPACE_ROOT/cloud-config/secrets.yaml``
      3. ``secrets.yaml`` next to the config file

    ``${ENV_VAR}`` placeholders in the config file are expanded at load time;
    unset variables are left as written. ``secrets.yaml`` values are taken
    literally.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"config file not found: {path}")
    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        secrets = _load_yaml(secrets_path, expand=False)
        _deep_merge(data, secrets)
    else:
        log.debug("No secrets.yaml found, proceeding without secrets merge")

    try:
        return WorkerSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"invalid config {path}:\n{exc}") from exc
