# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/buildworker/errors.py


class BuildWorkerError(RuntimeError):
    """Base class for build worker provisioning failures."""


class ConfigError(BuildWorkerError):
    """Raised when required configuration is missing or malformed."""


class InvalidAuthHashError(BuildWorkerError, ValueError):
    """Raised when the basic-auth password hash is not a usable bcrypt hash."""
