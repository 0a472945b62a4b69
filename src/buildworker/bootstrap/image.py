# src/buildworker/bootstrap/image.py

from __future__ import annotations

from buildworker.errors import ConfigError


def require_image(image: str | None) -> str:
    if image is None or not image.strip():
        raise ConfigError("containerImage must be specified")
    return image.strip()


def registry_host(image: str) -> str:
    """
    Registry host of a container image reference, "" for Docker Hub.

    ghcr.io/org/img:tag   -> ghcr.io
    localhost:5000/img    -> localhost:5000
    org/img:tag           -> ""   (Docker Hub namespace)
    img:tag               -> ""
    """
    image = require_image(image)
    first, sep, _ = image.partition("/")
    if not sep:
        return ""
    if "." in first or ":" in first or first == "localhost":
        return first
    return ""
