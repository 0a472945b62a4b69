# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/buildworker/bootstrap/secrets.py

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

import bcrypt

from buildworker.errors import InvalidAuthHashError

# $2b$14$ + 22 chars of salt + 31 chars of digest, all bcrypt base64
_BCRYPT_HASH = re.compile(r"^\$2[abxy]\$(0[4-9]|[12][0-9]|3[01])\$[./A-Za-z0-9]{53}$")

DEFAULT_HASH_ROUNDS = 14
BCRYPT_MAX_PASSWORD_BYTES = 72


def validate_auth_hash(value: Optional[str]) -> str:
    """
    Return *value* unchanged if it is a bcrypt modular-crypt hash.

    The hash is never derived here; an operator produces it out-of-band
    (see ``hash_password`` / ``buildworker hash-password``).
    """
    if not value:
        raise InvalidAuthHashError("auth password hash is required")
    value = value.strip()
    if not _BCRYPT_HASH.match(value):
        raise InvalidAuthHashError(
            "auth password hash must be a bcrypt hash like '$2a$14$...' "
            f"(got {len(value)} characters)"
        )
    return value


def hash_password(plain: str, *, rounds: int = DEFAULT_HASH_ROUNDS) -> str:
    if not plain:
        raise ValueError("password must not be empty")
    if len(plain.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes (bcrypt limit)")
    hashed = bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("ascii")


@dataclass(frozen=True)
class SecretBundle:
    """
    Secret-carrying inputs of the bootstrap document.

    ``None`` means the credential was not supplied at all, ``""`` means it was
    supplied empty. Either way the registry login is skipped at boot.
    """
    auth_password_hash: str
    registry_username: Optional[str] = None
    registry_password: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "auth_password_hash", validate_auth_hash(self.auth_password_hash))

    @property
    def has_registry_credentials(self) -> bool:
        return bool(self.registry_username) and bool(self.registry_password)

    def __repr__(self) -> str:
        def mask(v: Optional[str]) -> str:
            return "None" if v is None else "'***'"

        return (
            f"SecretBundle(auth_password_hash='***', "
            f"registry_username={mask(self.registry_username)}, "
            f"registry_password={mask(self.registry_password)})"
        )
