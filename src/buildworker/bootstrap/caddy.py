# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/buildworker/bootstrap/caddy.py

"""
Caddy JSON config for the build worker.

One HTTPS server, one host-matched terminal route, and a subroute chain of
exactly two stages: basic auth, then the ``caddy_builder`` handler. The shape
is fixed by the model types below; ``render_caddy_json`` is the only place the
tree is turned into text.
"""

from __future__ import annotations

import json
import logging
from typing import List, Literal, Tuple

from pydantic import BaseModel, ConfigDict

from buildworker.bootstrap.secrets import validate_auth_hash

log = logging.getLogger("buildworker")

AUTH_USERNAME = "caddy"
LISTEN_ADDRESS = ":443"
SERVER_NAME = "srv0"
BUILD_TIMEOUT_SECONDS = 600
NANOSECONDS = 1_000_000_000


class _CaddyModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------
# Handler chain
# ---------------------------------------------------------------------
class Account(_CaddyModel):
    username: str
    password: str


class HashSpec(_CaddyModel):
    algorithm: Literal["bcrypt"] = "bcrypt"


class HttpBasicProvider(_CaddyModel):
    accounts: Tuple[Account]
    hash: HashSpec = HashSpec()


class AuthProviders(_CaddyModel):
    http_basic: HttpBasicProvider


class AuthenticationHandler(_CaddyModel):
    handler: Literal["authentication"] = "authentication"
    providers: AuthProviders


class BuildHandler(_CaddyModel):
    handler: Literal["caddy_builder"] = "caddy_builder"
    purge_module_cache: Literal[True] = True
    timeout: int = BUILD_TIMEOUT_SECONDS * NANOSECONDS  # caddy durations are ns


class AuthenticationStage(_CaddyModel):
    handle: Tuple[AuthenticationHandler]


class BuildStage(_CaddyModel):
    handle: Tuple[BuildHandler]


class SubrouteHandler(_CaddyModel):
    handler: Literal["subroute"] = "subroute"
    routes: Tuple[AuthenticationStage, BuildStage]


# ---------------------------------------------------------------------
# Server / route
# ---------------------------------------------------------------------
class HostMatch(_CaddyModel):
    host: Tuple[str]


class Route(_CaddyModel):
    match: Tuple[HostMatch]
    handle: Tuple[SubrouteHandler]
    terminal: Literal[True] = True


class Server(_CaddyModel):
    listen: Tuple[Literal[":443"]] = (LISTEN_ADDRESS,)
    routes: Tuple[Route]


class Servers(_CaddyModel):
    srv0: Server


class HttpApp(_CaddyModel):
    servers: Servers


class Apps(_CaddyModel):
    http: HttpApp


class CaddyConfig(_CaddyModel):
    apps: Apps

    @property
    def route(self) -> Route:
        return self.apps.http.servers.srv0.routes[0]

    @property
    def domain(self) -> str:
        return self.route.match[0].host[0]


def build_caddy_config(domain: str, auth_password_hash: str) -> CaddyConfig:
    """
    Build the routing config for *domain*.

    The hash must already be a bcrypt hash; an unusable credential fails here
    rather than ending up in the bootstrap document.
    """
    if not domain or not domain.strip():
        raise ValueError("domain must not be empty")
    password = validate_auth_hash(auth_password_hash)

    auth = AuthenticationHandler(
        providers=AuthProviders(
            http_basic=HttpBasicProvider(
                accounts=(Account(username=AUTH_USERNAME, password=password),),
            )
        )
    )
    chain = SubrouteHandler(
        routes=(
            AuthenticationStage(handle=(auth,)),
            BuildStage(handle=(BuildHandler(),)),
        )
    )
    route = Route(match=(HostMatch(host=(domain.strip(),)),), handle=(chain,))

    log.debug("caddy route built for host=%s", domain)
    return CaddyConfig(
        apps=Apps(http=HttpApp(servers=Servers(srv0=Server(routes=(route,)))))
    )


def render_caddy_json(config: CaddyConfig) -> str:
    return json.dumps(config.model_dump(mode="json"), sort_keys=True, indent=2)


def route_shape(config: CaddyConfig) -> List[str]:
    """Handler names of the route's chain, in evaluation order."""
    subroute = config.route.handle[0]
    return [stage.handle[0].handler for stage in subroute.routes]
