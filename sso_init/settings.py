"""Environment-driven settings for the realm provisioning job."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


class SettingsError(ValueError):
    """Raised when a required variable is missing or malformed."""


def _require(environ: Mapping[str, str], key: str) -> str:
    value = environ.get(key)
    if not value:
        raise SettingsError(f"Missing required environment variable: {key}")
    return value


@dataclass(frozen=True)
class SsoSettings:
    """
    Everything the provisioning job reads from its environment.

    Attributes:
        keycloak_url: Base URL of the Keycloak server (container-internal).
        admin_user: Master-realm admin user.
        admin_password: Master-realm admin password.
        realm: Realm to provision.
        init_data: Directory holding ``client-*.json`` representations.
        chicken_admin: Username of the trustify administrator to create.
        chicken_admin_password: Its password.
        redirect_uris: Redirect URIs of the ``frontend`` client.
        walker_secret: Client secret of the ``walker`` client.
        frontend_url: Realm ``frontendUrl``, the issuer advertised in tokens.
        ready_attempts: How many times to poll Keycloak before giving up.
        ready_interval: Seconds between polls.
    """

    keycloak_url: str
    admin_user: str
    admin_password: str
    realm: str
    init_data: Path
    chicken_admin: str
    chicken_admin_password: str
    redirect_uris: tuple[str, ...]
    walker_secret: str
    frontend_url: str | None = None
    ready_attempts: int = 60
    ready_interval: float = 2.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SsoSettings:
        environ = os.environ if environ is None else environ

        raw_uris = environ.get("REDIRECT_URIS", "[]")
        try:
            redirect_uris = json.loads(raw_uris)
        except json.JSONDecodeError as exc:
            raise SettingsError(f"REDIRECT_URIS is not valid JSON: {raw_uris}") from exc
        if not isinstance(redirect_uris, list) or not all(isinstance(u, str) for u in redirect_uris):
            raise SettingsError("REDIRECT_URIS must be a JSON list of strings")

        try:
            ready_attempts = int(environ.get("READY_ATTEMPTS", "60"))
            ready_interval = float(environ.get("READY_INTERVAL", "2"))
        except ValueError as exc:
            raise SettingsError("READY_ATTEMPTS and READY_INTERVAL must be numeric") from exc

        return cls(
            keycloak_url=_require(environ, "KEYCLOAK_URL").rstrip("/"),
            admin_user=_require(environ, "KEYCLOAK_ADMIN"),
            admin_password=_require(environ, "KEYCLOAK_ADMIN_PASSWORD"),
            realm=environ.get("REALM", "trustify"),
            init_data=Path(environ.get("INIT_DATA", "/init-sso/data")),
            chicken_admin=_require(environ, "CHICKEN_ADMIN"),
            chicken_admin_password=_require(environ, "CHICKEN_ADMIN_PASSWORD"),
            redirect_uris=tuple(redirect_uris),
            walker_secret=_require(environ, "WALKER_SECRET"),
            frontend_url=environ.get("SSO_FRONTEND_URL") or None,
            ready_attempts=ready_attempts,
            ready_interval=ready_interval,
        )
