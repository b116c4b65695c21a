"""
Provision the trustify realm in Keycloak.

Every step is an "ensure": look the object up, create it when it is
missing, and otherwise bring it in line.  Running the job twice against
the same Keycloak therefore succeeds and leaves the realm unchanged.

Realm layout:

- client scopes ``create:document``, ``read:document``,
  ``update:document`` and ``delete:document``
- realm roles ``chicken-user`` (read), ``chicken-manager`` (read/write)
  and ``chicken-admin`` (everything), mapped onto those scopes
- the clients found in ``INIT_DATA/client-*.json``: ``frontend`` (public,
  receives the redirect URIs) and ``walker`` (confidential, receives the
  walker secret; its service account is a ``chicken-manager``)
- an administrator user holding ``chicken-admin``
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .client import KeycloakAdmin, KeycloakError
from .settings import SsoSettings

logger = logging.getLogger(__name__)

SCOPES = ("create:document", "read:document", "update:document", "delete:document")

ROLE_SCOPES: dict[str, tuple[str, ...]] = {
    "chicken-user": ("read:document",),
    "chicken-manager": SCOPES,
    "chicken-admin": SCOPES,
}

ADMIN_ROLE = "chicken-admin"
SERVICE_ACCOUNT_ROLE = "chicken-manager"


def load_clients(init_data: Path) -> list[dict[str, Any]]:
    """Read every ``client-*.json`` representation in *init_data*, sorted by name."""
    paths = sorted(init_data.glob("client-*.json"))
    if not paths:
        raise KeycloakError(f"No client-*.json files in {init_data}")

    clients = []
    for path in paths:
        with path.open("r", encoding="utf-8") as handle:
            representation = json.load(handle)
        if not representation.get("clientId"):
            raise KeycloakError(f"{path} has no clientId")
        clients.append(representation)
    return clients


def ensure_realm(admin: KeycloakAdmin, settings: SsoSettings) -> None:
    realm = admin.get_realm(settings.realm)
    if realm is None:
        logger.info("Creating realm %s", settings.realm)
        admin.create_realm({"realm": settings.realm, "enabled": True})
        realm = {"realm": settings.realm}

    update: dict[str, Any] = {"realm": settings.realm, "enabled": True}
    if settings.frontend_url:
        attributes = dict(realm.get("attributes") or {})
        attributes["frontendUrl"] = settings.frontend_url
        update["attributes"] = attributes
    admin.update_realm(settings.realm, update)


def ensure_scopes(admin: KeycloakAdmin, realm: str) -> dict[str, str]:
    """Create missing document scopes; return scope name to id."""
    ids: dict[str, str] = {}
    for name in SCOPES:
        scope = admin.find_client_scope(realm, name)
        if scope is None:
            logger.info("Creating client scope %s", name)
            admin.create_client_scope(
                realm,
                {
                    "name": name,
                    "protocol": "openid-connect",
                    "attributes": {
                        "include.in.token.scope": "true",
                        "display.on.consent.screen": "false",
                    },
                },
            )
            scope = admin.find_client_scope(realm, name)
            if scope is None:
                raise KeycloakError(f"Client scope {name} missing after creation")
        ids[name] = scope["id"]
    return ids


def ensure_roles(admin: KeycloakAdmin, realm: str, scope_ids: dict[str, str]) -> dict[str, dict[str, Any]]:
    """Create missing realm roles and map them onto their scopes."""
    roles: dict[str, dict[str, Any]] = {}
    for name in ROLE_SCOPES:
        role = admin.get_role(realm, name)
        if role is None:
            logger.info("Creating role %s", name)
            admin.create_role(realm, name)
            role = admin.get_role(realm, name)
            if role is None:
                raise KeycloakError(f"Role {name} missing after creation")
        roles[name] = role

    # Adding an existing mapping again is a no-op in Keycloak.
    for role_name, scopes in ROLE_SCOPES.items():
        for scope in scopes:
            admin.add_scope_role_mappings(realm, scope_ids[scope], [roles[role_name]])
    return roles


def _client_representation(template: dict[str, Any], settings: SsoSettings) -> dict[str, Any]:
    representation = dict(template)
    representation.pop("defaultClientScopes", None)
    if representation.get("publicClient"):
        representation["redirectUris"] = list(settings.redirect_uris)
        representation["webOrigins"] = ["+"]
    if representation.get("serviceAccountsEnabled"):
        representation["secret"] = settings.walker_secret
    return representation


def ensure_clients(
    admin: KeycloakAdmin,
    settings: SsoSettings,
    scope_ids: dict[str, str],
    roles: dict[str, dict[str, Any]],
) -> None:
    for template in load_clients(settings.init_data):
        client_id = template["clientId"]
        representation = _client_representation(template, settings)

        existing = admin.find_client(settings.realm, client_id)
        if existing is None:
            logger.info("Creating client %s", client_id)
            admin.create_client(settings.realm, representation)
            existing = admin.find_client(settings.realm, client_id)
            if existing is None:
                raise KeycloakError(f"Client {client_id} missing after creation")
        else:
            logger.info("Updating client %s", client_id)
            admin.update_client(settings.realm, existing["id"], {**existing, **representation})

        for scope in template.get("defaultClientScopes", []):
            if scope in scope_ids:
                admin.add_default_client_scope(settings.realm, existing["id"], scope_ids[scope])

        if representation.get("serviceAccountsEnabled"):
            account = admin.service_account_user(settings.realm, existing["id"])
            admin.add_user_realm_roles(settings.realm, account["id"], [roles[SERVICE_ACCOUNT_ROLE]])


def ensure_admin_user(admin: KeycloakAdmin, settings: SsoSettings, roles: dict[str, dict[str, Any]]) -> None:
    user = admin.find_user(settings.realm, settings.chicken_admin)
    if user is None:
        logger.info("Creating user %s", settings.chicken_admin)
        admin.create_user(settings.realm, {"username": settings.chicken_admin, "enabled": True})
        user = admin.find_user(settings.realm, settings.chicken_admin)
        if user is None:
            raise KeycloakError(f"User {settings.chicken_admin} missing after creation")

    admin.reset_password(settings.realm, user["id"], settings.chicken_admin_password)
    admin.add_user_realm_roles(settings.realm, user["id"], [roles[ADMIN_ROLE]])


def provision(settings: SsoSettings, admin: KeycloakAdmin | None = None) -> None:
    """
    Run the full provisioning sequence.

    Args:
        settings: Job settings, usually :meth:`SsoSettings.from_env`.
        admin: Admin client; one bound to ``settings.keycloak_url`` is
            created when omitted.

    Raises:
        KeycloakError: If Keycloak never becomes ready or a call fails.
    """
    admin = admin or KeycloakAdmin(settings.keycloak_url)

    admin.wait_until_ready(settings.ready_attempts, settings.ready_interval)
    admin.login(settings.admin_user, settings.admin_password)

    ensure_realm(admin, settings)
    scope_ids = ensure_scopes(admin, settings.realm)
    roles = ensure_roles(admin, settings.realm, scope_ids)
    ensure_clients(admin, settings, scope_ids, roles)
    ensure_admin_user(admin, settings, roles)
    logger.info("Realm %s provisioned", settings.realm)
