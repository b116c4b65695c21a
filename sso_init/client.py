"""
Minimal Keycloak admin REST client.

Covers just the calls realm provisioning needs: realms, client scopes,
realm roles, clients, service accounts and users.  Lookups return
``None`` when the object does not exist so that callers can implement
"create if missing" without catching exceptions.

Key Concepts Demonstrated:
- A ``requests.Session`` reused for every call with a bearer token
- One error type carrying the HTTP status and response body
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

logger = logging.getLogger(__name__)


class KeycloakError(RuntimeError):
    """A Keycloak admin call failed."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"{message} (status={status_code}): {body}" if status_code else message)


class KeycloakAdmin:
    """
    Admin API client bound to one Keycloak server.

    Args:
        base_url: Server URL without trailing slash, e.g. ``http://keycloak:8080``.
        session: Optional pre-configured session (tests inject fakes here).
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str, session: requests.Session | None = None, timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.token: str | None = None

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def wait_until_ready(self, attempts: int, interval: float) -> None:
        """Poll the master realm until it answers 200, at most *attempts* times."""
        url = f"{self.base_url}/realms/master"
        for attempt in range(1, attempts + 1):
            try:
                response = self.session.get(url, timeout=self.timeout)
                if response.status_code == 200:
                    logger.info("Keycloak is ready after %s attempt(s)", attempt)
                    return
            except requests.RequestException as exc:
                logger.debug("Keycloak not reachable yet: %s", exc)
            time.sleep(interval)
        raise KeycloakError(f"Keycloak at {self.base_url} not ready after {attempts} attempts")

    def login(self, username: str, password: str) -> None:
        """Obtain an admin token from the master realm (``admin-cli`` password grant)."""
        response = self.session.post(
            f"{self.base_url}/realms/master/protocol/openid-connect/token",
            data={
                "grant_type": "password",
                "client_id": "admin-cli",
                "username": username,
                "password": password,
            },
            timeout=self.timeout,
        )
        if response.status_code != 200:
            raise KeycloakError("Admin login failed", response.status_code, response.text)

        token = response.json().get("access_token")
        if not isinstance(token, str) or not token:
            raise KeycloakError("Admin login response missing access_token")
        self.token = token

    def _request(
        self,
        method: str,
        path: str,
        *,
        allow: tuple[int, ...] = (),
        **kwargs: Any,
    ) -> requests.Response:
        if self.token is None:
            raise KeycloakError("Not logged in")

        headers = {"Authorization": f"Bearer {self.token}", "Accept": "application/json"}
        response = self.session.request(
            method,
            f"{self.base_url}/admin/realms{path}",
            headers=headers,
            timeout=self.timeout,
            **kwargs,
        )
        if response.status_code >= 400 and response.status_code not in allow:
            raise KeycloakError(f"{method} {path} failed", response.status_code, response.text)
        return response

    # ------------------------------------------------------------------
    # Realms
    # ------------------------------------------------------------------

    def get_realm(self, realm: str) -> dict[str, Any] | None:
        response = self._request("GET", f"/{realm}", allow=(404,))
        if response.status_code == 404:
            return None
        return response.json()

    def create_realm(self, representation: dict[str, Any]) -> None:
        self._request("POST", "", json=representation)

    def update_realm(self, realm: str, representation: dict[str, Any]) -> None:
        self._request("PUT", f"/{realm}", json=representation)

    # ------------------------------------------------------------------
    # Client scopes
    # ------------------------------------------------------------------

    def find_client_scope(self, realm: str, name: str) -> dict[str, Any] | None:
        for scope in self._request("GET", f"/{realm}/client-scopes").json():
            if scope.get("name") == name:
                return scope
        return None

    def create_client_scope(self, realm: str, representation: dict[str, Any]) -> None:
        self._request("POST", f"/{realm}/client-scopes", json=representation)

    def add_scope_role_mappings(self, realm: str, scope_id: str, roles: list[dict[str, Any]]) -> None:
        self._request("POST", f"/{realm}/client-scopes/{scope_id}/scope-mappings/realm", json=roles)

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def get_role(self, realm: str, name: str) -> dict[str, Any] | None:
        response = self._request("GET", f"/{realm}/roles/{name}", allow=(404,))
        if response.status_code == 404:
            return None
        return response.json()

    def create_role(self, realm: str, name: str, description: str = "") -> None:
        self._request("POST", f"/{realm}/roles", json={"name": name, "description": description})

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def find_client(self, realm: str, client_id: str) -> dict[str, Any] | None:
        clients = self._request("GET", f"/{realm}/clients", params={"clientId": client_id}).json()
        return clients[0] if clients else None

    def create_client(self, realm: str, representation: dict[str, Any]) -> None:
        self._request("POST", f"/{realm}/clients", json=representation)

    def update_client(self, realm: str, client_uuid: str, representation: dict[str, Any]) -> None:
        self._request("PUT", f"/{realm}/clients/{client_uuid}", json=representation)

    def add_default_client_scope(self, realm: str, client_uuid: str, scope_id: str) -> None:
        self._request("PUT", f"/{realm}/clients/{client_uuid}/default-client-scopes/{scope_id}")

    def service_account_user(self, realm: str, client_uuid: str) -> dict[str, Any]:
        return self._request("GET", f"/{realm}/clients/{client_uuid}/service-account-user").json()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def find_user(self, realm: str, username: str) -> dict[str, Any] | None:
        users = self._request(
            "GET",
            f"/{realm}/users",
            params={"username": username, "exact": "true"},
        ).json()
        return users[0] if users else None

    def create_user(self, realm: str, representation: dict[str, Any]) -> None:
        self._request("POST", f"/{realm}/users", json=representation)

    def reset_password(self, realm: str, user_id: str, password: str) -> None:
        self._request(
            "PUT",
            f"/{realm}/users/{user_id}/reset-password",
            json={"type": "password", "value": password, "temporary": False},
        )

    def add_user_realm_roles(self, realm: str, user_id: str, roles: list[dict[str, Any]]) -> None:
        self._request("POST", f"/{realm}/users/{user_id}/role-mappings/realm", json=roles)
