"""
Helper utilities for Locust performance scenarios.

Provides the building blocks that every Locust user class relies on:
OIDC client-credentials authentication, the scenario file that names
the documents to request, and response validation helpers.  Keeping
these in a shared module avoids duplication across scenario files.

Key Concepts Demonstrated:
- One token provider shared by all virtual users, refreshed shortly
  before the token expires
- Scenario ids pinned in a JSON5 file or discovered from the list
  endpoints of the restored database snapshot
- Wait time configured from the environment (``WAIT_TIME_FROM`` /
  ``WAIT_TIME_TO``)
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any
from urllib.parse import quote

import json5
import requests

logger = logging.getLogger(__name__)

# Refresh the token this many seconds before it expires.
TOKEN_EXPIRY_MARGIN = 30


class ScenarioError(ValueError):
    """Raised when a scenario file cannot be used."""


class TokenError(RuntimeError):
    """Raised when no access token can be obtained."""


def _safe_json(response: Any) -> Any:
    """
    Return the parsed response body, or ``None`` if it is not JSON.

    Locust responses may contain non-JSON bodies (e.g. on 5xx errors or
    proxy timeouts); this keeps ``ValueError`` out of task methods.
    """
    try:
        return response.json()
    except ValueError:
        return None


def auth_header(token: str) -> dict[str, str]:
    """Build bearer auth headers for API requests."""
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/json",
    }


class OidcTokenProvider:
    """
    Obtain and cache an access token with the client-credentials grant.

    The token endpoint is discovered from the issuer's
    ``.well-known/openid-configuration`` on first use.

    Args:
        issuer_url: OIDC issuer, e.g. ``http://keycloak:8080/realms/trustify``.
        client_id: Confidential client id.
        client_secret: Its secret.
        session: Optional session (tests inject fakes here).
        clock: Time source in seconds.
    """

    def __init__(
        self,
        issuer_url: str,
        client_id: str,
        client_secret: str,
        session: requests.Session | None = None,
        clock=time.monotonic,
    ):
        self.issuer_url = issuer_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.session = session or requests.Session()
        self.clock = clock
        self._token_endpoint: str | None = None
        self._token: str | None = None
        self._expires_at = 0.0

    @classmethod
    def from_env(cls) -> OidcTokenProvider:
        try:
            return cls(
                issuer_url=os.environ["ISSUER_URL"],
                client_id=os.environ["CLIENT_ID"],
                client_secret=os.environ["CLIENT_SECRET"],
            )
        except KeyError as exc:
            raise TokenError(f"Missing environment variable: {exc.args[0]}") from exc

    def token_endpoint(self) -> str:
        if self._token_endpoint is None:
            url = f"{self.issuer_url}/.well-known/openid-configuration"
            try:
                response = self.session.get(url, timeout=10)
                response.raise_for_status()
                endpoint = response.json()["token_endpoint"]
            except (requests.RequestException, ValueError, KeyError) as exc:
                raise TokenError(f"OIDC discovery at {url} failed: {exc}") from exc
            self._token_endpoint = endpoint
        return self._token_endpoint

    def token(self) -> str:
        """Return a valid access token, requesting a new one when needed."""
        if self._token is not None and self.clock() < self._expires_at:
            return self._token

        try:
            response = self.session.post(
                self.token_endpoint(),
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
                timeout=10,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise TokenError(f"Token request for {self.client_id} failed: {exc}") from exc

        token = body.get("access_token")
        if not isinstance(token, str) or not token:
            raise TokenError("Token response missing access_token")

        expires_in = float(body.get("expires_in", 60))
        self._token = token
        self._expires_at = self.clock() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0.0)
        logger.debug("Obtained token for %s, valid for %ss", self.client_id, expires_in)
        return token


@dataclass(frozen=True)
class Scenario:
    """
    Document ids of the restored snapshot used by the REST scenario.

    Every field is optional; tasks whose id is missing are skipped.
    """

    get_sbom: str | None = None
    get_sbom_advisories: str | None = None
    get_advisory: str | None = None
    get_vulnerability: str | None = None
    get_purl_details: str | None = None
    get_analysis_component: str | None = None
    search_sbom: str | None = None
    search_advisory: str | None = None


def load_scenario(path: Path | str) -> Scenario:
    """
    Read a JSON5 scenario file.

    Unknown keys are ignored with a warning so newer scenario files keep
    working with older load tests.

    Raises:
        ScenarioError: If the file is missing, not JSON5, or not an object.
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json5.load(handle)
    except OSError as exc:
        raise ScenarioError(f"Cannot read scenario file {path}: {exc}") from exc
    except ValueError as exc:
        raise ScenarioError(f"Scenario file {path} is not valid JSON5: {exc}") from exc

    if not isinstance(data, dict):
        raise ScenarioError(f"Scenario file {path} must contain an object")

    known = {field.name for field in fields(Scenario)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown scenario keys: %s", ", ".join(unknown))

    values = {}
    for key in known & set(data):
        value = data[key]
        if value is not None and not isinstance(value, str):
            raise ScenarioError(f"Scenario key {key} must be a string")
        values[key] = value
    return Scenario(**values)


# Scenario field, list endpoint, and the keys of a list entry that may hold its id.
DISCOVERABLE = (
    ("get_sbom", "/api/v2/sbom", ("id",)),
    ("get_advisory", "/api/v2/advisory", ("uuid", "id")),
    ("get_vulnerability", "/api/v2/vulnerability", ("identifier",)),
    ("get_purl_details", "/api/v2/purl", ("uuid", "purl")),
)


def _first_item_value(page: Any, keys: tuple[str, ...]) -> str | None:
    items = page.get("items") if isinstance(page, dict) else None
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        return None
    for key in keys:
        value = items[0].get(key)
        if isinstance(value, str) and value:
            return value
    return None


def discover_scenario(scenario: Scenario, fetch: Callable[[str], Any]) -> Scenario:
    """
    Fill the ids missing from *scenario* with documents of the running server.

    Each missing id is taken from the first entry of the matching list
    endpoint, so the load test works against whatever dump was restored.
    Ids pinned in the scenario file are kept as they are.

    Args:
        scenario: Scenario loaded from the file.
        fetch: GETs a path (one entry per page) and returns the parsed
            body, or ``None`` when the request failed.
    """
    found: dict[str, str] = {}
    for field_name, path, keys in DISCOVERABLE:
        if getattr(scenario, field_name):
            continue
        value = _first_item_value(fetch(path), keys)
        if value is None:
            logger.warning("No %s found at %s, its tasks are skipped", field_name, path)
        else:
            found[field_name] = value

    sbom = scenario.get_sbom or found.get("get_sbom")
    if not scenario.get_analysis_component and sbom:
        path = f"/api/v2/sbom/{quote(sbom, safe=':')}/packages"
        name = _first_item_value(fetch(path), ("name",))
        if name is None:
            logger.warning("No package name found at %s, component analysis is skipped", path)
        else:
            found["get_analysis_component"] = name

    if found:
        logger.info("Discovered scenario ids: %s", found)
    return replace(scenario, **found)


def wait_time_range() -> tuple[float, float]:
    """Return ``(WAIT_TIME_FROM, WAIT_TIME_TO)`` in seconds, defaulting to no wait."""
    try:
        low = float(os.environ.get("WAIT_TIME_FROM", "0"))
        high = float(os.environ.get("WAIT_TIME_TO", "0"))
    except ValueError as exc:
        raise ValueError("WAIT_TIME_FROM and WAIT_TIME_TO must be numeric") from exc
    if low < 0 or high < low:
        raise ValueError(f"Invalid wait time range: {low}..{high}")
    return low, high
