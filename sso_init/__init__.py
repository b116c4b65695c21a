"""
One-shot Keycloak realm provisioning job.

Runs as the ``init-keycloak`` service once keycloak reports healthy, and
must exit successfully before trustify is allowed to start.
"""

from __future__ import annotations

import logging

from .client import KeycloakAdmin, KeycloakError
from .provision import provision
from .settings import SettingsError, SsoSettings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

__all__ = ["KeycloakAdmin", "KeycloakError", "SettingsError", "SsoSettings", "provision"]
