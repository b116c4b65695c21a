"""Entry point: ``python -m sso_init``."""

from __future__ import annotations

import logging
import sys

import requests

from sso_init import KeycloakError, SsoSettings, provision

logger = logging.getLogger("sso_init")


def main() -> int:
    try:
        settings = SsoSettings.from_env()
        provision(settings)
    except (ValueError, KeycloakError, requests.RequestException, OSError) as exc:
        logger.error("Realm provisioning failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
