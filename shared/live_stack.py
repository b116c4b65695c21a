"""Shared live-stack helpers for the smoke test suite."""

from __future__ import annotations

import os
import time
from collections.abc import Generator
from pathlib import Path

import pytest
import requests

from stack.runner import ComposeError, ComposeRunner, ComposeUnavailableError


def is_healthy(url: str, timeout: int = 2) -> bool:
    """Return True when *url* responds with 200."""
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException:
        return False
    return response.status_code == 200


def is_stack_ready(trustify_url: str, keycloak_url: str, realm: str = "trustify") -> bool:
    """Return True when trustify and the provisioned realm both respond."""
    return is_healthy(f"{trustify_url}/.well-known/trustify") and is_healthy(
        f"{keycloak_url}/realms/{realm}"
    )


def wait_for_healthy(url: str, timeout: int = 60, interval: int = 1) -> None:
    """Poll *url* until it responds with 200 or *timeout* seconds pass."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if is_healthy(url):
            return
        time.sleep(interval)
    raise RuntimeError(f"{url} not healthy after {timeout}s")


def live_stack_urls(
    *,
    trustify_url_env: str,
    keycloak_url_env: str,
    compose_project_env: str,
    compose_project_default: str,
    compose_file: Path,
    trustify_url_default: str = "http://localhost:8080",
    keycloak_url_default: str = "http://localhost:8090",
    realm: str = "trustify",
    timeout: int = 1800,
) -> Generator[tuple[str, str], None, None]:
    """
    Yield healthy ``(trustify_url, keycloak_url)``, starting the stack when needed.

    Priority:
    1. Use explicit URLs from the environment (and wait for health).
    2. Reuse an already-running local stack at the default URLs.
    3. Start the compose stack, wait for health, then tear it down on exit.

    Starting the stack restores a full database dump, so *timeout* is long.
    """
    provided_trustify = os.getenv(trustify_url_env)
    if provided_trustify:
        keycloak_url = os.getenv(keycloak_url_env, keycloak_url_default)
        wait_for_healthy(f"{provided_trustify}/.well-known/trustify")
        wait_for_healthy(f"{keycloak_url}/realms/{realm}")
        yield provided_trustify, keycloak_url
        return

    if is_stack_ready(trustify_url_default, keycloak_url_default, realm):
        yield trustify_url_default, keycloak_url_default
        return

    runner = ComposeRunner(os.getenv(compose_project_env, compose_project_default), compose_file)
    services = ("postgres", "keycloak", "init-keycloak", "replay-dump", "trustify-migrate", "trustify")
    try:
        runner.up(*services)
    except ComposeUnavailableError:
        pytest.skip(f"docker is not installed; set {trustify_url_env} to run smoke tests")
    except ComposeError:
        # Compose may have created containers, networks or volumes before failing.
        runner.down()
        raise

    try:
        wait_for_healthy(f"{trustify_url_default}/.well-known/trustify", timeout=timeout, interval=5)
        wait_for_healthy(f"{keycloak_url_default}/realms/{realm}", timeout=timeout, interval=5)
        yield trustify_url_default, keycloak_url_default
    finally:
        runner.down()
