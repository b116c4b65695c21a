"""
Smoke-test fixtures for the load-test stack.

Provides the ``smoke_urls`` session-scoped fixture that yields healthy
trustify and Keycloak URLs shared across the entire smoke suite.  URL
resolution is delegated to :func:`shared.live_stack.live_stack_urls`,
which reuses an already-running local stack when one is healthy or
starts the compose stack (without the load test itself) on demand.

Key SDET Concepts Demonstrated:
- Session-scoped URL fixtures to share a single live stack across all smoke tests
- Delegating stack lifecycle management to a shared helper
"""

from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest

from config import BASE_DIR, get_config
from shared.live_stack import live_stack_urls


@pytest.fixture(scope="session")
def stack_config():
    """Configuration the compose file was rendered from."""
    return get_config("development")


@pytest.fixture(scope="session")
def smoke_urls(stack_config) -> Generator[tuple[str, str], None, None]:
    """Yield healthy ``(trustify_url, keycloak_url)`` for smoke tests."""
    run_id = uuid.uuid4().hex[:8]
    yield from live_stack_urls(
        trustify_url_env="TEST_TRUSTIFY_URL",
        keycloak_url_env="TEST_KEYCLOAK_URL",
        compose_project_env="SMOKE_COMPOSE_PROJECT",
        compose_project_default=f"loadstack-smoke-{run_id}",
        compose_file=BASE_DIR / "compose.yaml",
        realm=stack_config.REALM,
    )
