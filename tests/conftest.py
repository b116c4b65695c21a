"""
Shared pytest fixtures for the load-test stack test suite.

Fixtures follow the Arrange-Act-Assert (AAA) pattern and hand every
test a fresh service list, so tests may mutate what they receive.

Key Concepts Demonstrated:
- Fixture scopes (function, session)
- Factory fixtures for building ad-hoc services
- Faker for generated identities and secrets
"""

from __future__ import annotations

# locust monkey-patches ssl via gevent on import; it must run before anything
# imports urllib3/requests, or the patch recurses (gevent issue 1016).
import locust  # noqa: F401  isort:skip

import os
from collections.abc import Callable
from typing import Any

import pytest
from faker import Faker

# Pin the configuration before importing the stack package.
os.environ["LOADSTACK_ENV"] = "testing"

from config import TestingConfig
from stack.models import Condition, HealthCheck, Kind, Service
from stack.services import build_services

# Initialize Faker for generating test data
fake = Faker()


# -----------------------------------------------------------------------------
# Stack Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def testing_config() -> type[TestingConfig]:
    """Configuration class with values independent of the environment."""
    return TestingConfig


@pytest.fixture
def services(testing_config) -> list[Service]:
    """A fresh list of the seven stack services."""
    return build_services(testing_config)


@pytest.fixture
def services_by_name(services) -> dict[str, Service]:
    """The stack services keyed by name."""
    return {service.name: service for service in services}


# -----------------------------------------------------------------------------
# Test Data Factory Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def service_factory() -> Callable[..., Service]:
    """
    Factory fixture for creating Service instances.

    Example:
        def test_something(service_factory):
            db = service_factory("db", healthy=True)
            app = service_factory("app", depends_on={"db": Condition.HEALTHY})
    """

    def _create(
        name: str,
        *,
        kind: Kind = Kind.LONG_RUNNING,
        healthy: bool = False,
        depends_on: dict[str, Condition] | None = None,
        **overrides: Any,
    ) -> Service:
        options: dict[str, Any] = {
            "name": name,
            "kind": kind,
            "image": "docker.io/library/busybox:latest",
            "depends_on": depends_on or {},
        }
        if healthy:
            options["healthcheck"] = HealthCheck(
                test=["CMD", "true"], interval="1s", timeout="1s", retries=3
            )
        options.update(overrides)
        return Service(**options)

    return _create


@pytest.fixture
def faker() -> Faker:
    return fake
