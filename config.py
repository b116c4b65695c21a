"""
Load-test stack configuration module.

This module defines configuration classes for the different ways the
stack is run (full load test, quick smoke run, unit tests).  Values are
loaded from environment variables with sensible defaults so the same
compose descriptor can be rendered on a laptop or in CI.

Key Concepts Demonstrated:
- Class-based configuration with inheritance for shared defaults
- A single dataset id from which both the database dump URL and the
  load-test scenario file are derived, so the two cannot drift apart
"""

import os
from pathlib import Path

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration with default settings."""

    COMPOSE_PROJECT: str = os.environ.get("COMPOSE_PROJECT_NAME", "trustify-loadtests")
    COMPOSE_FILE: Path = BASE_DIR / "compose.yaml"

    POSTGRES_IMAGE: str = "docker.io/library/postgres:17"
    KEYCLOAK_IMAGE: str = "docker.io/bitnami/keycloak:24.0.4"

    TRUSTIFY_CONTAINERFILE: str = "./Containerfile.trustify"
    LOADTESTS_CONTAINERFILE: str = "./Containerfile.loadtests"
    TOOLS_CONTAINERFILE: str = "./Containerfile.tools"

    # Database
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = os.environ.get("POSTGRES_PASSWORD", "eggs")
    POSTGRES_DB: str = "trustify"
    POSTGRES_PORT: int = int(os.environ.get("POSTGRES_PORT", "5432"))

    # Identity provider
    KEYCLOAK_ADMIN: str = os.environ.get("KEYCLOAK_ADMIN", "admin")
    KEYCLOAK_ADMIN_PASSWORD: str = os.environ.get("KEYCLOAK_ADMIN_PASSWORD", "admin123456")
    KEYCLOAK_PORT: int = int(os.environ.get("KEYCLOAK_PORT", "8090"))
    REALM: str = "trustify"
    CHICKEN_ADMIN: str = os.environ.get("CHICKEN_ADMIN", "admin")
    CHICKEN_ADMIN_PASSWORD: str = os.environ.get("CHICKEN_ADMIN_PASSWORD", "admin123456")
    WALKER_SECRET: str = os.environ.get("WALKER_SECRET", "R8A6KFeyxJsMDBhjfHbpZTIF0GWt43HP")

    # API server under test
    TRUSTIFY_PORT: int = int(os.environ.get("TRUSTIFY_PORT", "8080"))
    TRUSTIFY_LOG: str = os.environ.get("TRUSTIFY_LOG", "info")
    MIGRATE_LOG: str = os.environ.get("MIGRATE_LOG", "debug")

    # Dataset: the dump and the scenario file must describe the same snapshot
    DATASET_ID: str = os.environ.get("DATASET_ID", "20250323T044433Z")
    DUMP_BASE_URL: str = os.environ.get(
        "DUMP_BASE_URL", "https://trustify-dumps.s3.eu-west-1.amazonaws.com"
    )
    SCENARIO_DIR: str = "/usr/local/share/scenarios"

    # Load generation
    LOADTEST_USERS: int = int(os.environ.get("LOADTEST_USERS", "5"))
    LOADTEST_RUN_TIME: str = os.environ.get("LOADTEST_RUN_TIME", "5m")
    WAIT_TIME_FROM: str = os.environ.get("WAIT_TIME_FROM", "0")
    WAIT_TIME_TO: str = os.environ.get("WAIT_TIME_TO", "0")
    LOADTEST_SCENARIOS: tuple[str, ...] = ("RestAPIUser",)
    REPORT_DIR: str = os.environ.get("REPORT_DIR", "./report")
    BASELINE_DIR: str = os.environ.get("BASELINE_DIR", "./baseline")

    @classmethod
    def dump_url(cls) -> str:
        """Return the URL of the gzipped SQL dump for ``DATASET_ID``."""
        return f"{cls.DUMP_BASE_URL}/{cls.DATASET_ID}/dump.sql.gz"

    @classmethod
    def scenario_file(cls) -> str:
        """Return the in-container path of the scenario matching ``DATASET_ID``."""
        return f"{cls.SCENARIO_DIR}/full-{cls.DATASET_ID[:8]}.json5"


class DevelopmentConfig(Config):
    """Full load-test run, the default."""


class SmokeConfig(Config):
    """Short run to check that the stack comes up and answers."""

    LOADTEST_USERS: int = 1
    LOADTEST_RUN_TIME: str = "30s"


class TestingConfig(Config):
    """Unit-test configuration with fixed values independent of the environment."""

    COMPOSE_PROJECT: str = "trustify-loadtests-test"
    POSTGRES_PASSWORD: str = "eggs"
    KEYCLOAK_ADMIN: str = "admin"
    KEYCLOAK_ADMIN_PASSWORD: str = "admin123456"
    CHICKEN_ADMIN: str = "admin"
    CHICKEN_ADMIN_PASSWORD: str = "admin123456"
    WALKER_SECRET: str = "R8A6KFeyxJsMDBhjfHbpZTIF0GWt43HP"
    POSTGRES_PORT: int = 5432
    KEYCLOAK_PORT: int = 8090
    TRUSTIFY_PORT: int = 8080
    TRUSTIFY_LOG: str = "info"
    MIGRATE_LOG: str = "debug"
    DATASET_ID: str = "20250323T044433Z"
    DUMP_BASE_URL: str = "https://trustify-dumps.s3.eu-west-1.amazonaws.com"
    LOADTEST_USERS: int = 5
    LOADTEST_RUN_TIME: str = "5m"
    WAIT_TIME_FROM: str = "0"
    WAIT_TIME_TO: str = "0"
    REPORT_DIR: str = "./report"
    BASELINE_DIR: str = "./baseline"


# Configuration mapping for easy access
config = {
    "development": DevelopmentConfig,
    "smoke": SmokeConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Get the configuration class for the specified environment.

    Args:
        env: Environment name (development, smoke, testing).
             If None, uses LOADSTACK_ENV environment variable.

    Returns:
        Configuration class for the specified environment.
    """
    if env is None:
        env = os.environ.get("LOADSTACK_ENV", "development")
    return config.get(env, config["default"])
