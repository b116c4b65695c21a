"""
Load-test stack model.

Describes the containers of the trustify load-test environment, checks
their startup dependencies and renders them as the ``compose.yaml``
descriptor that docker/podman compose runs.

Key Concepts Demonstrated:
- Factory function (create_stack) selecting the environment's config
- Validating a static dependency graph before handing it to an
  external orchestration engine
"""

from __future__ import annotations

import logging

from config import get_config

from .graph import validate
from .models import Service
from .services import build_services

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_stack(config_name: str | None = None) -> list[Service]:
    """
    Build and validate the services for an environment.

    Args:
        config_name: Optional environment key ("development", "smoke",
            "testing").  When *None*, the LOADSTACK_ENV environment
            variable is consulted, defaulting to "development".

    Returns:
        The services in declaration order.

    Raises:
        StackGraphError: If the startup conditions cannot be satisfied.
    """
    config_class = get_config(config_name)
    logger.info("Building stack with config: %s", config_class.__name__)

    services = build_services(config_class)
    validate(services)
    return services
