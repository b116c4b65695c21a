"""
Service model for the load-test stack.

Each container in the compose descriptor is described by a
:class:`Service`.  The model carries only what the compose engine needs
(image or build, environment, ports, healthchecks, resource reservations and
startup conditions) plus one piece of metadata the descriptor itself
cannot express: whether the container is a long-running service or a
one-shot job that gates its dependents by exiting successfully.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ServiceDefinitionError(ValueError):
    """Raised when a single service definition is malformed."""


class Condition(str, Enum):
    """Startup condition a dependent waits for."""

    STARTED = "service_started"
    HEALTHY = "service_healthy"
    COMPLETED = "service_completed_successfully"


class Kind(str, Enum):
    """Lifecycle of a container."""

    LONG_RUNNING = "long-running"
    ONE_SHOT = "one-shot"


@dataclass(frozen=True)
class HealthCheck:
    """A check the compose engine runs to decide if dependents may start."""

    test: list[str] | str
    interval: str
    timeout: str
    retries: int
    start_period: str | None = None

    def to_compose(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "test": list(self.test) if isinstance(self.test, list) else self.test,
            "interval": self.interval,
            "timeout": self.timeout,
            "retries": self.retries,
        }
        if self.start_period is not None:
            data["start_period"] = self.start_period
        return data

    @classmethod
    def from_compose(cls, data: dict[str, Any]) -> HealthCheck:
        try:
            return cls(
                test=data["test"],
                interval=str(data["interval"]),
                timeout=str(data["timeout"]),
                retries=int(data["retries"]),
                start_period=data.get("start_period"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ServiceDefinitionError(f"Invalid healthcheck: {data!r}") from exc


@dataclass(frozen=True)
class Resources:
    """
    CPU and memory for a container.

    Reservations always equal limits so that the database and the API
    server get their share of the host and are never throttled because
    keycloak or the load generator ran hot.
    """

    cpus: str | None = None
    memory: str | None = None

    def to_compose(self) -> dict[str, Any]:
        amounts: dict[str, str] = {}
        if self.cpus is not None:
            amounts["cpus"] = self.cpus
        if self.memory is not None:
            amounts["memory"] = self.memory
        return {"resources": {"reservations": dict(amounts), "limits": dict(amounts)}}

    @classmethod
    def from_compose(cls, data: dict[str, Any]) -> Resources:
        resources = data.get("resources") or {}
        limits = resources.get("limits") or resources.get("reservations") or {}
        cpus = limits.get("cpus")
        memory = limits.get("memory")
        return cls(
            cpus=None if cpus is None else str(cpus),
            memory=None if memory is None else str(memory),
        )


@dataclass
class Service:
    """
    One container of the stack.

    Attributes:
        name: Service name, also the container's hostname on the network.
        kind: Long-running service or one-shot job.
        image: Pre-built image reference.  Mutually exclusive with ``build``.
        build: Containerfile used to build the image locally.
        environment: Environment variables passed to the container.
        ports: ``host:container`` port mappings.
        volumes: Bind mounts.
        entrypoint: Entrypoint override.
        command: Command (list form) or shell string.
        depends_on: Startup conditions keyed by dependency name.
        healthcheck: Check used by ``service_healthy`` dependents.
        resources: CPU/memory reservations and limits.
        restart: Restart policy.
        shm_size: Shared memory size.
    """

    name: str
    kind: Kind
    image: str | None = None
    build: str | None = None
    environment: dict[str, str] = field(default_factory=dict)
    ports: list[str] = field(default_factory=list)
    volumes: list[str] = field(default_factory=list)
    entrypoint: str | None = None
    command: list[str] | str | None = None
    depends_on: dict[str, Condition] = field(default_factory=dict)
    healthcheck: HealthCheck | None = None
    resources: Resources | None = None
    restart: str | None = None
    shm_size: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ServiceDefinitionError("Service name must not be empty")
        if (self.image is None) == (self.build is None):
            raise ServiceDefinitionError(
                f"Service {self.name!r} must define exactly one of image or build"
            )

    @property
    def is_one_shot(self) -> bool:
        return self.kind is Kind.ONE_SHOT
