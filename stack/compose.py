"""
Render the service model as a compose descriptor and read it back.

``compose.yaml`` at the repository root is generated from
:func:`stack.services.build_services`.  The committed file is what
``docker compose`` actually runs, so :func:`diff` is used to detect
hand edits that were not carried back into the model.

Key Concepts Demonstrated:
- Insertion-ordered YAML output (``sort_keys=False``) so the file reads
  leaves first, like the dependency graph
- Lenient parsing of both mapping-style and list-style ``environment``
  and ``depends_on`` entries
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .models import Condition, HealthCheck, Kind, Resources, Service, ServiceDefinitionError

HEADER = """\
#
# Compose setup for running load tests in a repeatable fashion.
#
# All services (db, sso, ...) are prepared first, then the trustify API server
# is started and the load tests run against it.
#
# As all services run on the same machine, postgres and trustify get resource
# reservations equal to their limits, so they are not throttled by keycloak or
# the load generator.
#
# Generated by `loadstack render`. Do not edit by hand.
#
"""

_RESTART_POLICIES = ("always", "unless-stopped", "on-failure")


def service_to_compose(service: Service) -> dict[str, Any]:
    """Return the compose mapping of a single service."""
    data: dict[str, Any] = {}
    if service.depends_on:
        data["depends_on"] = {
            name: {"condition": condition.value}
            for name, condition in service.depends_on.items()
        }
    if service.image is not None:
        data["image"] = service.image
    if service.build is not None:
        data["build"] = {"dockerfile": service.build}
    if service.ports:
        data["ports"] = list(service.ports)
    if service.environment:
        data["environment"] = dict(service.environment)
    if service.restart is not None:
        data["restart"] = service.restart
    if service.shm_size is not None:
        data["shm_size"] = service.shm_size
    if service.volumes:
        data["volumes"] = list(service.volumes)
    if service.entrypoint is not None:
        data["entrypoint"] = service.entrypoint
    if service.command is not None:
        data["command"] = list(service.command) if isinstance(service.command, list) else service.command
    if service.healthcheck is not None:
        data["healthcheck"] = service.healthcheck.to_compose()
    if service.resources is not None:
        data["deploy"] = service.resources.to_compose()
    return data


def to_compose(services: list[Service]) -> dict[str, Any]:
    """Return the full descriptor mapping, services in declaration order."""
    return {"services": {service.name: service_to_compose(service) for service in services}}


def render(services: list[Service]) -> str:
    """Render *services* as compose YAML text with the descriptor header."""
    body = yaml.safe_dump(
        to_compose(services),
        sort_keys=False,
        default_flow_style=False,
        width=120,
    )
    return f"{HEADER}\n{body}"


def write(services: list[Service], path: Path) -> None:
    path.write_text(render(services), encoding="utf-8")


def load(path: Path) -> dict[str, Any]:
    """Read a compose file into a mapping."""
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict) or not isinstance(data.get("services"), dict):
        raise ServiceDefinitionError(f"{path} has no services mapping")
    return data


def _env_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def _parse_environment(raw: Any) -> dict[str, str]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return {str(key): _env_value(value) for key, value in raw.items()}

    environment: dict[str, str] = {}
    for entry in raw:
        key, _, value = str(entry).partition("=")
        environment[key] = value
    return environment


def _parse_depends_on(raw: Any) -> dict[str, Condition]:
    if raw is None:
        return {}
    if isinstance(raw, list):
        return {str(name): Condition.STARTED for name in raw}

    depends_on: dict[str, Condition] = {}
    for name, options in raw.items():
        condition = (options or {}).get("condition", Condition.STARTED.value)
        try:
            depends_on[str(name)] = Condition(condition)
        except ValueError as exc:
            raise ServiceDefinitionError(
                f"Unknown condition {condition!r} for dependency {name}"
            ) from exc
    return depends_on


def _parse_build(raw: Any) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        return raw
    return raw.get("dockerfile") or raw.get("context")


def parse_service(name: str, data: dict[str, Any]) -> Service:
    """
    Build a :class:`Service` from its compose mapping.

    A service is treated as long-running when it has a health check or a
    restart policy; everything else is a one-shot job.
    """
    healthcheck = HealthCheck.from_compose(data["healthcheck"]) if data.get("healthcheck") else None
    restart = data.get("restart")
    kind = Kind.LONG_RUNNING if healthcheck or restart in _RESTART_POLICIES else Kind.ONE_SHOT

    command = data.get("command")
    if isinstance(command, list):
        command = [str(part) for part in command]

    return Service(
        name=name,
        kind=kind,
        image=data.get("image"),
        build=_parse_build(data.get("build")),
        environment=_parse_environment(data.get("environment")),
        ports=[str(port) for port in data.get("ports", [])],
        volumes=[str(volume) for volume in data.get("volumes", [])],
        entrypoint=data.get("entrypoint"),
        command=command,
        depends_on=_parse_depends_on(data.get("depends_on")),
        healthcheck=healthcheck,
        resources=Resources.from_compose(data["deploy"]) if data.get("deploy") else None,
        restart=restart,
        shm_size=None if data.get("shm_size") is None else str(data["shm_size"]),
    )


def parse_services(data: dict[str, Any]) -> list[Service]:
    return [parse_service(name, options or {}) for name, options in data["services"].items()]


def diff(expected: list[Service], actual: list[Service]) -> list[str]:
    """
    Describe how *actual* differs from *expected*.

    Returns:
        One line per difference; an empty list when both describe the
        same stack.
    """
    want = to_compose(expected)["services"]
    have = to_compose(actual)["services"]
    problems: list[str] = []

    for name in want:
        if name not in have:
            problems.append(f"{name}: missing")
    for name in have:
        if name not in want:
            problems.append(f"{name}: unexpected service")

    for name, want_service in want.items():
        have_service = have.get(name)
        if have_service is None:
            continue
        for key in sorted(set(want_service) | set(have_service)):
            if want_service.get(key) != have_service.get(key):
                problems.append(
                    f"{name}.{key}: expected {want_service.get(key)!r}, got {have_service.get(key)!r}"
                )

    if not problems and list(want) != list(have):
        problems.append(f"service order: expected {list(want)}, got {list(have)}")
    return problems
