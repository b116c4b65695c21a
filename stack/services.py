"""
Definitions of the seven services that make up the load-test stack.

The database and the identity provider are leaves.  Two one-shot jobs
prepare them (realm provisioning, snapshot restore), a third migrates
the schema, and only then does the API server start.  The load
generator waits for the API server's liveness check.

As all services run on the same machine, postgres and trustify get
explicit CPU and memory reservations so keycloak or the load generator
cannot starve them.
"""

from __future__ import annotations

import json

from config import Config

from .models import Condition, HealthCheck, Kind, Resources, Service

# Address of the API server inside the compose network; independent of the
# port published on the host.
TRUSTIFY_URL = "http://trustify:8080"


def postgres(cfg: type[Config]) -> Service:
    return Service(
        name="postgres",
        kind=Kind.LONG_RUNNING,
        image=cfg.POSTGRES_IMAGE,
        ports=[f"{cfg.POSTGRES_PORT}:5432"],
        environment={
            "POSTGRES_PASSWORD": cfg.POSTGRES_PASSWORD,
            "POSTGRES_DB": cfg.POSTGRES_DB,
        },
        restart="always",
        shm_size="1G",
        resources=Resources(cpus="2", memory="2G"),
        healthcheck=HealthCheck(
            test=["CMD", "pg_isready", "-h", "localhost", "-U", cfg.POSTGRES_USER, "-d", cfg.POSTGRES_DB],
            interval="2s",
            timeout="5s",
            retries=20,
        ),
    )


def keycloak(cfg: type[Config]) -> Service:
    return Service(
        name="keycloak",
        kind=Kind.LONG_RUNNING,
        image=cfg.KEYCLOAK_IMAGE,
        environment={
            "KEYCLOAK_DATABASE_VENDOR": "dev-file",
            "KEYCLOAK_ADMIN": cfg.KEYCLOAK_ADMIN,
            "KEYCLOAK_ADMIN_PASSWORD": cfg.KEYCLOAK_ADMIN_PASSWORD,
            "KEYCLOAK_ENABLE_HEALTH_ENDPOINTS": "true",
            "KEYCLOAK_CACHE_TYPE": "local",
            "KEYCLOAK_PROXY": "edge",
            "JAVA_OPTS": "-Xms128m -Xmx512m",
        },
        ports=[f"{cfg.KEYCLOAK_PORT}:8080"],
        resources=Resources(memory="512M"),
        healthcheck=HealthCheck(
            test=["CMD", "curl", "-f", "http://localhost:8080/health/ready"],
            interval="5s",
            timeout="5s",
            retries=20,
        ),
    )


def init_keycloak(cfg: type[Config]) -> Service:
    redirect_uris = ["http://trustify:*", "http://trustify:*/", "http://trustify:*/*"]
    return Service(
        name="init-keycloak",
        kind=Kind.ONE_SHOT,
        build=cfg.TOOLS_CONTAINERFILE,
        depends_on={"keycloak": Condition.HEALTHY},
        environment={
            "KEYCLOAK_URL": "http://keycloak:8080",
            "KEYCLOAK_ADMIN": cfg.KEYCLOAK_ADMIN,
            "KEYCLOAK_ADMIN_PASSWORD": cfg.KEYCLOAK_ADMIN_PASSWORD,
            "REALM": cfg.REALM,
            "INIT_DATA": "/init-sso/data",
            "CHICKEN_ADMIN": cfg.CHICKEN_ADMIN,
            "CHICKEN_ADMIN_PASSWORD": cfg.CHICKEN_ADMIN_PASSWORD,
            "REDIRECT_URIS": json.dumps(redirect_uris),
            "WALKER_SECRET": cfg.WALKER_SECRET,
            "SSO_FRONTEND_URL": TRUSTIFY_URL,
        },
        volumes=["./config/init-sso:/init-sso:z"],
        command=["python", "-m", "sso_init"],
    )


def replay_dump(cfg: type[Config]) -> Service:
    return Service(
        name="replay-dump",
        kind=Kind.ONE_SHOT,
        build=cfg.TOOLS_CONTAINERFILE,
        depends_on={"postgres": Condition.HEALTHY},
        environment={
            "PGUSER": cfg.POSTGRES_USER,
            "PGPASSWORD": cfg.POSTGRES_PASSWORD,
            "PGHOST": "postgres",
            "PGDATABASE": cfg.POSTGRES_DB,
            "DUMP_URL": cfg.dump_url(),
            "DOWNLOAD_RETRIES": "50",
            "DOWNLOAD_MAX_TIME": "3600",
        },
        command=["python", "-m", "dump_replay"],
    )


def _trustify_db_env(cfg: type[Config]) -> dict[str, str]:
    return {
        "TRUSTD_DB_USER": cfg.POSTGRES_USER,
        "TRUSTD_DB_PASSWORD": cfg.POSTGRES_PASSWORD,
        "TRUSTD_DB_HOST": "postgres",
        "TRUSTD_DB_NAME": cfg.POSTGRES_DB,
    }


def trustify_migrate(cfg: type[Config]) -> Service:
    return Service(
        name="trustify-migrate",
        kind=Kind.ONE_SHOT,
        build=cfg.TRUSTIFY_CONTAINERFILE,
        depends_on={"replay-dump": Condition.COMPLETED},
        environment={"RUST_LOG": cfg.MIGRATE_LOG, **_trustify_db_env(cfg)},
        command=["db", "migrate"],
    )


def trustify(cfg: type[Config]) -> Service:
    issuer = f"http://keycloak:8080/realms/{cfg.REALM}"
    return Service(
        name="trustify",
        kind=Kind.LONG_RUNNING,
        build=cfg.TRUSTIFY_CONTAINERFILE,
        depends_on={
            "trustify-migrate": Condition.COMPLETED,
            "init-keycloak": Condition.COMPLETED,
            "replay-dump": Condition.COMPLETED,
        },
        environment={
            **_trustify_db_env(cfg),
            "RUST_LOG": cfg.TRUSTIFY_LOG,
            "NO_COLOR": "true",
            "INFRASTRUCTURE_ENABLED": "true",
            "HTTP_SERVER_BIND_ADDR": "::",
            "UI_ISSUER_URL": issuer,
            "AUTHENTICATOR_OIDC_CLIENT_IDS": "frontend,walker",
            "AUTHENTICATOR_OIDC_ISSUER_URL": issuer,
        },
        healthcheck=HealthCheck(
            test="curl --fail http://localhost:9010/health/live || exit 1",
            interval="2s",
            timeout="5s",
            retries=20,
            start_period="10s",
        ),
        command=["api"],
        ports=[f"{cfg.TRUSTIFY_PORT}:8080"],
        resources=Resources(cpus="3", memory="2G"),
    )


def loadtests(cfg: type[Config]) -> Service:
    command = [
        "--headless",
        "--host",
        TRUSTIFY_URL,
        "-u",
        str(cfg.LOADTEST_USERS),
        "--run-time",
        cfg.LOADTEST_RUN_TIME,
    ]
    for suffix in ("html", "json", "md"):
        command += ["--report-file", f"/report/report.{suffix}"]
    command += ["--baseline-file", "/baseline/baseline.json"]
    command += ["--scenarios", ",".join(cfg.LOADTEST_SCENARIOS)]

    return Service(
        name="loadtests",
        kind=Kind.ONE_SHOT,
        build=cfg.LOADTESTS_CONTAINERFILE,
        depends_on={"trustify": Condition.HEALTHY},
        environment={
            "ISSUER_URL": f"http://keycloak:8080/realms/{cfg.REALM}",
            "CLIENT_ID": "walker",
            "CLIENT_SECRET": cfg.WALKER_SECRET,
            "WAIT_TIME_FROM": cfg.WAIT_TIME_FROM,
            "WAIT_TIME_TO": cfg.WAIT_TIME_TO,
            "SCENARIO_FILE": cfg.scenario_file(),
        },
        volumes=[f"{cfg.REPORT_DIR}:/report:z", f"{cfg.BASELINE_DIR}:/baseline:z"],
        command=command,
    )


# Declaration order of the descriptor, leaves first.
SERVICE_FACTORIES = (
    postgres,
    keycloak,
    init_keycloak,
    replay_dump,
    trustify_migrate,
    trustify,
    loadtests,
)


def build_services(cfg: type[Config]) -> list[Service]:
    """Return the stack's services for *cfg* in declaration order."""
    return [factory(cfg) for factory in SERVICE_FACTORIES]
