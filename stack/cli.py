"""
``loadstack`` command line.

Subcommands:

- ``render`` — write the compose descriptor generated from the model
- ``check`` — fail when the committed descriptor drifted from the model
- ``order`` — print the startup order (or the parallel startup waves)
- ``up`` — run the whole stack until the load tests finish and exit with
  their exit code (``1`` when a preparation job fails first)
- ``down`` — tear the stack down, including volumes

Exit codes follow the same three-state convention as the baseline
checker: ``0`` success, ``1`` check or run failure, ``2`` script error.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from config import get_config

from . import compose, create_stack
from .graph import StackGraphError, startup_waves, topological_order
from .models import ServiceDefinitionError
from .runner import ComposeCommandError, ComposeError, ComposeRunner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_SCRIPT_ERROR = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="loadstack",
        description="Render, check and run the trustify load-test compose stack.",
    )
    parser.add_argument(
        "--env",
        default=None,
        help="Configuration name (development, smoke, testing); defaults to $LOADSTACK_ENV",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser("render", help="Write the compose descriptor")
    render_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output file; '-' for stdout (default: compose.yaml)",
    )

    check_parser = subparsers.add_parser("check", help="Compare a descriptor with the model")
    check_parser.add_argument("file", type=Path, nargs="?", default=None)

    order_parser = subparsers.add_parser("order", help="Print the startup order")
    order_parser.add_argument(
        "--waves",
        action="store_true",
        help="Group services that can start at the same time",
    )

    up_parser = subparsers.add_parser("up", help="Run the stack until the load tests finish")
    up_parser.add_argument("--no-build", action="store_true", help="Do not rebuild images")
    up_parser.add_argument(
        "--keep",
        action="store_true",
        help="Leave the stack running after the load tests exit",
    )

    subparsers.add_parser("down", help="Stop the stack and remove its volumes")
    return parser.parse_args(argv)


def _render(args: argparse.Namespace) -> int:
    services = create_stack(args.env)
    if args.output is not None and str(args.output) == "-":
        sys.stdout.write(compose.render(services))
        return EXIT_OK

    output = args.output or get_config(args.env).COMPOSE_FILE
    compose.write(services, output)
    logger.info("Wrote %s", output)
    return EXIT_OK


def _check(args: argparse.Namespace) -> int:
    path = args.file or get_config(args.env).COMPOSE_FILE
    expected = create_stack(args.env)
    actual = compose.parse_services(compose.load(path))

    problems = compose.diff(expected, actual)
    if problems:
        print(f"{path} does not match the stack model:")
        for problem in problems:
            print(f"  {problem}")
        print("Run `loadstack render` to regenerate it.")
        return EXIT_FAILURE

    print(f"{path} is up to date")
    return EXIT_OK


def _order(args: argparse.Namespace) -> int:
    services = create_stack(args.env)
    if args.waves:
        for number, wave in enumerate(startup_waves(services)):
            print(f"{number}: {' '.join(wave)}")
    else:
        for name in topological_order(services):
            print(name)
    return EXIT_OK


def _runner(env: str | None) -> ComposeRunner:
    config_class = get_config(env)
    return ComposeRunner(config_class.COMPOSE_PROJECT, config_class.COMPOSE_FILE)


def _up(args: argparse.Namespace) -> int:
    create_stack(args.env)
    runner = _runner(args.env)
    try:
        exit_code = runner.run_to_completion("loadtests", build=not args.no_build)
    except ComposeCommandError as exc:
        # A one-shot job failed, so compose never started the load tests.
        logger.error("Stack did not come up: %s exited with %s", " ".join(exc.command), exc.returncode)
        return EXIT_FAILURE
    finally:
        if not args.keep:
            runner.down()

    if exit_code != 0:
        logger.error("Load tests exited with %s", exit_code)
    return exit_code


def _down(args: argparse.Namespace) -> int:
    _runner(args.env).down()
    return EXIT_OK


COMMANDS = {
    "render": _render,
    "check": _check,
    "order": _order,
    "up": _up,
    "down": _down,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        return COMMANDS[args.command](args)
    except (StackGraphError, ServiceDefinitionError, ComposeError, OSError) as exc:
        print(f"loadstack {args.command} failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
