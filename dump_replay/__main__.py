"""Entry point: ``python -m dump_replay``."""

from __future__ import annotations

import logging
import sys

from dump_replay import DumpReplayError, ReplaySettings, replay

logger = logging.getLogger("dump_replay")


def main() -> int:
    try:
        replay(ReplaySettings.from_env())
    except DumpReplayError as exc:
        logger.error("Dump replay failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
