"""
One-shot database snapshot restore job.

Runs as the ``replay-dump`` service once postgres reports healthy; the
schema migration and the API server wait for it to complete.
"""

from __future__ import annotations

import logging

from .restore_job import DumpReplayError, ReplaySettings, download, maintain, replay, restore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

__all__ = ["DumpReplayError", "ReplaySettings", "download", "maintain", "replay", "restore"]
