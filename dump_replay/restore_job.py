"""
Download a database snapshot and restore it into postgres.

The restore is a linear sequence of three steps, each delegated to an
existing tool or library:

1. download the gzipped SQL dump over HTTPS, restarting broken transfers
   until a retry count or a time limit is used up
2. stream the decompressed dump into ``psql -v ON_ERROR_STOP=1`` so the
   first failing statement aborts the import
3. ``VACUUM ANALYZE`` and ``REINDEX`` so the planner has statistics
   before the load test starts

Connection details (``PGHOST``, ``PGUSER``, ``PGPASSWORD``,
``PGDATABASE``) are read by ``psql`` itself from the inherited
environment.
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import subprocess
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
MAX_RETRY_DELAY = 60

# Failures that restart a transfer; anything else is final.
TRANSIENT_ERRORS = (
    requests.ConnectionError,
    requests.Timeout,
    requests.exceptions.ChunkedEncodingError,
)


class DumpReplayError(RuntimeError):
    """Any step of the snapshot restore failed."""


@dataclass(frozen=True)
class ReplaySettings:
    """
    Settings of the restore job.

    Attributes:
        dump_url: URL of the ``dump.sql.gz`` file.
        database: Database to vacuum and reindex after the import.
        dump_path: Local download target.
        retries: Retries for transient download failures.
        max_time: Seconds after which no further retry is started.
        psql: ``psql`` executable.
    """

    dump_url: str
    database: str
    dump_path: Path = Path("dump.sql.gz")
    retries: int = 50
    max_time: float = 3600.0
    psql: str = "psql"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ReplaySettings:
        environ = os.environ if environ is None else environ

        dump_url = environ.get("DUMP_URL")
        if not dump_url:
            raise DumpReplayError("Missing required environment variable: DUMP_URL")
        database = environ.get("PGDATABASE")
        if not database:
            raise DumpReplayError("Missing required environment variable: PGDATABASE")

        try:
            retries = int(environ.get("DOWNLOAD_RETRIES", "50"))
            max_time = float(environ.get("DOWNLOAD_MAX_TIME", "3600"))
        except ValueError as exc:
            raise DumpReplayError("DOWNLOAD_RETRIES and DOWNLOAD_MAX_TIME must be numeric") from exc

        return cls(
            dump_url=dump_url,
            database=database,
            dump_path=Path(environ.get("DUMP_PATH", "dump.sql.gz")),
            retries=retries,
            max_time=max_time,
            psql=environ.get("PSQL", "psql"),
        )


def retrying_session(retries: int) -> requests.Session:
    """Return a session that retries connection errors and 429/5xx responses."""
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=1,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _fetch(session: requests.Session, url: str, destination: Path) -> int:
    """One transfer attempt; *destination* is truncated first."""
    written = 0
    with session.get(url, stream=True, timeout=(30, 300)) as response:
        response.raise_for_status()
        with destination.open("wb") as handle:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                handle.write(chunk)
                written += len(chunk)
    return written


def download(
    url: str,
    destination: Path,
    *,
    retries: int = 50,
    max_time: float = 3600.0,
    session: requests.Session | None = None,
) -> int:
    """
    Stream *url* to *destination*, restarting transfers that break off.

    The session retries connection setup and 429/5xx answers; a
    connection that drops while the body is streamed restarts the whole
    transfer.  At most *retries* restarts are made, and none is started
    once *max_time* seconds have passed since the first attempt.  A
    transfer that is still making progress is never interrupted.

    Returns:
        Number of bytes written.

    Raises:
        DumpReplayError: On HTTP errors, or when the transfer keeps
            failing after the retries or the time limit are used up.
    """
    session = session or retrying_session(retries)
    deadline = time.monotonic() + max_time

    attempt = 0
    while True:
        attempt += 1
        logger.info("Downloading %s (attempt %s)", url, attempt)
        try:
            written = _fetch(session, url, destination)
        except TRANSIENT_ERRORS as exc:
            if attempt > retries:
                raise DumpReplayError(
                    f"Download of {url} failed after {attempt} attempts: {exc}"
                ) from exc
            delay = min(2 ** (attempt - 1), MAX_RETRY_DELAY)
            if time.monotonic() + delay > deadline:
                raise DumpReplayError(
                    f"Download of {url} gave up after {max_time:.0f}s: {exc}"
                ) from exc
            logger.warning("Download of %s broke off (%s), retrying in %ss", url, exc, delay)
            time.sleep(delay)
            continue
        except requests.RequestException as exc:
            raise DumpReplayError(f"Download of {url} failed: {exc}") from exc

        logger.info("Downloaded %s bytes to %s", written, destination)
        return written


def restore(dump_path: Path, psql: str = "psql") -> None:
    """Pipe the decompressed dump into ``psql``, stopping on the first error."""
    command = [psql, "-v", "ON_ERROR_STOP=1"]
    logger.info("Importing dump %s", dump_path)

    try:
        process = subprocess.Popen(command, stdin=subprocess.PIPE)
    except FileNotFoundError as exc:
        raise DumpReplayError(f"{psql} is not installed") from exc

    try:
        with gzip.open(dump_path, "rb") as source:
            shutil.copyfileobj(source, process.stdin, CHUNK_SIZE)
    except BrokenPipeError:
        # psql exited early; its return code below carries the failure.
        pass
    except (OSError, EOFError) as exc:
        process.kill()
        process.wait()
        raise DumpReplayError(f"Could not read dump {dump_path}: {exc}") from exc
    finally:
        try:
            process.stdin.close()
        except BrokenPipeError:
            pass

    returncode = process.wait()
    if returncode != 0:
        raise DumpReplayError(f"psql exited with {returncode} while importing {dump_path}")


def maintain(database: str, psql: str = "psql") -> None:
    """Refresh statistics and rebuild indexes after the bulk import."""
    # VACUUM refuses to run inside a transaction block, so the statements
    # go through stdin rather than a single ``-c`` string.
    statements = f'VACUUM ANALYZE;\nREINDEX DATABASE "{database}";\n'
    logger.info("Running VACUUM ANALYZE and REINDEX on %s", database)
    try:
        subprocess.run(
            [psql, "-v", "ON_ERROR_STOP=1"],
            input=statements,
            text=True,
            check=True,
        )
    except FileNotFoundError as exc:
        raise DumpReplayError(f"{psql} is not installed") from exc
    except subprocess.CalledProcessError as exc:
        raise DumpReplayError(f"Maintenance of {database} failed with {exc.returncode}") from exc


def replay(settings: ReplaySettings, session: requests.Session | None = None) -> None:
    """Download, import and maintain; any failure raises :class:`DumpReplayError`."""
    download(
        settings.dump_url,
        settings.dump_path,
        retries=settings.retries,
        max_time=settings.max_time,
        session=session,
    )
    restore(settings.dump_path, psql=settings.psql)
    maintain(settings.database, psql=settings.psql)
    logger.info("Dump replayed into %s", settings.database)
