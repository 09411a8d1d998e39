"""Database dumps: pg_dump piped through gzip straight into a file."""

from __future__ import annotations

import logging
import subprocess
import tempfile
from urllib.parse import urlparse

from db_backup.errors import DumpFailure

logger = logging.getLogger(__name__)


def mask_url(url: str) -> str:
    """Return a URL with the password masked for display."""
    parsed = urlparse(url)
    if parsed.password:
        host = parsed.hostname or ""
        if parsed.port:
            host = f"{host}:{parsed.port}"
        return parsed._replace(netloc=f"{parsed.username}:****@{host}").geturl()
    return url


def _spawn(cmd: list[str], **kwargs) -> subprocess.Popen:
    try:
        return subprocess.Popen(cmd, **kwargs)
    except FileNotFoundError as e:
        hint = " - install postgresql-client" if cmd[0] == "pg_dump" else ""
        raise DumpFailure(f"{cmd[0]} not found{hint}") from e
    except OSError as e:
        raise DumpFailure(f"Could not start {cmd[0]}: {e}") from e


def dump_to_file(local_path: str, database_url: str) -> None:
    """Dump a database in pg_dump's custom format, gzipped, into ``local_path``.

    Equivalent to ``pg_dump <url> -Fc | gzip > <local_path>`` without a shell.
    Raises DumpFailure carrying pg_dump's stderr when either stage fails. The
    output file may be left partially written on failure. No timeout is applied.
    """
    logger.info(f"Dumping {mask_url(database_url)} to {local_path}")

    with open(local_path, "wb") as out, tempfile.TemporaryFile() as dump_stderr:
        dump = _spawn(
            ["pg_dump", "--format=custom", f"--dbname={database_url}"],
            stdout=subprocess.PIPE,
            stderr=dump_stderr,
        )
        try:
            gz = _spawn(["gzip"], stdin=dump.stdout, stdout=out, stderr=subprocess.PIPE)
        except DumpFailure:
            dump.kill()
            dump.wait()
            raise
        finally:
            # gzip owns the read end now; pg_dump gets SIGPIPE if gzip exits
            dump.stdout.close()

        _, gzip_stderr = gz.communicate()
        dump_code = dump.wait()

        dump_stderr.seek(0)
        stderr = dump_stderr.read().decode(errors="replace")

    if dump_code != 0:
        raise DumpFailure(f"pg_dump exited with code {dump_code}", stderr=stderr, returncode=dump_code)
    if gz.returncode != 0:
        raise DumpFailure(
            f"gzip exited with code {gz.returncode}",
            stderr=(gzip_stderr or b"").decode(errors="replace"),
            returncode=gz.returncode,
        )

    if stderr.strip():
        logger.warning(f"pg_dump reported: {stderr.strip()[:500]}")
    logger.info(f"Dump written to {local_path}")
