"""
Local Database Layer.

Owns the single SQLite connection that backs the credential store.  The
session client is the only writer and every write goes through
:pyattr:`LocalDatabase.write_lock`.

This module only manages the raw *connection*; the slot layout lives in
:mod:`jobportal.schema` and the slot semantics in
:class:`~jobportal.services.credential_store.CredentialStore`.

Usage (dependency injection at app startup)::

    from jobportal.database import LocalDatabase
    from jobportal.logger import StructuredLogger

    db = LocalDatabase(
        sqlite_path=config.CREDENTIAL_DB_PATH,
        logger=StructuredLogger(name="database"),
    )
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from jobportal.logger import StructuredLogger


class LocalDatabase:
    """Manages the connection to the local SQLite credential database.

    Fully configured at construction time via dependency injection.

    Parameters
    ----------
    sqlite_path:
        Filesystem path for the SQLite database file, or ``":memory:"``.
        Parent directories are created when missing.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        sqlite_path: Path | str,
        logger: StructuredLogger,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()
        self._in_batch: bool = False
        self._closed: bool = False
        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(sqlite_path)

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Return the initialised SQLite connection."""
        return self._sqlite_conn

    @property
    def write_lock(self) -> threading.RLock:
        """Return the write lock for SQLite writes.

        All code that performs SQLite writes should acquire this lock
        first::

            with db.write_lock:
                db.sqlite.execute("DELETE ...")
                db.sqlite.commit()
        """
        return self._write_lock

    @property
    def in_batch(self) -> bool:
        """``True`` when a :meth:`batch_write` context is active."""
        return self._in_batch

    @property
    def is_closed(self) -> bool:
        return self._closed

    @contextmanager
    def batch_write(self) -> Generator[sqlite3.Connection, None, None]:
        """Run several statements as one transaction.

        On normal exit a single ``commit()`` is issued.  On exception the
        transaction is rolled back and the error re-raised.  Nested use
        joins the outer batch.

        Example::

            with db.batch_write() as conn:
                conn.execute("INSERT ...")
                conn.execute("INSERT ...")
            # single commit happens here
        """
        with self._write_lock:
            if self._in_batch:
                yield self._sqlite_conn
                return

            self._in_batch = True
            try:
                yield self._sqlite_conn
                self._sqlite_conn.commit()
                self._logger.debug("Batch write committed.")
            except Exception:
                self._sqlite_conn.rollback()
                self._logger.error(
                    "Batch write rolled back due to exception.", exc_info=True,
                )
                raise
            finally:
                self._in_batch = False

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the SQLite connection.

        Safe to call multiple times; subsequent calls are no-ops.
        """
        with self._write_lock:
            if self._closed:
                return
            try:
                self._sqlite_conn.close()
                self._logger.info("SQLite connection closed.")
            except sqlite3.ProgrammingError:
                pass
            self._closed = True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _connect_sqlite(self, path: Path | str) -> sqlite3.Connection:
        """Open (or create) a SQLite database.

        Re-raises ``PermissionError`` with a message the CLI can print
        as-is when the file or its directory is read-only or locked.
        """
        target: str = str(path)
        try:
            if target != ":memory:":
                Path(target).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(target, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            if target != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL;")
            self._logger.info("SQLite database opened at %s", target)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the local credential database at '{target}'. "
                "The file or its directory may be read-only or locked by "
                "another process.  Please check file permissions and try again."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc
