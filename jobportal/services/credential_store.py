"""
Encrypted Credential Store.

Durable key-value persistence for the session token, the cached user
record, and the auxiliary employer company-name cache.  Slots live in the
local SQLite ``credential_slots`` table and survive restarts.

Security model
--------------
- The encryption key is derived from machine characteristics (hostname +
  OS username) via PBKDF2-HMAC-SHA256 with a per-installation random salt
  file.  The key is **never** persisted; it is derived once per store.
- Every slot is encrypted with AES-256-GCM, giving confidentiality and
  integrity.  A slot that fails to decrypt is reported as absent.
- ``clear()`` deletes the token and user slots and keeps cached company
  names; ``purge()`` deletes every slot.

Storage layout::

    credential_slots
    ├── slot_key          TEXT PRIMARY KEY   ("token", "user",
    │                                         "company_name:<user id>")
    ├── encrypted_payload BLOB
    ├── nonce             BLOB
    ├── tag               BLOB
    └── updated_at        TIMESTAMP

This is a dumb persistence boundary: it never checks what it stores.  It
is not synchronised across processes; the last writer wins.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import socket
import sqlite3
import stat
from pathlib import Path
from typing import Optional

from Crypto.Cipher import AES
from Crypto.Hash import SHA256
from Crypto.Protocol.KDF import PBKDF2
from pydantic import ValidationError

from jobportal.database import LocalDatabase
from jobportal.logger import StructuredLogger
from jobportal.models.session_models import StoredSession
from jobportal.models.user import User

_TOKEN_SLOT: str = "token"
_USER_SLOT: str = "user"
_COMPANY_NAME_PREFIX: str = "company_name:"


class CredentialStore:
    """Encrypted persistence for the session credential pair.

    Parameters
    ----------
    db:
        An initialised ``LocalDatabase`` whose schema has been created.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    salt_path:
        Location of the per-installation random salt file.
    kdf_iterations:
        PBKDF2 iteration count for key derivation.
    """

    _KEY_LENGTH: int = 32  # 256 bits
    _SALT_LENGTH: int = 32

    def __init__(
        self,
        db: LocalDatabase,
        logger: StructuredLogger,
        salt_path: Path,
        kdf_iterations: int = 600_000,
    ) -> None:
        self._db: LocalDatabase = db
        self._logger: StructuredLogger = logger
        self._salt_path: Path = Path(salt_path).expanduser()
        self._kdf_iterations: int = kdf_iterations
        self._key: Optional[bytes] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read(self) -> Optional[StoredSession]:
        """Return the stored token and user, or ``None``.

        ``None`` is returned unless **both** slots exist and decode
        cleanly.  A half-present pair is reported by
        :meth:`has_partial_session`.
        """
        token: Optional[str] = self._get(_TOKEN_SLOT)
        raw_user: Optional[str] = self._get(_USER_SLOT)
        if not token or raw_user is None:
            return None

        try:
            user = User.model_validate_json(raw_user)
        except ValidationError as exc:
            self._logger.warning("Stored user record is malformed: %s", exc)
            return None

        return StoredSession(token=token, user=user)

    def read_token(self) -> Optional[str]:
        """Return only the stored token (used for ``Authorization`` headers)."""
        return self._get(_TOKEN_SLOT) or None

    def write(self, token: str, user: User) -> bool:
        """Persist *token* and *user* together in one transaction.

        Returns
        -------
        bool
            ``True`` when both slots were written.  ``False`` if
            encryption or the database write failed; the error is logged
            but not raised and neither slot is changed.
        """
        user_json: str = json.dumps(user.to_wire(), ensure_ascii=False)
        try:
            token_row = self._encrypt(token)
            user_row = self._encrypt(user_json)
        except (OSError, ValueError) as exc:
            self._logger.warning("Failed to encrypt session slots: %s", exc)
            return False

        try:
            with self._db.batch_write() as conn:
                self._upsert(conn, _TOKEN_SLOT, token_row)
                self._upsert(conn, _USER_SLOT, user_row)
        except sqlite3.Error as exc:
            self._logger.warning("Failed to write session slots: %s", exc)
            return False

        self._logger.debug("Session slots written for user %s.", user.id)
        return True

    def clear(self) -> None:
        """Delete the token and user slots.

        Cached company names are kept so a later sign-in by the same
        employer can still fall back to them.  Safe to call when nothing
        is stored.
        """
        try:
            with self._db.batch_write() as conn:
                conn.execute(
                    "DELETE FROM credential_slots WHERE slot_key IN (?, ?)",
                    (_TOKEN_SLOT, _USER_SLOT),
                )
            self._logger.debug("Session slots cleared.")
        except sqlite3.Error as exc:
            self._logger.error("Failed to clear session slots: %s", exc)

    def purge(self) -> None:
        """Delete every slot, cached company names included."""
        try:
            with self._db.batch_write() as conn:
                conn.execute("DELETE FROM credential_slots")
            self._logger.debug("Credential slots purged.")
        except sqlite3.Error as exc:
            self._logger.error("Failed to purge credential slots: %s", exc)

    def cache_company_name(self, name: str, user_id: str) -> bool:
        """Remember *name* as the company name of employer *user_id*."""
        if not name.strip():
            return False
        try:
            row = self._encrypt(name.strip())
            with self._db.batch_write() as conn:
                self._upsert(conn, _COMPANY_NAME_PREFIX + user_id, row)
        except (OSError, ValueError, sqlite3.Error) as exc:
            self._logger.warning(
                "Failed to cache company name for user %s: %s", user_id, exc,
            )
            return False
        return True

    def read_cached_company_name(self, user_id: str) -> Optional[str]:
        """Return the company name cached for *user_id*, if any."""
        return self._get(_COMPANY_NAME_PREFIX + user_id) or None

    def has_partial_session(self) -> bool:
        """``True`` when exactly one of the token and user slots exists."""
        try:
            rows = self._db.sqlite.execute(
                "SELECT slot_key FROM credential_slots WHERE slot_key IN (?, ?)",
                (_TOKEN_SLOT, _USER_SLOT),
            ).fetchall()
        except sqlite3.Error as exc:
            self._logger.warning("Failed to inspect credential slots: %s", exc)
            return False
        return len(rows) == 1

    # ------------------------------------------------------------------
    # Slot helpers
    # ------------------------------------------------------------------

    def _get(self, slot_key: str) -> Optional[str]:
        """Read and decrypt one slot; any failure reads as absent."""
        try:
            row = self._db.sqlite.execute(
                "SELECT encrypted_payload, nonce, tag FROM credential_slots "
                "WHERE slot_key = ?",
                (slot_key,),
            ).fetchone()
        except sqlite3.Error as exc:
            self._logger.warning("Failed to read slot '%s': %s", slot_key, exc)
            return None

        if row is None:
            return None

        try:
            key: bytes = self._derive_key()
            cipher = AES.new(key, AES.MODE_GCM, nonce=row["nonce"])
            plaintext: bytes = cipher.decrypt_and_verify(
                row["encrypted_payload"], row["tag"],
            )
        except (ValueError, KeyError, OSError) as exc:
            self._logger.warning(
                "Decryption of slot '%s' failed (corrupted data or "
                "machine identity changed): %s",
                slot_key,
                exc,
            )
            return None

        return plaintext.decode("utf-8")

    def _encrypt(self, value: str) -> tuple[bytes, bytes, bytes]:
        """Return ``(ciphertext, nonce, tag)`` for *value*."""
        key: bytes = self._derive_key()
        cipher = AES.new(key, AES.MODE_GCM)
        ciphertext, tag = cipher.encrypt_and_digest(value.encode("utf-8"))
        return ciphertext, cipher.nonce, tag

    @staticmethod
    def _upsert(
        conn: sqlite3.Connection,
        slot_key: str,
        row: tuple[bytes, bytes, bytes],
    ) -> None:
        ciphertext, nonce, tag = row
        conn.execute(
            """
            INSERT INTO credential_slots (slot_key, encrypted_payload, nonce, tag)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(slot_key) DO UPDATE SET
                encrypted_payload = excluded.encrypted_payload,
                nonce             = excluded.nonce,
                tag               = excluded.tag,
                updated_at        = CURRENT_TIMESTAMP
            """,
            (slot_key, ciphertext, nonce, tag),
        )

    # ------------------------------------------------------------------
    # Key material
    # ------------------------------------------------------------------

    def _derive_key(self) -> bytes:
        """Derive (once) the 256-bit AES key from machine identity.

        The key is deterministic for a given (hostname, OS username,
        salt) triple.  If the machine identity changes, previously
        stored slots become undecryptable and read as absent.

        Raises
        ------
        OSError
            If the salt file cannot be created or read.
        """
        if self._key is None:
            password: str = f"{socket.gethostname()}:{getpass.getuser()}"
            self._key = PBKDF2(
                password=password,
                salt=self._get_or_create_salt(),
                dkLen=self._KEY_LENGTH,
                count=self._kdf_iterations,
                hmac_hash_module=SHA256,
            )
        return self._key

    def _get_or_create_salt(self) -> bytes:
        """Return the per-installation salt, creating it on first run.

        Raises
        ------
        OSError
            If the salt file cannot be read or written.
        """
        if self._salt_path.exists():
            data: bytes = self._salt_path.read_bytes()
            if len(data) == self._SALT_LENGTH:
                return data
            self._logger.warning(
                "Salt file has unexpected length (%d); regenerating.",
                len(data),
            )

        salt: bytes = os.urandom(self._SALT_LENGTH)
        self._salt_path.parent.mkdir(parents=True, exist_ok=True)
        self._salt_path.write_bytes(salt)

        if platform.system() != "Windows":
            self._salt_path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 0o600

        self._logger.info("Credential salt created at %s.", self._salt_path)
        return salt
