"""Password-based authenticated encryption for backups.

Envelope format (JSON, version 1)::

    {"version": 1, "salt": <b64 16 bytes>, "iv": <b64 12 bytes>,
     "data": <b64 AES-256-GCM ciphertext+tag>, "checksum": <16 chars>}

- Key: PBKDF2-HMAC-SHA256, 100 000 iterations, 32 bytes, fresh random salt
  per call.
- Cipher: AES-GCM with a fresh random 12-byte IV per call, so encrypting the
  same plaintext twice yields different salt, IV and ciphertext.
- Checksum: first 16 characters of base64(SHA-256(plaintext)), verified after
  decryption as an extra integrity check.

Decryption reports exactly three failure kinds: unsupported version (checked
before any key derivation), a generic "incorrect password or corrupted data",
and an integrity failure when the plaintext checksum does not match.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import ValidationError

from .errors import (
    BackupFormatError,
    DecryptionError,
    IntegrityCheckError,
    UnsupportedBackupVersionError,
)
from .logging_setup import get_logger
from .models import EncryptedEnvelope

logger = get_logger(__name__)

ENVELOPE_VERSION = 1
PBKDF2_ITERATIONS = 100_000
KEY_LENGTH = 32
SALT_LENGTH = 16
IV_LENGTH = 12
CHECKSUM_LENGTH = 16

_ENVELOPE_STR_FIELDS = ("salt", "iv", "data", "checksum")


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


def _derive_key(password: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def plaintext_checksum(plaintext: str) -> str:
    digest = hashlib.sha256(plaintext.encode("utf-8")).digest()
    return _b64encode(digest)[:CHECKSUM_LENGTH]


def encrypt_data(plaintext: str, password: str) -> EncryptedEnvelope:
    """Encrypt ``plaintext`` under ``password`` into a version-1 envelope."""

    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    key = _derive_key(password, salt)
    ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    return EncryptedEnvelope(
        version=ENVELOPE_VERSION,
        salt=_b64encode(salt),
        iv=_b64encode(iv),
        data=_b64encode(ciphertext),
        checksum=plaintext_checksum(plaintext),
    )


def is_valid_encrypted_backup(obj: Any) -> bool:
    """Structural check: a mapping with int ``version`` and four str fields."""

    if isinstance(obj, EncryptedEnvelope):
        return True
    if not isinstance(obj, Mapping):
        return False
    version = obj.get("version")
    # JSON numbers may decode as float; bool is not a number here
    if isinstance(version, bool) or not isinstance(version, int | float):
        return False
    return all(isinstance(obj.get(f), str) for f in _ENVELOPE_STR_FIELDS)


def _as_envelope(envelope: EncryptedEnvelope | Mapping[str, Any]) -> EncryptedEnvelope:
    if isinstance(envelope, EncryptedEnvelope):
        return envelope
    if not is_valid_encrypted_backup(envelope):
        raise BackupFormatError()
    data = dict(envelope)
    version = data["version"]
    if isinstance(version, float):
        if not version.is_integer():
            raise UnsupportedBackupVersionError(version)
        data["version"] = int(version)
    try:
        return EncryptedEnvelope.model_validate(data)
    except ValidationError as e:
        raise BackupFormatError() from e


def decrypt_data(envelope: EncryptedEnvelope | Mapping[str, Any], password: str) -> str:
    """Decrypt ``envelope`` with ``password`` and return the plaintext.

    Raises
    ------
    UnsupportedBackupVersionError
        ``version`` is not 1; raised before any key derivation.
    DecryptionError
        Wrong password, tampered ciphertext/IV or malformed base64.
    IntegrityCheckError
        Decryption succeeded but the plaintext checksum differs.
    """

    env = _as_envelope(envelope)
    if env.version != ENVELOPE_VERSION:
        raise UnsupportedBackupVersionError(env.version)

    try:
        salt = _b64decode(env.salt)
        iv = _b64decode(env.iv)
        ciphertext = _b64decode(env.data)
        key = _derive_key(password, salt)
        plaintext = AESGCM(key).decrypt(iv, ciphertext, None).decode("utf-8")
    except (InvalidTag, binascii.Error, UnicodeError, ValueError) as e:
        logger.info("vault:decrypt_failed kind=%s", type(e).__name__)
        raise DecryptionError() from e

    if plaintext_checksum(plaintext) != env.checksum:
        raise IntegrityCheckError()
    return plaintext


# ---------------------------------------------------------------------------
# Backup password policy
# ---------------------------------------------------------------------------

MIN_PASSWORD_LENGTH = 8


@dataclass(frozen=True, slots=True)
class PasswordCheck:
    """Outcome of :func:`validate_backup_password`; ``failures`` lists unmet rules."""

    failures: tuple[str, ...]

    @property
    def ok(self) -> bool:
        return not self.failures


def validate_backup_password(password: str) -> PasswordCheck:
    """Check ``password`` against the backup policy.

    Requires at least 8 characters with one uppercase letter, one lowercase
    letter and one digit.
    """

    failures: list[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        failures.append(f"at least {MIN_PASSWORD_LENGTH} characters")
    if not any(c.isupper() for c in password):
        failures.append("one uppercase letter")
    if not any(c.islower() for c in password):
        failures.append("one lowercase letter")
    if not any(c.isdigit() for c in password):
        failures.append("one number")
    return PasswordCheck(tuple(failures))


__all__ = [
    "ENVELOPE_VERSION",
    "PBKDF2_ITERATIONS",
    "plaintext_checksum",
    "encrypt_data",
    "decrypt_data",
    "is_valid_encrypted_backup",
    "PasswordCheck",
    "validate_backup_password",
]
