"""Audit key lifecycle and AES-256-GCM envelope encryption.

The key is 32 random bytes, stored base64-encoded in a single file with
owner-only permissions.  It is created once per data directory and never
rotated here.  Creation is an atomic create-if-absent (write a temp file,
then hard-link it into place) so two processes racing on an empty
directory end up sharing whichever key landed first.
"""

from __future__ import annotations
import base64
import binascii
import logging
import os
import tempfile
import threading
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import AuditIntegrityError, KeyMaterialCorruptError
from .types import EncryptedBlob

logger = logging.getLogger(__name__)

KEY_FILENAME = ".privacy-audit-key"
KEY_BYTES = 32
NONCE_BYTES = 12
TAG_BYTES = 16
ENVELOPE_VERSION = 1
ENVELOPE_ALG = "aes-256-gcm"

_create_lock = threading.Lock()


def load_key(path: str | Path) -> bytes:
    """Read and validate an existing key file."""
    raw = Path(path).read_text(encoding="utf-8").strip()
    try:
        key = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyMaterialCorruptError(f"audit key at {path} is not valid base64") from e
    if len(key) != KEY_BYTES:
        raise KeyMaterialCorruptError(
            f"audit key at {path} is {len(key)} bytes, expected {KEY_BYTES}"
        )
    return key


def load_or_create_key(path: str | Path) -> bytes:
    """Return the key at *path*, generating it first if absent."""
    path = Path(path).expanduser()
    with _create_lock:
        if path.exists():
            return load_key(path)

        path.parent.mkdir(parents=True, exist_ok=True)
        key = AESGCM.generate_key(bit_length=KEY_BYTES * 8)

        fd, tmp = tempfile.mkstemp(prefix=".audit-key-", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(base64.b64encode(key).decode("ascii"))
            os.chmod(tmp, 0o600)
            try:
                os.link(tmp, path)
            except FileExistsError:
                # another process won the race; use its key
                return load_key(path)
        finally:
            os.unlink(tmp)

        logger.info("created audit key at %s", path)
        return key


def encrypt_text(key: bytes, plain: str) -> EncryptedBlob:
    """Encrypt *plain* under *key* with a fresh 96-bit nonce."""
    nonce = os.urandom(NONCE_BYTES)
    sealed = AESGCM(key).encrypt(nonce, plain.encode("utf-8"), None)
    ct, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
    return EncryptedBlob(
        v=ENVELOPE_VERSION,
        alg=ENVELOPE_ALG,
        iv=base64.b64encode(nonce).decode("ascii"),
        tag=base64.b64encode(tag).decode("ascii"),
        ct=base64.b64encode(ct).decode("ascii"),
    )


def decrypt_blob(key: bytes, blob: EncryptedBlob) -> str:
    """Operator-side inverse of :func:`encrypt_text`."""
    if blob.v != ENVELOPE_VERSION or blob.alg != ENVELOPE_ALG:
        raise AuditIntegrityError(f"unsupported envelope v={blob.v} alg={blob.alg}")
    try:
        nonce = base64.b64decode(blob.iv, validate=True)
        sealed = base64.b64decode(blob.ct, validate=True) + base64.b64decode(blob.tag, validate=True)
        return AESGCM(key).decrypt(nonce, sealed, None).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise AuditIntegrityError("malformed envelope") from e
    except InvalidTag as e:
        raise AuditIntegrityError("envelope failed authentication") from e
