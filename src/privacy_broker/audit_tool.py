"""Operator-only read path for the audit ledger.

The broker itself never decrypts what it writes.  These helpers are for
a trusted operator holding the same key file, e.g. via
``privacy-broker audit-decrypt <request-id>``.
"""

from __future__ import annotations
import json
from typing import Any

from .envelope import decrypt_blob
from .ledger import Ledger
from .types import EncryptedBlob


def _open(ledger: Ledger, blob: EncryptedBlob | None) -> str | None:
    return decrypt_blob(ledger.key, blob) if blob is not None else None


def decrypt_request(ledger: Ledger, request_id: str) -> dict[str, Any] | None:
    """Return the request row with its encrypted fields opened."""
    record = ledger.fetch_request(request_id)
    if record is None:
        return None
    token_map = _open(ledger, record.map_enc)
    return {
        "id": record.id,
        "ts": record.ts,
        "chat_id": record.chat_id,
        "project_id": record.project_id,
        "mode": record.mode,
        "provider": record.provider,
        "model": record.model,
        "blocked": record.blocked,
        "block_reason": record.block_reason,
        "redactions": json.loads(record.redactions_json),
        "original": _open(ledger, record.original_enc),
        "sanitized": _open(ledger, record.sanitized_enc),
        "map": json.loads(token_map) if token_map else {},
    }


def decrypt_responses(ledger: Ledger, request_id: str) -> list[dict[str, Any]]:
    return [
        {"id": r.id, "ts": r.ts, "response": decrypt_blob(ledger.key, r.response_enc)}
        for r in ledger.fetch_responses(request_id)
    ]
