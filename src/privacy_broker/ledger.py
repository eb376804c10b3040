"""Encrypted audit ledger backed by SQLite — append-only.

Every request and response is written once and never updated or deleted
here.  Sensitive text (original, sanitized, token map, response) is
encrypted field by field; the block decision and the category/label list
stay in the clear so operators can ask "how often does X trigger"
without the key.

Usage:
    ledger = Ledger("~/.privacy-broker")
    req = ledger.record_request(chat_id="c1", result=result, original=text, ...)
    ledger.record_response(req.id, restored_text)
"""

from __future__ import annotations
import json
import logging
import sqlite3
import threading
import time
import uuid
from collections import Counter
from pathlib import Path

from .envelope import KEY_FILENAME, encrypt_text, load_or_create_key
from .types import AuditRequestRecord, AuditResponseRecord, BrokerResult, EncryptedBlob

logger = logging.getLogger(__name__)

DB_FILENAME = "privacy-audit.sqlite"

# Columns may be added, never removed or renamed.
_SCHEMA = """
CREATE TABLE IF NOT EXISTS audit_requests (
    id TEXT PRIMARY KEY,
    ts INTEGER NOT NULL,
    chat_id TEXT,
    project_id TEXT,
    mode TEXT,
    provider TEXT,
    model TEXT,
    blocked INTEGER NOT NULL DEFAULT 0,
    block_reason TEXT,
    redactions_json TEXT,
    original_enc TEXT,
    sanitized_enc TEXT,
    map_enc TEXT
);
CREATE TABLE IF NOT EXISTS audit_responses (
    id TEXT PRIMARY KEY,
    request_id TEXT NOT NULL,
    ts INTEGER NOT NULL,
    response_enc TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_audit_requests_ts ON audit_requests(ts);
CREATE INDEX IF NOT EXISTS idx_audit_responses_req ON audit_responses(request_id);
"""


def _now_ms() -> int:
    return int(time.time() * 1000)


class Ledger:
    """Owns the audit key and the SQLite handle for one data directory."""

    __slots__ = ("_data_dir", "_db", "_key", "_lock")

    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir).expanduser()
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(self._data_dir / DB_FILENAME), check_same_thread=False)
        self._db.execute("PRAGMA journal_mode = WAL")
        self._db.execute("PRAGMA synchronous = NORMAL")
        self._db.executescript(_SCHEMA)
        self._key: bytes | None = None
        self._lock = threading.Lock()

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def key_path(self) -> Path:
        return self._data_dir / KEY_FILENAME

    @property
    def key(self) -> bytes:
        """The audit key, created on first use."""
        if self._key is None:
            self._key = load_or_create_key(self.key_path)
        return self._key

    def _encrypt(self, plain: str | None) -> EncryptedBlob | None:
        return encrypt_text(self.key, plain) if plain else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_request(
        self,
        *,
        chat_id: str,
        result: BrokerResult,
        original: str,
        project_id: str = "",
        mode: str = "normal",
        provider: str = "",
        model: str = "",
        request_id: str | None = None,
        ts: int | None = None,
    ) -> AuditRequestRecord:
        """Append one request row.  Raises KeyMaterialCorruptError before
        writing anything if the key file is unusable."""
        record = AuditRequestRecord(
            id=request_id or str(uuid.uuid4()),
            ts=ts if ts is not None else _now_ms(),
            chat_id=chat_id,
            project_id=project_id,
            mode=mode,
            provider=provider,
            model=model,
            blocked=result.blocked,
            block_reason=result.reason,
            redactions_json=json.dumps([r.to_public() for r in result.redactions]),
            original_enc=self._encrypt(original),
            sanitized_enc=self._encrypt(result.sanitized),
            map_enc=self._encrypt(json.dumps(result.token_map, sort_keys=True)) if result.token_map else None,
        )
        with self._lock:
            self._db.execute(
                "INSERT INTO audit_requests"
                " (id, ts, chat_id, project_id, mode, provider, model, blocked, block_reason,"
                "  redactions_json, original_enc, sanitized_enc, map_enc)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id, record.ts, record.chat_id, record.project_id, record.mode,
                    record.provider, record.model, int(record.blocked), record.block_reason or None,
                    record.redactions_json, _blob_json(record.original_enc),
                    _blob_json(record.sanitized_enc), _blob_json(record.map_enc),
                ),
            )
            self._db.commit()
        logger.info(
            "audit request %s chat=%s mode=%s blocked=%s redactions=%d",
            record.id, chat_id, mode, record.blocked, len(result.redactions),
        )
        return record

    def record_response(
        self,
        request_id: str,
        response: str,
        *,
        response_id: str | None = None,
        ts: int | None = None,
    ) -> AuditResponseRecord:
        """Append one response row linked to *request_id*.

        The request row need not exist; orphaned responses are allowed.
        """
        record = AuditResponseRecord(
            id=response_id or str(uuid.uuid4()),
            request_id=request_id,
            ts=ts if ts is not None else _now_ms(),
            response_enc=encrypt_text(self.key, response),
        )
        with self._lock:
            self._db.execute(
                "INSERT INTO audit_responses (id, request_id, ts, response_enc) VALUES (?, ?, ?, ?)",
                (record.id, record.request_id, record.ts, record.response_enc.to_json()),
            )
            self._db.commit()
        logger.info("audit response %s for request %s", record.id, request_id)
        return record

    # ------------------------------------------------------------------
    # Clear-column reads (operators)
    # ------------------------------------------------------------------

    def fetch_request(self, request_id: str) -> AuditRequestRecord | None:
        with self._lock:
            row = self._db.execute(
                "SELECT id, ts, chat_id, project_id, mode, provider, model, blocked, block_reason,"
            " redactions_json, original_enc, sanitized_enc, map_enc"
            " FROM audit_requests WHERE id = ?",
            (request_id,),
            ).fetchone()
        if row is None:
            return None
        return AuditRequestRecord(
            id=row[0], ts=row[1], chat_id=row[2] or "", project_id=row[3] or "",
            mode=row[4] or "", provider=row[5] or "", model=row[6] or "",
            blocked=bool(row[7]), block_reason=row[8] or "", redactions_json=row[9] or "[]",
            original_enc=_blob_or_none(row[10]),
            sanitized_enc=_blob_or_none(row[11]),
            map_enc=_blob_or_none(row[12]),
        )

    def fetch_responses(self, request_id: str) -> list[AuditResponseRecord]:
        with self._lock:
            rows = self._db.execute(
                "SELECT id, request_id, ts, response_enc FROM audit_responses"
                " WHERE request_id = ? ORDER BY ts",
                (request_id,),
            ).fetchall()
        return [
            AuditResponseRecord(id=r[0], request_id=r[1], ts=r[2], response_enc=EncryptedBlob.from_json(r[3]))
            for r in rows
        ]

    def category_counts(self, chat_id: str | None = None) -> dict[str, int]:
        """How often each redaction category fired."""
        sql = "SELECT redactions_json FROM audit_requests"
        params: tuple = ()
        if chat_id is not None:
            sql += " WHERE chat_id = ?"
            params = (chat_id,)
        counts: Counter[str] = Counter()
        with self._lock:
            rows = self._db.execute(sql, params).fetchall()
        for (raw,) in rows:
            for item in json.loads(raw or "[]"):
                counts[item["category"]] += 1
        return dict(counts)

    def block_count(self) -> int:
        with self._lock:
            (n,) = self._db.execute("SELECT COUNT(*) FROM audit_requests WHERE blocked = 1").fetchone()
        return n

    def close(self) -> None:
        with self._lock:
            self._db.close()

    def __enter__(self) -> "Ledger":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def _blob_json(blob: EncryptedBlob | None) -> str | None:
    return blob.to_json() if blob is not None else None


def _blob_or_none(raw: str | None) -> EncryptedBlob | None:
    return EncryptedBlob.from_json(raw) if raw else None
