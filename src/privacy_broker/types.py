"""Core types."""

from __future__ import annotations
import json
from dataclasses import dataclass, field

# placeholder "[EMAIL_1]" → original substring
TokenMap = dict[str, str]

CATEGORIES = (
    "api_key", "aws_key", "token", "secret_value",
    "email", "phone", "ip",
    "ticket", "change", "task", "jira", "hostname",
    "name", "string",
)


@dataclass(frozen=True, slots=True)
class Redaction:
    """A single detected-and-replaced span."""
    label: str                 # e.g. "EMAIL_1"
    category: str              # one of CATEGORIES
    original: str | None = None

    @property
    def token(self) -> str:
        return f"[{self.label}]"

    def to_public(self) -> dict[str, str]:
        """Category/label pair without the original value."""
        return {"label": self.label, "category": self.category}


@dataclass(frozen=True, slots=True)
class BlockDecision:
    blocked: bool
    reason: str = ""


@dataclass(slots=True)
class BrokerResult:
    """Result of sanitizing one message.

    Exactly one of ``ok`` / ``blocked`` is true.
    """
    ok: bool
    blocked: bool
    reason: str = ""
    sanitized: str = ""
    redactions: list[Redaction] = field(default_factory=list)
    token_map: TokenMap = field(default_factory=dict)

    @classmethod
    def block(cls, reason: str) -> "BrokerResult":
        return cls(ok=False, blocked=True, reason=reason)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "blocked": self.blocked,
            "reason": self.reason,
            "sanitized": self.sanitized,
            "redactions": [r.to_public() for r in self.redactions],
            "map": dict(self.token_map),
        }


@dataclass(frozen=True, slots=True)
class EncryptedBlob:
    """Self-describing AES-GCM envelope, all binary fields base64."""
    iv: str
    tag: str
    ct: str
    v: int = 1
    alg: str = "aes-256-gcm"

    def to_json(self) -> str:
        return json.dumps(
            {"v": self.v, "alg": self.alg, "iv": self.iv, "tag": self.tag, "ct": self.ct},
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, raw: str) -> "EncryptedBlob":
        data = json.loads(raw)
        return cls(iv=data["iv"], tag=data["tag"], ct=data["ct"], v=data["v"], alg=data["alg"])


@dataclass(frozen=True, slots=True)
class AuditRequestRecord:
    id: str
    ts: int                            # epoch milliseconds
    chat_id: str
    project_id: str
    mode: str
    provider: str
    model: str
    blocked: bool
    block_reason: str
    redactions_json: str               # [{"label", "category"}], no originals
    original_enc: EncryptedBlob | None
    sanitized_enc: EncryptedBlob | None
    map_enc: EncryptedBlob | None


@dataclass(frozen=True, slots=True)
class AuditResponseRecord:
    id: str
    request_id: str
    ts: int
    response_enc: EncryptedBlob


@dataclass(frozen=True, slots=True)
class CodeBlock:
    lang: str
    code: str


@dataclass(frozen=True, slots=True)
class StackHit:
    """One call site parsed out of a stack trace."""
    kind: str                  # "bracketed" | "bare" | "python" | "jvm"
    raw: str
    file: str | None = None
    line: int | None = None
    col: int | None = None


@dataclass(frozen=True, slots=True)
class CodeContextResult:
    used: bool
    reason: str
    extracted_prompt: str      # what goes on to the redactor
    target_line: int | None = None
