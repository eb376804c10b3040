"""privacy-broker — block, redact, restore and audit text sent to LLM providers."""

from .blocker import detect_hard_blockers
from .broker import PreparedRequest, PrivacyBroker
from .config import create_broker, load_config, load_from_yaml
from .errors import (
    AuditIntegrityError,
    BlockedContentError,
    KeyMaterialCorruptError,
    MalformedInputError,
    PrivacyBrokerError,
)
from .extractor import extract
from .ledger import Ledger
from .redactor import Redactor, RedactorConfig, sanitize
from .streaming import StreamingRehydrator
from .types import (
    AuditRequestRecord,
    AuditResponseRecord,
    BlockDecision,
    BrokerResult,
    CodeContextResult,
    EncryptedBlob,
    Redaction,
)
from .vault import Vault, merge_maps, restore

__all__ = [
    "detect_hard_blockers",
    "Redactor", "RedactorConfig", "sanitize",
    "Vault", "restore", "merge_maps",
    "StreamingRehydrator",
    "extract",
    "Ledger",
    "PrivacyBroker", "PreparedRequest",
    "create_broker", "load_config", "load_from_yaml",
    "BrokerResult", "Redaction", "BlockDecision", "EncryptedBlob",
    "AuditRequestRecord", "AuditResponseRecord", "CodeContextResult",
    "PrivacyBrokerError", "BlockedContentError", "MalformedInputError",
    "KeyMaterialCorruptError", "AuditIntegrityError",
]
__version__ = "0.1.0"
