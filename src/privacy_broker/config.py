"""YAML/dict config loader for privacy-broker.

Supports loading from a YAML file or a plain dict (for embedding in a
larger application config).

Example YAML:

    privacy_broker:
      mask_names: true
      trim_long_code: true
      extract_code_context: true
      use_presidio: false
      language: en
      score_threshold: 0.35
      skip_categories:
        - ip
      allow_list:
        - support@example.com
      audit:
        enabled: true
        data_dir: ~/.privacy-broker
"""

from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from .broker import PrivacyBroker
from .ledger import Ledger
from .redactor import Redactor, RedactorConfig
from .types import CATEGORIES

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = os.environ.get(
    "PRIVACY_BROKER_DATA_DIR",
    str(Path.home() / ".privacy-broker"),
)


def load_config(data: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    data = data or {}
    # Support nested under "privacy_broker" key or flat
    if "privacy_broker" in data:
        data = data["privacy_broker"] or {}

    audit = data.get("audit") or {}
    skip = set(data.get("skip_categories") or [])
    unknown = skip - set(CATEGORIES)
    if unknown:
        raise ValueError(f"unknown redaction categories: {sorted(unknown)}")

    return {
        "mask_names": bool(data.get("mask_names", True)),
        "trim_long_code": bool(data.get("trim_long_code", True)),
        "extract_code_context": bool(data.get("extract_code_context", True)),
        "use_presidio": bool(data.get("use_presidio", False)),
        "language": data.get("language", "en"),
        "score_threshold": float(data.get("score_threshold", 0.35)),
        "entities": data.get("entities"),
        "skip_categories": skip,
        "allow_list": set(data.get("allow_list") or []),
        "audit_enabled": bool(audit.get("enabled", True)),
        "data_dir": str(audit.get("data_dir") or DEFAULT_DATA_DIR),
    }


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    with open(Path(path).expanduser(), encoding="utf-8") as f:
        return load_config(yaml.safe_load(f))


def create_redactor(cfg: dict[str, Any]) -> Redactor:
    return Redactor(RedactorConfig(
        mask_names=cfg["mask_names"],
        trim_long_code=cfg["trim_long_code"],
        use_presidio=cfg["use_presidio"],
        language=cfg["language"],
        score_threshold=cfg["score_threshold"],
        presidio_entities=cfg.get("entities"),
        skip_categories=cfg["skip_categories"],
        allow_list=cfg["allow_list"],
    ))


def create_broker(config: dict[str, Any] | None = None) -> PrivacyBroker:
    """Create a fully configured broker from a raw or normalized config dict."""
    cfg = config if config is not None and "audit_enabled" in config else load_config(config)

    ledger = None
    if cfg["audit_enabled"]:
        ledger = Ledger(cfg["data_dir"])
    else:
        logger.warning("audit ledger disabled; requests will not be recorded")

    return PrivacyBroker(
        create_redactor(cfg),
        ledger,
        extract_code_context=cfg["extract_code_context"],
    )
