"""Redactor — the reversible sanitizer at the heart of the broker.

Usage:
    from privacy_broker import Redactor, restore

    redactor = Redactor()                 # reusable, stateless between calls

    result = redactor.sanitize("Email me at john@acme.com")
    print(result.sanitized)               # "Email me at [EMAIL_1]"

    response = "Sure, I'll write to [EMAIL_1]."
    print(restore(response, result.token_map))
    # "Sure, I'll write to john@acme.com."

Hard-blocked content (SSN, card numbers, private keys) short-circuits to
a blocked result before any rule touches the text.
"""

from __future__ import annotations
import logging
import re
from collections import Counter
from dataclasses import dataclass, field

from .blocker import detect_hard_blockers
from .errors import MalformedInputError
from .patterns import PLACEHOLDER_RE, REDACTION_RULES, PatternRule
from .types import BrokerResult, Redaction, TokenMap
from .vault import Vault, restore

logger = logging.getLogger(__name__)

MODES = ("normal", "code")

TRIM_THRESHOLD_LINES = 260
TRIM_KEEP_LINES = 120
TRIM_MARKER = "\n/* ... trimmed for privacy ... */\n"

BLOCKED_PLACEHOLDER = "[BLOCKED_CONTENT]"


@dataclass
class RedactorConfig:
    """Configuration for the Redactor."""
    mask_names: bool = True           # "my name is ..." style mentions
    trim_long_code: bool = True       # default for code-mode trimming
    use_presidio: bool = False        # NER pass for other person names
    language: str = "en"
    score_threshold: float = 0.35     # minimum confidence for Presidio
    presidio_entities: list[str] | None = None  # None = PERSON only
    # Categories to leave untouched (e.g. {"ip"} on a network-debug desk)
    skip_categories: set[str] = field(default_factory=set)
    # Allow-list: values that should NEVER be redacted
    allow_list: set[str] = field(default_factory=set)


class _Allocator:
    """Per-call token counters, redaction list and token map."""

    __slots__ = ("redactions", "token_map", "_counts")

    def __init__(self) -> None:
        self.redactions: list[Redaction] = []
        self.token_map: TokenMap = {}
        self._counts: dict[str, int] = {}

    def add(self, category: str, original: str) -> str:
        n = self._counts.get(category, 0) + 1
        self._counts[category] = n

        label = f"{category.upper()}_{n}"
        token = f"[{label}]"

        # a span may already hold earlier placeholders; store the real text
        original = restore(original, self.token_map)
        self.token_map[token] = original
        self.redactions.append(Redaction(label=label, category=category, original=original))
        return token

    def is_token(self, value: str) -> bool:
        return value in self.token_map


class Redactor:
    """Ordered, table-driven reversible redactor."""

    def __init__(self, config: RedactorConfig | None = None) -> None:
        self.config = config or RedactorConfig()

    def sanitize(
        self,
        text: str,
        *,
        mode: str = "normal",
        trim_long_code: bool | None = None,
    ) -> BrokerResult:
        """Block or reversibly redact *text*.

        Returns a BrokerResult; on success ``token_map`` restores the
        sanitized text to the input (minus any trimmed code).
        """
        if mode not in MODES:
            raise ValueError(f"unknown mode {mode!r}")
        original = (text or "").replace("\x00", "")

        decision = detect_hard_blockers(original)
        if decision.blocked:
            logger.info("sanitize blocked: %s", decision.reason)
            return BrokerResult.block(decision.reason)

        code_mode = mode == "code"
        if trim_long_code is None:
            trim_long_code = self.config.trim_long_code

        out = original
        if code_mode and trim_long_code:
            out = _trim_long_code(out)

        alloc = _Allocator()
        for rule in REDACTION_RULES:
            if rule.category in self.config.skip_categories:
                continue
            if rule.code_only and not code_mode:
                continue
            if rule.name_rule:
                if not self.config.mask_names:
                    continue
                out = self._apply(rule, out, alloc)
                if self.config.use_presidio and "name" not in self.config.skip_categories:
                    out = self._apply_presidio(out, alloc)
                continue
            out = self._apply(rule, out, alloc)

        if logger.isEnabledFor(logging.DEBUG):
            counts = Counter(r.category for r in alloc.redactions)
            logger.debug("sanitize mode=%s redactions=%s", mode, dict(counts))

        return BrokerResult(
            ok=True,
            blocked=False,
            sanitized=out,
            redactions=alloc.redactions,
            token_map=alloc.token_map,
        )

    def sanitize_messages(
        self,
        messages: list[dict],
        *,
        mode: str = "normal",
        content_key: str = "content",
    ) -> tuple[list[dict], Vault]:
        """Sanitize a list of ``{"role", "content"}`` turns.

        Returns new message dicts (originals are not mutated) and a Vault
        holding every turn's map.  Blocked turns are replaced by
        ``[BLOCKED_CONTENT]``.
        """
        vault = Vault()
        out: list[dict] = []
        for msg in messages:
            if not isinstance(msg, dict):
                raise MalformedInputError(f"message must be an object, got {type(msg).__name__}")
            content = msg.get(content_key)
            if not isinstance(content, str) or not content:
                out.append(msg)
                continue
            result = self.sanitize(content, mode=mode)
            if result.blocked:
                out.append({**msg, content_key: BLOCKED_PLACEHOLDER})
                continue
            vault.merge(result.token_map)
            out.append({**msg, content_key: result.sanitized})
        return out, vault

    # ------------------------------------------------------------------

    def _apply(self, rule: PatternRule, text: str, alloc: _Allocator) -> str:
        group = rule.value_group
        allow = self.config.allow_list

        def _sub(m: re.Match[str]) -> str:
            value = m.group(group)
            if alloc.is_token(value):
                return m.group(0)
            if allow and restore(value, alloc.token_map) in allow:
                return m.group(0)
            token = alloc.add(rule.category, value)
            if not group:
                return token
            whole = m.group(0)
            start, end = m.start(group) - m.start(), m.end(group) - m.start()
            return whole[:start] + token + whole[end:]

        return rule.pattern.sub(_sub, text)

    def _apply_presidio(self, text: str, alloc: _Allocator) -> str:
        from .presidio_layer import scan_names

        spans = scan_names(
            text,
            language=self.config.language,
            entities=self.config.presidio_entities,
            score_threshold=self.config.score_threshold,
            exclude_spans=[m.span() for m in PLACEHOLDER_RE.finditer(text)],
        )
        parts: list[str] = []
        last = 0
        for start, end in spans:
            value = text[start:end]
            if value in self.config.allow_list:
                continue
            parts.append(text[last:start])
            parts.append(alloc.add("name", value))
            last = end
        parts.append(text[last:])
        return "".join(parts)


def _trim_long_code(text: str) -> str:
    """Keep the head and tail of a huge paste; the middle is dropped for good."""
    lines = text.split("\n")
    if len(lines) <= TRIM_THRESHOLD_LINES:
        return text
    logger.debug("trimming code paste of %d lines", len(lines))
    return "\n".join([*lines[:TRIM_KEEP_LINES], TRIM_MARKER, *lines[-TRIM_KEEP_LINES:]])


def sanitize(text: str, *, mode: str = "normal", trim_long_code: bool | None = None) -> BrokerResult:
    """Sanitize with the default configuration."""
    return Redactor().sanitize(text, mode=mode, trim_long_code=trim_long_code)
