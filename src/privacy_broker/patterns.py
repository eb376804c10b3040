"""Pattern library — hard-block detectors and the ordered redaction table.

Everything here is a pure function of the input text.  Order in
``REDACTION_RULES`` is significant: specific secret shapes (JWTs, vendor
keys) must run before the generic ``key: value`` rule and before PII, or
the broader patterns would consume them first.
"""

from __future__ import annotations
import re
from dataclasses import dataclass

_A = re.ASCII
_AI = re.ASCII | re.IGNORECASE

# ── Hard blockers ────────────────────────────────────────────────────

SSN_RE = re.compile(r"\b\d{3}-\d{2}-\d{4}\b", _A)

# 13–19 digits with optional space/dash separators; Luhn decides
CARD_CANDIDATE_RE = re.compile(r"\b(?:\d[ -]*?){13,19}\b", _A)

PRIVATE_KEY_RE = re.compile(r"-----BEGIN (?:RSA |EC |OPENSSH )?PRIVATE KEY-----", _AI)

_NON_DIGIT = re.compile(r"\D")


def luhn_valid(number: str) -> bool:
    """Luhn checksum over the digits of *number* (13–19 digits only)."""
    digits = _NON_DIGIT.sub("", number)
    if not 13 <= len(digits) <= 19:
        return False
    total = 0
    for i, ch in enumerate(reversed(digits)):
        n = ord(ch) - 48
        if not 0 <= n <= 9:
            return False
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


# ── Anchored scanning ────────────────────────────────────────────────

_WORD_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_")
_EMAIL_LOCAL_CHARS = frozenset(_WORD_CHARS | set(".%+-"))
_LABEL_CHARS = frozenset((_WORD_CHARS - {"_"}) | {"-"})


def _at_boundary(text: str, i: int) -> bool:
    """``\\b`` (ASCII) immediately before ``text[i]``."""
    before = i > 0 and text[i - 1] in _WORD_CHARS
    return before != (text[i] in _WORD_CHARS)


def _email_left_edge(text: str, at: int, lo: int) -> int:
    i = at
    while i > lo and text[i - 1] in _EMAIL_LOCAL_CHARS:
        i -= 1
    return i


def _hostname_left_edge(text: str, at: int, lo: int) -> int:
    """Start of the ``label.label.`` chain ending at the dot *at*."""
    edge = i = at
    while True:
        k = i
        while k > lo and text[k - 1] in _LABEL_CHARS:
            k -= 1
        if k == i:
            return edge
        edge = k
        if k > lo and text[k - 1] == ".":
            i = k - 1
        else:
            return edge


class AnchoredPattern:
    """A regex whose match is located from a fixed anchor, not by retrying.

    ``re.sub`` tries every ``\\b`` position, and for patterns that open
    with an unbounded run (``[\\w.]+@``, ``(?:label\\.)+``) each failed
    try rescans the run, which is quadratic on long dotted text.  Here
    the anchor (``@``, ``.corp``) is found first, the run in front of it
    is walked back once, and *pattern* is matched from the leftmost
    ``\\b`` start in that run.  The matches are the ones ``pattern.sub``
    would produce.
    """

    __slots__ = ("pattern", "anchor", "left_edge", "start_chars")

    def __init__(self, pattern, anchor, left_edge, start_chars):
        self.pattern = pattern
        self.anchor = anchor
        self.left_edge = left_edge
        self.start_chars = start_chars

    def finditer(self, text: str):
        pos = 0
        for a in self.anchor.finditer(text):
            at = a.start()
            if at < pos:
                continue
            lo = self.left_edge(text, at, pos)
            start = next(
                (i for i in range(lo, at) if text[i] in self.start_chars and _at_boundary(text, i)),
                None,
            )
            if start is None:
                continue
            m = self.pattern.match(text, start)
            if m is None:
                continue
            yield m
            pos = m.end()

    def sub(self, repl, text: str) -> str:
        parts: list[str] = []
        last = 0
        for m in self.finditer(text):
            parts.append(text[last:m.start()])
            parts.append(repl(m))
            last = m.end()
        parts.append(text[last:])
        return "".join(parts)


# ── Reversible redaction table ───────────────────────────────────────

EMAIL_RE = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", _AI)
HOSTNAME_RE = re.compile(r"\b(?:[a-zA-Z0-9-]+\.)+(?:local|corp|internal)\b", _AI)


@dataclass(frozen=True, slots=True)
class PatternRule:
    """One row of the redaction table.

    ``value_group`` 0 replaces the whole match; any other group number
    replaces only that group and keeps the rest of the match verbatim.
    """
    category: str
    pattern: re.Pattern[str] | AnchoredPattern
    value_group: int = 0
    code_only: bool = False
    name_rule: bool = False


REDACTION_RULES: tuple[PatternRule, ...] = (
    # Secrets / credentials
    PatternRule("api_key", re.compile(r"\bsk-[A-Za-z0-9]{20,}\b", _A)),
    PatternRule("api_key", re.compile(r"\bsk_live_[A-Za-z0-9]{10,}\b", _A)),
    PatternRule("aws_key", re.compile(r"\bAKIA[0-9A-Z]{16}\b", _A)),
    PatternRule("aws_key", re.compile(r"\bASIA[0-9A-Z]{16}\b", _A)),
    PatternRule("token", re.compile(r"\bghp_[A-Za-z0-9]{20,}\b", _A)),
    PatternRule("token", re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}\b", _A)),
    PatternRule("token", re.compile(r"\bxox[baprs]-[A-Za-z0-9-]{10,}\b", _A)),
    PatternRule("token", re.compile(r"\bBearer\s+[A-Za-z0-9._-]{25,}\b", _AI)),
    PatternRule("token", re.compile(
        r"\beyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9._-]{10,}\.[A-Za-z0-9._-]{10,}\b", _A
    )),

    # password=..., token: "...", api_key: ...; only the value is replaced
    PatternRule("secret_value", re.compile(
        r"\b(password|passwd|pwd|token|secret|apikey|api_key)\s*[:=]\s*(['\"]?)([^'\"\s]+)\2", _AI
    ), value_group=3),

    # PII
    PatternRule("email", AnchoredPattern(EMAIL_RE, re.compile("@"), _email_left_edge, _EMAIL_LOCAL_CHARS)),
    PatternRule("phone", re.compile(
        r"(?<!\w)(?:\+?1[-.\s]?)?(?:\(\d{3}\)|\d{3})[-.\s]?\d{3}[-.\s]?\d{4}\b", _A
    )),
    PatternRule("ip", re.compile(
        r"\b(?:(?:25[0-5]|2[0-4]\d|1?\d?\d)\.){3}(?:25[0-5]|2[0-4]\d|1?\d?\d)\b", _A
    )),

    # Internal identifiers
    PatternRule("ticket", re.compile(r"\bINC\d{6,}\b", _AI)),
    PatternRule("change", re.compile(r"\bCHG\d{6,}\b", _AI)),
    PatternRule("task", re.compile(r"\bTASK\d{6,}\b", _AI)),
    PatternRule("jira", re.compile(r"\bJIRA-\d+\b", _AI)),
    PatternRule("hostname", AnchoredPattern(
        HOSTNAME_RE, re.compile(r"\.(?:local|corp|internal)\b", _AI), _hostname_left_edge, _LABEL_CHARS
    )),

    # "my name is Ada", "I'm Ada Lovelace", "name: Ada"
    PatternRule("name", re.compile(
        r"\b(?i:my name is|i am|i'm|name)\s*[:\-]?\s+([A-Z][a-z]{1,30})(\s+[A-Z][a-z]{1,30})?\b", _A
    ), name_rule=True),

    # Code mode: every string literal; ``` fence runs are not literals
    PatternRule("string", re.compile(r"(?<!`)`(?!`)(?:[^`\\]|\\.)*`(?!`)"), code_only=True),
    PatternRule("string", re.compile(r'"(?:[^"\\]|\\.)*"'), code_only=True),
    PatternRule("string", re.compile(r"'(?:[^'\\]|\\.)*'"), code_only=True),
)

# Placeholder shape emitted by the redactor: "[EMAIL_1]", "[SECRET_VALUE_12]"
PLACEHOLDER_RE = re.compile(r"\[[A-Z][A-Z_]*_\d+\]")
