"""Minimal-context extraction for "why does this crash" messages.

A debugging message usually carries a stack trace plus a pasted file.
Only a handful of lines around the fault are needed to diagnose it, so
instead of sending the whole paste we pick the most relevant code block,
locate the probable fault line, and emit an abstracted ±5 line window:

    >>> 42 | const v = parse("[STR]");

Comments are dropped, string literals become ``[STR]`` and multi-digit
numbers become ``0``.  The result is a new prompt that then goes through
the redactor like any other text.
"""

from __future__ import annotations
import re

from .types import CodeBlock, CodeContextResult, StackHit

RADIUS = 5
HEADER_STACK_LINES = 12
HEADER_TEXT_LINES = 10

NOT_USED_REASON = "No clear code+error pattern found"
USED_REASON = "Extracted minimal context around likely error line"

PREFERRED_LANGS = frozenset({
    "ts", "tsx", "js", "jsx", "py", "java",
    "typescript", "javascript", "python",
})

INSTRUCTION = (
    "Give the most likely cause and fix.\n"
    "If you need more, ask ONLY targeted questions about the immediate "
    "surrounding lines (do not request full source)."
)

_FENCE_RE = re.compile(r"```(\w+)?\n([\s\S]*?)```")
_ERROR_VOCAB_RE = re.compile(
    r"\b(error|exception|traceback|stack trace|TypeError|ReferenceError|"
    r"SyntaxError|NullPointerException)\b",
    re.IGNORECASE,
)

_STACK_LINE_RE = re.compile(
    r"(at\s+.+\(.+:\d+:\d+\))|(at\s+.+:\d+:\d+)|(File\s+\".+\",\s+line\s+\d+)|(\s+at\s+.+\(.+:\d+\))"
)
# at fn (/path/file.ts:12:34)
_BRACKETED_RE = re.compile(r"at\s+.+\((.+):(\d+):(\d+)\)")
# at /path/file.ts:12:34
_BARE_RE = re.compile(r"at\s+(.+):(\d+):(\d+)")
# File "x.py", line 123
_PYTHON_RE = re.compile(r"File\s+\"([^\"]+)\",\s+line\s+(\d+)")
# at pkg.Class.method(File.java:123)
_JVM_RE = re.compile(r"\s+at\s+.+\(([^:]+):(\d+)\)")

_LINE_HINT_RE = re.compile(r"\b(?:line|ln)\s+(\d{1,6})\b", re.IGNORECASE)
_INLINE_MARKER_RE = re.compile(r"(>>>\s*)|(\bERROR\s+HERE\b)", re.IGNORECASE)
_CARET_RE = re.compile(r"\^\^\^+")
# "N | text" / "N: text", also after a ">>>" fault marker
_NUMBERED_RE = re.compile(r"^\s*(?:>>>\s*)?(\d{1,6})\s*(?:\||:)\s?(.*)$")

_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/")
_LINE_COMMENT_RE = re.compile(r"//.*$")
_HASH_COMMENT_RE = re.compile(r"#.*$")
_BACKTICK_STR_RE = re.compile(r"`(?:[^`\\]|\\.)*`")
_DOUBLE_STR_RE = re.compile(r'"(?:[^"\\]|\\.)*"')
_SINGLE_STR_RE = re.compile(r"'(?:[^'\\]|\\.)*'")
_LONG_NUMBER_RE = re.compile(r"\b\d{2,}\b")
_WHITESPACE_RE = re.compile(r"\s+")


# ── Parsing ──────────────────────────────────────────────────────────

def looks_like_error(text: str) -> bool:
    return _ERROR_VOCAB_RE.search(text) is not None


def extract_code_blocks(text: str) -> list[CodeBlock]:
    return [
        CodeBlock(lang=(m.group(1) or "").lower(), code=m.group(2) or "")
        for m in _FENCE_RE.finditer(text)
    ]


def detect_stack_text(text: str) -> str:
    """Keep only the lines that look like stack frames."""
    keep = [line for line in text.split("\n") if _STACK_LINE_RE.search(line)]
    return "\n".join(keep).strip()


def parse_stack_hits(stack_text: str) -> list[StackHit]:
    """Structured call sites, grouped by convention in priority order."""
    hits: list[StackHit] = []
    for m in _BRACKETED_RE.finditer(stack_text):
        hits.append(StackHit("bracketed", m.group(0), m.group(1), int(m.group(2)), int(m.group(3))))
    for m in _BARE_RE.finditer(stack_text):
        hits.append(StackHit("bare", m.group(0), m.group(1), int(m.group(2)), int(m.group(3))))
    for m in _PYTHON_RE.finditer(stack_text):
        hits.append(StackHit("python", m.group(0), m.group(1), int(m.group(2))))
    for m in _JVM_RE.finditer(stack_text):
        hits.append(StackHit("jvm", m.group(0), m.group(1), int(m.group(2))))
    return hits


def base_name(path: str | None) -> str:
    if not path:
        return ""
    return path.replace("\\", "/").rsplit("/", 1)[-1]


def find_explicit_line_hint(text: str) -> int | None:
    m = _LINE_HINT_RE.search(text)
    return int(m.group(1)) if m else None


def find_inline_marker_line(code: str) -> int | None:
    """1-based position of the first ``>>>`` / ``ERROR HERE`` line."""
    for i, line in enumerate(code.split("\n")):
        if _INLINE_MARKER_RE.search(line):
            return i + 1
    return None


def find_caret_marker_line(code: str) -> int | None:
    """1-based position of the line a ``^^^`` underline points at."""
    for i, line in enumerate(code.split("\n")):
        if _CARET_RE.search(line):
            return i if i > 0 else None
    return None


def parse_numbered_lines(code: str) -> list[tuple[int, int, str]] | None:
    """``(raw_index, number, text)`` for "N | text" / "N: text" lines.

    None unless at least max(6, 25% of lines) carry a number.
    """
    lines = code.split("\n")
    items = []
    for i, line in enumerate(lines):
        m = _NUMBERED_RE.match(line)
        if m:
            items.append((i, int(m.group(1)), m.group(2)))
    if len(items) < max(6, len(lines) // 4):
        return None
    return items


def add_line_numbers(code: str) -> str:
    return "\n".join(f"{i} | {line}" for i, line in enumerate(code.split("\n"), start=1))


def choose_best_block(blocks: list[CodeBlock], hits: list[StackHit]) -> CodeBlock:
    file_base = base_name(hits[0].file if hits else None).lower()

    best = blocks[0]
    best_score = -1
    for block in blocks:
        score = 0
        if block.lang in PREFERRED_LANGS:
            score += 2
        if file_base and file_base in block.code.lower():
            score += 6
        score += min(2, len(block.code) // 1500)
        if score > best_score:
            best, best_score = block, score
    return best


# ── Abstraction / rendering ──────────────────────────────────────────

def strip_comments(line: str) -> str:
    out = _BLOCK_COMMENT_RE.sub("", line)
    out = _LINE_COMMENT_RE.sub("", out)
    return _HASH_COMMENT_RE.sub("", out)


def abstract_code_line(line: str) -> str:
    out = strip_comments(line)
    out = _BACKTICK_STR_RE.sub("`[STR]`", out)
    out = _DOUBLE_STR_RE.sub('"[STR]"', out)
    out = _SINGLE_STR_RE.sub("'[STR]'", out)
    out = _LONG_NUMBER_RE.sub("0", out)
    return _WHITESPACE_RE.sub(" ", out).strip()


def _render(number: int, text: str, *, target: bool) -> str:
    marker = ">>> " if target else "    "
    return f"{marker}{number} | {abstract_code_line(text)}"


def build_context_from_numbered(
    items: list[tuple[int, int, str]],
    center: int,
    *,
    mark: bool = True,
    radius: int = RADIUS,
) -> str:
    lines = [
        _render(n, text, target=mark and n == center)
        for _, n, text in items
        if center - radius <= n <= center + radius
    ]
    return "\n".join(lines)


def build_fallback_context(code: str, radius: int = RADIUS) -> str:
    """Fixed-size window around the line holding the middle character."""
    lines = code.split("\n")
    chunk = radius * 2 + 1
    mid_line = code.count("\n", 0, len(code) // 2)
    start = max(0, min(mid_line - radius, max(0, len(lines) - chunk)))
    return "\n".join(
        _render(start + i + 1, line, target=False)
        for i, line in enumerate(lines[start:start + chunk])
    )


# ── Entry point ──────────────────────────────────────────────────────

def extract(user_text: str) -> CodeContextResult:
    """Reduce a code+error message to a minimal abstracted prompt.

    Messages without both an error vocabulary hit and a fenced code
    block pass through unchanged with ``used=False``.
    """
    text = user_text or ""
    blocks = extract_code_blocks(text)
    if not blocks or not looks_like_error(text):
        return CodeContextResult(used=False, reason=NOT_USED_REASON, extracted_prompt=text)

    free_text = _FENCE_RE.sub("", text)
    stack_text = detect_stack_text(text)
    hits = parse_stack_hits(stack_text)
    picked = choose_best_block(blocks, hits)

    numbered = parse_numbered_lines(picked.code)
    if numbered is None:
        numbered = parse_numbered_lines(add_line_numbers(picked.code))

    target = find_explicit_line_hint(free_text)
    if target is None:
        marker = find_inline_marker_line(picked.code) or find_caret_marker_line(picked.code)
        if marker is not None:
            target = _number_at(numbered, marker)
    if target is None:
        target = next((h.line for h in hits if h.line is not None), None)

    if numbered:
        if target is not None and any(abs(n - target) <= RADIUS for _, n, _ in numbered):
            context = build_context_from_numbered(numbered, target)
        else:
            target = None
            middle = numbered[len(numbered) // 2][1]
            context = build_context_from_numbered(numbered, middle, mark=False)
    else:
        target = None
        context = build_fallback_context(picked.code)

    if stack_text:
        trace = "\n".join(stack_text.split("\n")[:HEADER_STACK_LINES])
        header = f"Stack / Trace (trimmed):\n{trace}"
    else:
        description = "\n".join(free_text.strip().split("\n")[:HEADER_TEXT_LINES])
        header = f"Error description:\n{description}"

    prompt = (
        "I’m debugging an error.\n\n"
        f"{header}\n\n"
        "Code context (minimal + abstracted):\n"
        f"```{picked.lang or 'text'}\n{context}\n```\n\n"
        f"{INSTRUCTION}"
    )
    return CodeContextResult(used=True, reason=USED_REASON, extracted_prompt=prompt, target_line=target)


def _number_at(numbered: list[tuple[int, int, str]] | None, position: int) -> int:
    """Map a 1-based raw line position to the block's own numbering."""
    if numbered:
        for raw_index, n, _ in numbered:
            if raw_index == position - 1:
                return n
    return position
