"""Tests for the minimal-context extractor."""

import re
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from privacy_broker.extractor import (
    NOT_USED_REASON,
    USED_REASON,
    abstract_code_line,
    base_name,
    choose_best_block,
    extract,
    parse_numbered_lines,
    parse_stack_hits,
)
from privacy_broker.types import CodeBlock, StackHit

_CONTEXT_LINE_RE = re.compile(r"^(?:>>> |    )\d+ \| ", re.MULTILINE)


def _fenced(lang: str, lines: list[str]) -> str:
    return f"```{lang}\n" + "\n".join(lines) + "\n```"


# ── Pass-through ─────────────────────────────────────────────────────

def test_error_without_code_block_is_not_used():
    text = "TypeError: x is undefined, what happened?"
    result = extract(text)
    assert not result.used
    assert result.reason == NOT_USED_REASON
    assert result.extracted_prompt == text
    assert result.target_line is None


def test_code_block_without_error_is_not_used():
    text = "why is this slow?\n```py\nfor i in range(10): print(i)\n```"
    result = extract(text)
    assert not result.used
    assert result.extracted_prompt == text


def test_empty_input():
    assert extract("").extracted_prompt == ""


# ── Target selection ─────────────────────────────────────────────────

def test_caret_marker_centres_window():
    lines = [f'const v{i} = "value {i}"; // note {i}' for i in range(1, 301)]
    lines.insert(150, "          ^^^")
    text = "TypeError: boom\n" + _fenced("ts", lines)

    result = extract(text)
    assert result.used
    assert result.reason == USED_REASON
    assert result.target_line == 150

    prompt = result.extracted_prompt
    assert len(_CONTEXT_LINE_RE.findall(prompt)) == 11
    assert '>>> 150 | const v150 = "[STR]";' in prompt
    assert "    145 | " in prompt
    assert "    155 | " in prompt
    assert "note" not in prompt
    assert "value 150" not in prompt
    assert prompt.startswith("I’m debugging an error.")
    assert "```ts\n" in prompt


def test_explicit_line_hint():
    lines = [f"x{i} = compute({i})" for i in range(1, 21)]
    text = "TypeError at line 7\n" + _fenced("py", lines)
    result = extract(text)
    assert result.target_line == 7
    assert ">>> 7 | x7 = compute(7)" in result.extracted_prompt
    assert "    12 | x12 = compute(0)" in result.extracted_prompt
    assert "13 |" not in result.extracted_prompt


def test_inline_marker_in_pre_numbered_block():
    lines = [f"{n} | val{n} = {n}" for n in range(100, 120)]
    lines[10] = "110 | boom()  // ERROR HERE"
    text = "Error: crash\n" + _fenced("js", lines)
    result = extract(text)
    assert result.target_line == 110
    assert ">>> 110 | boom()" in result.extracted_prompt
    assert "    105 | val105 = 0" in result.extracted_prompt
    assert "104 |" not in result.extracted_prompt


def test_marker_prefix_on_pre_numbered_line():
    lines = [f"{n} | val{n} = {n}" for n in range(40, 51)]
    lines[5] = ">>> 45 | boom()"
    text = "TypeError: crash\n" + _fenced("js", lines)
    result = extract(text)
    assert result.target_line == 45
    assert ">>> 45 | boom()" in result.extracted_prompt
    assert "    40 |" in result.extracted_prompt
    assert "    50 |" in result.extracted_prompt


def test_stack_hit_picks_block_and_line():
    code = [
        "// index.js",
        "function main() {",
        "  const x = null;",
        "  return x.y;",
        "}",
    ]
    text = (
        "TypeError: Cannot read properties of null\n"
        "    at main (/app/index.js:4:2)\n"
        "```\nfoo\n```\n"
        + _fenced("js", code)
    )
    result = extract(text)
    assert result.target_line == 4
    prompt = result.extracted_prompt
    assert ">>> 4 | return x.y;" in prompt
    assert "Stack / Trace (trimmed):\nat main (/app/index.js:4:2)" in prompt
    assert "```js\n" in prompt


def test_python_traceback_header():
    text = (
        "Traceback (most recent call last):\n"
        '  File "app.py", line 3, in <module>\n'
        "    main()\n"
        "ValueError: bad\n"
        + _fenced("python", [f"step_{i}()" for i in range(1, 11)])
    )
    result = extract(text)
    assert result.target_line == 3
    assert 'Stack / Trace (trimmed):\nFile "app.py", line 3' in result.extracted_prompt
    assert ">>> 3 | step_3()" in result.extracted_prompt


def test_no_target_centres_on_middle_without_marker():
    lines = [f"let a{i} = {i};" for i in range(1, 31)]
    text = "Error: something failed\n" + _fenced("js", lines)
    result = extract(text)
    assert result.used
    assert result.target_line is None
    assert ">>>" not in result.extracted_prompt
    assert "    16 | let a16 = 0;" in result.extracted_prompt
    assert "Error description:\nError: something failed" in result.extracted_prompt


def test_target_outside_block_falls_back_to_middle():
    lines = [f"let a{i} = {i};" for i in range(1, 31)]
    text = "Error on line 500\n" + _fenced("js", lines)
    result = extract(text)
    assert result.target_line is None
    assert ">>>" not in result.extracted_prompt


def test_short_block_uses_fixed_window():
    text = "Error: x\n" + _fenced("py", ["a = 1", "b = 2", "c = foo()"])
    result = extract(text)
    assert result.used
    assert result.target_line is None
    assert "    1 | a = 1" in result.extracted_prompt
    assert "    3 | c = foo()" in result.extracted_prompt
    assert ">>>" not in result.extracted_prompt


# ── Helpers ──────────────────────────────────────────────────────────

def test_parse_stack_hits_bracketed():
    hits = parse_stack_hits("    at handler (/app/src/server.ts:42:13)")
    assert hits[0] == StackHit(
        "bracketed", "at handler (/app/src/server.ts:42:13)", "/app/src/server.ts", 42, 13,
    )
    assert base_name(hits[0].file) == "server.ts"


def test_parse_stack_hits_jvm():
    hits = parse_stack_hits("\tat com.acme.Foo.bar(Foo.java:88)")
    assert [(h.kind, h.file, h.line) for h in hits] == [("jvm", "Foo.java", 88)]


def test_base_name_handles_windows_paths():
    assert base_name(r"C:\src\app\main.py") == "main.py"
    assert base_name(None) == ""


def test_choose_best_block_prefers_language_then_file():
    plain = CodeBlock("text", "x" * 10)
    ts = CodeBlock("ts", "foo()")
    util = CodeBlock("", "// util.ts\nbar()")
    assert choose_best_block([plain, ts], []) is ts
    hit = StackHit("bare", "at /src/util.ts:1:1", "/src/util.ts", 1, 1)
    assert choose_best_block([plain, ts, util], [hit]) is util


def test_choose_best_block_tie_keeps_first():
    a, b = CodeBlock("js", "a()"), CodeBlock("js", "b()")
    assert choose_best_block([a, b], []) is a


def test_parse_numbered_lines_requires_enough_numbers():
    assert parse_numbered_lines("1 | a\n2 | b\nc") is None
    items = parse_numbered_lines("\n".join(f"{n}: line {n}" for n in range(10, 18)))
    assert items[0] == (0, 10, "line 10")
    assert len(items) == 8


def test_abstract_code_line():
    assert abstract_code_line("x = \"abc\" + 'd'  // c") == "x = \"[STR]\" + '[STR]'"
    assert abstract_code_line("n = 42 + 7  # hi") == "n = 0 + 7"
    assert abstract_code_line("a /* b */ = 100") == "a = 0"
    assert abstract_code_line("t = `id ${x}`;") == "t = `[STR]`;"
