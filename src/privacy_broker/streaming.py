"""Streaming rehydrator — buffers chunks and restores placeholders as they complete.

For streamed provider responses where placeholders arrive as fragments:
    [EMA  →  [EMAIL_  →  [EMAIL_1]

Text is held back only while it could still be the start of a
placeholder; everything else is emitted immediately.

Usage:
    rehydrator = StreamingRehydrator(vault)
    for chunk in provider_stream:
        ready_text = rehydrator.feed(chunk)
        if ready_text:
            yield ready_text
    yield rehydrator.flush()
"""

from __future__ import annotations
import re

from .vault import Vault

_TOKEN_COMPLETE = re.compile(r"\[[A-Z][A-Z_]*_\d+\]")
# could still grow into a placeholder
_TOKEN_PREFIX = re.compile(r"\[(?:[A-Z][A-Z_]*(?:_\d*)?)?\Z")


class StreamingRehydrator:
    """Buffers streaming chunks and restores complete placeholders."""

    __slots__ = ("_vault", "_buffer", "_max_token_len")

    def __init__(self, vault: Vault, *, max_token_len: int = 48) -> None:
        self._vault = vault
        self._buffer = ""
        self._max_token_len = max(max_token_len, vault.max_token_len)

    def feed(self, chunk: str) -> str:
        """Feed a chunk, return any text ready to emit."""
        self._buffer += chunk
        return self._drain()

    def flush(self) -> str:
        """Flush remaining buffer (call at end of stream)."""
        out = self._buffer
        self._buffer = ""
        return out

    def _drain(self) -> str:
        out_parts: list[str] = []

        while self._buffer:
            idx = self._buffer.find("[")
            if idx == -1:
                out_parts.append(self._buffer)
                self._buffer = ""
                break

            if idx > 0:
                out_parts.append(self._buffer[:idx])
                self._buffer = self._buffer[idx:]

            # Buffer now starts with "["
            m = _TOKEN_COMPLETE.match(self._buffer)
            if m:
                token = m.group()
                original = self._vault.lookup_token(token)
                out_parts.append(original if original is not None else token)
                self._buffer = self._buffer[m.end():]
                continue

            if _TOKEN_PREFIX.match(self._buffer) and len(self._buffer) <= self._max_token_len:
                # Still accumulating a potential placeholder
                break

            # Not a placeholder; emit the bracket and rescan the rest
            out_parts.append("[")
            self._buffer = self._buffer[1:]

        return "".join(out_parts)
