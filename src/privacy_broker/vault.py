"""Vault — conversation-scoped placeholder → original mapping.

Each sanitize call produces its own token map.  The caller merges the
maps of every turn it sends into one Vault and restores the provider's
response with it, for local display only.

Restoration is literal substring replacement, longest placeholder first,
so "[TOKEN_1]" can never eat the prefix of "[TOKEN_10]".
"""

from __future__ import annotations
from collections.abc import Mapping

from .types import TokenMap


def restore(text: str, token_map: Mapping[str, str]) -> str:
    """Replace every placeholder in *text* with its original value."""
    result = text
    for token in sorted(token_map, key=len, reverse=True):
        if token in result:
            result = result.replace(token, token_map[token])
    return result


def merge_maps(*maps: Mapping[str, str] | None) -> TokenMap:
    """Merge token maps in order; later maps win on identical keys."""
    out: TokenMap = {}
    for m in maps:
        if m:
            out.update(m)
    return out


class Vault:
    """Merged restoration map for one conversation."""

    __slots__ = ("_token_to_original",)

    def __init__(self, token_map: Mapping[str, str] | None = None) -> None:
        self._token_to_original: TokenMap = dict(token_map or {})

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def merge(self, token_map: Mapping[str, str]) -> None:
        """Fold one turn's map in (last write wins)."""
        self._token_to_original.update(token_map)

    def rehydrate(self, text: str) -> str:
        return restore(text, self._token_to_original)

    def lookup_token(self, token: str) -> str | None:
        return self._token_to_original.get(token)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._token_to_original)

    @property
    def max_token_len(self) -> int:
        return max((len(t) for t in self._token_to_original), default=0)

    def dump(self) -> TokenMap:
        """Return a copy of the token→original mapping."""
        return dict(self._token_to_original)

    def clear(self) -> None:
        self._token_to_original.clear()
