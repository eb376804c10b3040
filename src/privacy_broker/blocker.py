"""Hard-block detection: content that must never leave the machine,
not even in redacted form.
"""

from __future__ import annotations

from .patterns import CARD_CANDIDATE_RE, PRIVATE_KEY_RE, SSN_RE, luhn_valid
from .types import BlockDecision

SSN_REASON = "Contains SSN. Remove it before sending."
CARD_REASON = "Contains a credit card number. Remove it before sending."
PRIVATE_KEY_REASON = "Contains a private key block. Do not paste private keys."

_CLEAR = BlockDecision(blocked=False)


def detect_hard_blockers(text: str) -> BlockDecision:
    """Classify *text*; the first blocker found wins."""
    if SSN_RE.search(text):
        return BlockDecision(True, SSN_REASON)

    for m in CARD_CANDIDATE_RE.finditer(text):
        if luhn_valid(m.group()):
            return BlockDecision(True, CARD_REASON)

    if PRIVATE_KEY_RE.search(text):
        return BlockDecision(True, PRIVATE_KEY_REASON)

    return _CLEAR
