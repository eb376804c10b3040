"""Exception hierarchy.

Pattern matching never raises; everything here comes from caller input,
the audit key lifecycle, or operator-side decryption.
"""

from __future__ import annotations


class PrivacyBrokerError(Exception):
    """Base exception for the package."""


class BlockedContentError(PrivacyBrokerError):
    """The message contains hard-blocked content and must not be sent."""

    def __init__(self, reason: str, request_id: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.request_id = request_id


class MalformedInputError(PrivacyBrokerError, ValueError):
    """Empty message, missing identifiers, or nothing left after sanitizing."""


class KeyMaterialCorruptError(PrivacyBrokerError):
    """The audit key file exists but does not hold exactly 32 bytes."""


class AuditIntegrityError(PrivacyBrokerError):
    """An encrypted envelope is malformed or failed authentication."""
