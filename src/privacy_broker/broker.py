"""PrivacyBroker — the sanitize → transmit → restore pipeline.

Usage:

    broker = PrivacyBroker(Redactor(), Ledger("~/.privacy-broker"))

    # Before calling the provider
    prepared = broker.prepare(text, conversation_id="chat-1", mode="code",
                              provider="openai", model="gpt-4.1",
                              history=earlier_turns)
    send(prepared.messages)

    # After the provider answers
    shown = broker.complete(prepared, response_text)

Code mode first shrinks the message with the minimal-context extractor;
whatever comes out is what the redactor sees.  Blocked messages are
audited and then raise BlockedContentError; nothing is returned for
transmission.
"""

from __future__ import annotations
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .errors import BlockedContentError, MalformedInputError
from .extractor import extract
from .ledger import Ledger
from .redactor import MODES, Redactor
from .streaming import StreamingRehydrator
from .types import BrokerResult, CodeContextResult
from .vault import Vault

logger = logging.getLogger(__name__)


@dataclass
class PreparedRequest:
    """Everything needed to send one turn and restore its answer."""
    request_id: str | None
    result: BrokerResult
    outbound: str                                  # sanitized current message
    vault: Vault                                   # history + current maps
    messages: list[dict] = field(default_factory=list)  # sanitized history + current
    extraction: CodeContextResult | None = None


class PrivacyBroker:
    """Two explicit stages (extract, sanitize) plus audit and restore."""

    def __init__(
        self,
        redactor: Redactor | None = None,
        ledger: Ledger | None = None,
        *,
        extract_code_context: bool = True,
    ) -> None:
        self.redactor = redactor or Redactor()
        self.ledger = ledger
        self.extract_code_context = extract_code_context

    def candidate_text(self, message: str, mode: str) -> tuple[str, CodeContextResult | None]:
        """Stage one: what the redactor should see."""
        if mode != "code" or not self.extract_code_context:
            return message, None
        extraction = extract(message)
        logger.debug("code context extraction used=%s", extraction.used)
        return extraction.extracted_prompt, extraction

    def prepare(
        self,
        message: str,
        *,
        conversation_id: str,
        project_id: str = "",
        mode: str = "normal",
        provider: str = "",
        model: str = "",
        history: Iterable[dict] = (),
    ) -> PreparedRequest:
        if not conversation_id or not conversation_id.strip():
            raise MalformedInputError("Missing conversation id")
        if mode not in MODES:
            raise MalformedInputError(f"Unknown mode {mode!r}")
        if not message or not message.strip():
            raise MalformedInputError("Empty message")
        history = list(history)
        if any(not isinstance(m, dict) for m in history):
            raise MalformedInputError("History items must be message objects")

        candidate, extraction = self.candidate_text(message, mode)
        result = self.redactor.sanitize(candidate, mode=mode)

        request_id = None
        if self.ledger is not None:
            # key problems surface here and abort the request
            record = self.ledger.record_request(
                chat_id=conversation_id,
                project_id=project_id,
                mode=mode,
                provider=provider,
                model=model,
                result=result,
                original=message,
            )
            request_id = record.id

        if result.blocked:
            raise BlockedContentError(result.reason or "Blocked input", request_id)

        outbound = result.sanitized.strip()
        if not outbound:
            raise MalformedInputError("Empty message after sanitization")

        messages, vault = self.redactor.sanitize_messages(history, mode=mode)
        vault.merge(result.token_map)
        messages.append({"role": "user", "content": outbound})

        return PreparedRequest(
            request_id=request_id,
            result=result,
            outbound=outbound,
            vault=vault,
            messages=messages,
            extraction=extraction,
        )

    def complete(self, prepared: PreparedRequest, response_text: str) -> str:
        """Restore the provider's answer for local display and audit it."""
        restored = prepared.vault.rehydrate((response_text or "").strip()).strip()
        self._record_response(prepared, restored)
        return restored

    def stream(self, prepared: PreparedRequest, chunks: Iterable[str]) -> Iterator[str]:
        """Restore a streamed answer chunk by chunk; audit it once complete."""
        rehydrator = StreamingRehydrator(prepared.vault)
        parts: list[str] = []
        for chunk in chunks:
            ready = rehydrator.feed(chunk)
            if ready:
                parts.append(ready)
                yield ready
        tail = rehydrator.flush()
        if tail:
            parts.append(tail)
            yield tail
        self._record_response(prepared, "".join(parts).strip())

    def _record_response(self, prepared: PreparedRequest, restored: str) -> None:
        if not restored or self.ledger is None or prepared.request_id is None:
            return
        self.ledger.record_response(prepared.request_id, restored)
