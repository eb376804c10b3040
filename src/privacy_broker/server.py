"""HTTP sidecar server for privacy-broker.

Runs a lightweight stdlib HTTP server on localhost so a chat backend in
any language can call the broker without spawning a process per request.

Endpoints:
    GET  /health     — Health check
    POST /check      — Hard-block check          {"text"}
    POST /sanitize   — Sanitize text             {"text", "mode"}
    POST /restore    — Restore placeholders      {"text", "map"}
    POST /extract    — Minimal-context extract   {"text"}
    POST /prepare    — Full pipeline + audit     {"message", "conversation_id", "mode",
                                                  "project_id", "provider", "model", "history"}
    POST /complete   — Restore + audit response  {"request_id", "map", "response"}

All endpoints expect/return JSON.  Blocked or malformed input answers 400.
"""

from __future__ import annotations
import json
import logging
from dataclasses import asdict
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any

from .blocker import detect_hard_blockers
from .broker import PreparedRequest, PrivacyBroker
from .errors import BlockedContentError, MalformedInputError, PrivacyBrokerError
from .extractor import extract
from .types import BrokerResult
from .vault import Vault, restore

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"


class BrokerHTTPServer(HTTPServer):
    """HTTPServer that owns one PrivacyBroker."""

    def __init__(self, address: tuple[str, int], broker: PrivacyBroker) -> None:
        super().__init__(address, BrokerHandler)
        self.broker = broker


class BrokerHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the privacy-broker sidecar."""

    server: BrokerHTTPServer

    def _read_json(self) -> dict[str, Any]:
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length).decode("utf-8")
        data = json.loads(body) if body else {}
        if not isinstance(data, dict):
            raise MalformedInputError("JSON body must be an object")
        return data

    def _token_map(self, body: dict[str, Any]) -> dict[str, str]:
        token_map = body.get("map") or {}
        if not isinstance(token_map, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in token_map.items()
        ):
            raise MalformedInputError("map must be an object of strings")
        return token_map

    def _respond(self, status: int, data: Any) -> None:
        body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s %s", self.address_string(), format % args)

    def do_GET(self) -> None:
        if self.path == "/health":
            self._respond(200, {"status": "ok", "audit": self.server.broker.ledger is not None})
        else:
            self._respond(404, {"error": "not found"})

    def do_POST(self) -> None:
        broker = self.server.broker
        try:
            body = self._read_json()

            if self.path == "/check":
                decision = detect_hard_blockers(str(body.get("text", "")).replace("\x00", ""))
                self._respond(200, {"blocked": decision.blocked, "reason": decision.reason})

            elif self.path == "/sanitize":
                mode = str(body.get("mode", "normal"))
                candidate, _ = broker.candidate_text(str(body.get("text", "")), mode)
                result = broker.redactor.sanitize(candidate, mode=mode)
                self._respond(400 if result.blocked else 200, result.to_dict())

            elif self.path == "/restore":
                self._respond(200, {"text": restore(str(body.get("text", "")), self._token_map(body))})

            elif self.path == "/extract":
                self._respond(200, asdict(extract(str(body.get("text", "")))))

            elif self.path == "/prepare":
                history = body.get("history") or []
                if not isinstance(history, list):
                    raise MalformedInputError("history must be a list")
                prepared = broker.prepare(
                    str(body.get("message", "")),
                    conversation_id=str(body.get("conversation_id", "")),
                    project_id=str(body.get("project_id", "")),
                    mode=str(body.get("mode", "normal")),
                    provider=str(body.get("provider", "")),
                    model=str(body.get("model", "")),
                    history=history,
                )
                self._respond(200, {
                    "request_id": prepared.request_id,
                    "messages": prepared.messages,
                    "map": prepared.vault.dump(),
                    "extracted": bool(prepared.extraction and prepared.extraction.used),
                })

            elif self.path == "/complete":
                prepared = PreparedRequest(
                    request_id=body.get("request_id"),
                    result=BrokerResult(ok=True, blocked=False),
                    outbound="",
                    vault=Vault(self._token_map(body)),
                )
                text = broker.complete(prepared, str(body.get("response", "")))
                self._respond(200, {"text": text})

            else:
                self._respond(404, {"error": "not found"})

        except BlockedContentError as e:
            self._respond(400, {"error": e.reason, "blocked": True, "request_id": e.request_id})
        except (MalformedInputError, ValueError) as e:
            self._respond(400, {"error": str(e)})
        except PrivacyBrokerError as e:
            logger.error("broker failure on %s: %s", self.path, e)
            self._respond(500, {"error": str(e)})


def make_server(broker: PrivacyBroker, host: str = DEFAULT_HOST, port: int = 0) -> BrokerHTTPServer:
    """Bind a sidecar server (port 0 picks a free port)."""
    return BrokerHTTPServer((host, port), broker)


def serve(broker: PrivacyBroker, port: int, host: str = DEFAULT_HOST) -> None:
    """Start the privacy-broker HTTP sidecar."""
    server = make_server(broker, host, port)
    logger.info("privacy-broker sidecar listening on http://%s:%d", host, server.server_address[1])
    print(f"privacy-broker sidecar listening on http://{host}:{server.server_address[1]}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down...")
    finally:
        server.server_close()
        if broker.ledger is not None:
            broker.ledger.close()
