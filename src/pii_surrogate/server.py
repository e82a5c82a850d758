"""HTTP sidecar server for pii-surrogate.

A lightweight stdlib HTTP server on localhost so a host (browser extension
backend, document viewer) can protect and restore documents without
spawning a process per request.  Sessions live in memory only, at most
PII_SURROGATE_MAX_SESSIONS of them; the least recently used is dropped first.

Endpoints:
    POST /protect    — {"session_id", "text" | "html", "types"?}
    POST /restore    — {"session_id"}
    POST /explain    — {"text" | "html", "types"?}
    GET  /status     — ?session_id=...
    GET  /health     — Health check

All endpoints expect/return JSON.
"""

from __future__ import annotations
import json
import logging
import os
from collections import OrderedDict
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any
from urllib.parse import parse_qs, urlsplit

from .config import load_from_yaml
from .document import HtmlDocument, PlainTextDocument
from .errors import PiiSurrogateError
from .redactor import RedactionSession, Redactor

logger = logging.getLogger(__name__)

DEFAULT_PORT = int(os.environ.get("PII_SURROGATE_PORT", "18791"))
MAX_SESSIONS = int(os.environ.get("PII_SURROGATE_MAX_SESSIONS", "256"))

# Shared state
_redactor: Redactor | None = None
_sessions: OrderedDict[str, RedactionSession] = OrderedDict()


def _get_redactor() -> Redactor:
    global _redactor
    if _redactor is None:
        config_path = os.environ.get("PII_SURROGATE_CONFIG")
        _redactor = Redactor(load_from_yaml(config_path) if config_path else None)
    return _redactor


def _remember(session_id: str, session: RedactionSession) -> None:
    """Store a session, dropping the least recently used ones past MAX_SESSIONS."""
    _sessions[session_id] = session
    _sessions.move_to_end(session_id)
    while len(_sessions) > MAX_SESSIONS:
        evicted, _ = _sessions.popitem(last=False)
        logger.warning("session limit %d reached; dropped session %r without restoring it",
                       MAX_SESSIONS, evicted)


def _document(body: dict[str, Any]) -> HtmlDocument | PlainTextDocument:
    if "html" in body:
        return HtmlDocument(body["html"])
    return PlainTextDocument(body.get("text", ""))


def _rendered(session: RedactionSession) -> dict[str, str]:
    key = "html" if isinstance(session.document, HtmlDocument) else "text"
    return {key: session.document.render()}


class PIIHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the pii-surrogate sidecar."""

    def _read_json(self) -> dict[str, Any]:
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length).decode("utf-8")
        return json.loads(body) if body else {}

    def _respond(self, status: int, data: Any) -> None:
        body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s " + format, self.address_string(), *args)

    def do_GET(self) -> None:
        url = urlsplit(self.path)
        if url.path == "/health":
            self._respond(200, {"status": "ok", "sessions": len(_sessions)})
        elif url.path == "/status":
            session_id = parse_qs(url.query).get("session_id", ["default"])[0]
            session = _sessions.get(session_id)
            if session is None:
                self._respond(404, {"error": f"unknown session {session_id!r}"})
                return
            _sessions.move_to_end(session_id)
            self._respond(200, {
                "session_id": session_id,
                "active": session.active,
                "cache_size": session.cache.size,
                "result": session.last_result.to_dict() if session.last_result else None,
            })
        else:
            self._respond(404, {"error": "not found"})

    def do_POST(self) -> None:
        try:
            body = self._read_json()
            redactor = _get_redactor()
            session_id = body.get("session_id", "default")

            if self.path == "/protect":
                session = _sessions.get(session_id)
                if session is not None and session.active:
                    self._respond(409, {"error": "session already protected; restore first",
                                        "session_id": session_id})
                    return
                session = RedactionSession(_document(body))
                _remember(session_id, session)
                result = redactor.protect(session, body.get("types"))
                self._respond(200, {**result.to_dict(), **_rendered(session)})

            elif self.path == "/restore":
                session = _sessions.pop(session_id, None)
                if session is None:
                    self._respond(404, {"error": f"unknown session {session_id!r}"})
                    return
                restored = redactor.restore(session)
                self._respond(200, {"status": "restored", "nodes": restored, **_rendered(session)})

            elif self.path == "/explain":
                candidates = redactor.explain(_document(body), body.get("types"))
                self._respond(200, {"candidates": [c.to_dict() for c in candidates]})

            else:
                self._respond(404, {"error": "not found"})

        except (PiiSurrogateError, ValueError) as e:
            self._respond(400, {"error": str(e)})
        except Exception as e:
            logger.exception("request to %s failed", self.path)
            self._respond(500, {"error": str(e)})


def serve(port: int = DEFAULT_PORT) -> None:
    """Start the pii-surrogate HTTP sidecar."""
    server = HTTPServer(("127.0.0.1", port), PIIHandler)
    print(f"pii-surrogate sidecar listening on http://127.0.0.1:{port}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down...")
        server.shutdown()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="pii-surrogate HTTP sidecar")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s | %(message)s")
    serve(port=args.port)
