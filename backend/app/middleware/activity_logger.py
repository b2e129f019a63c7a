from __future__ import annotations
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qs

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core.config import AuditPolicy
from app.metrics import activity_entries_total
from app.models.user import User
from app.services.activity import find_recent, record_activity
from app.utils.actions import ActionTable
from app.utils.clock import seconds_ago

log = logging.getLogger(__name__)

# Response bodies above this size are not parsed for the audit trail
MAX_CAPTURE_BYTES = 256 * 1024


def redact(value: Any, fields: List[str]) -> Any:
    """Copy of value with secret keys removed at any depth."""
    if isinstance(value, dict):
        return {k: redact(v, fields) for k, v in value.items() if k not in fields}
    if isinstance(value, list):
        return [redact(v, fields) for v in value]
    return value


def _header(scope: Scope, name: bytes) -> str:
    for k, v in scope.get("headers") or []:
        if k.lower() == name:
            return v.decode("latin-1")
    return ""


def _parse_json(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


class ActivityLogMiddleware:
    """
    Observes each finished request and appends a deduplicated activity entry.

    The wrapped app's messages are forwarded untouched; the entry is written only
    after the last response chunk went out. Any failure here is logged and dropped.
    """

    def __init__(
        self,
        app: ASGIApp,
        policy: AuditPolicy,
        session_factory: Callable[[], Session],
        table: ActionTable,
        prefix: str = "",
    ) -> None:
        self.app = app
        self.policy = policy
        self.session_factory = session_factory
        self.table = table
        self.prefix = prefix

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if self.policy.should_skip(path) or not path.startswith(self.prefix + "/"):
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET").upper()
        capture_body = (
            method in self.policy.body_methods
            and "application/json" in _header(scope, b"content-type")
        )
        request_chunks: List[bytes] = []
        response_chunks: List[bytes] = []
        captured: Dict[str, Any] = {"status": None, "json": False, "size": 0}

        async def receive_wrapper() -> Message:
            message = await receive()
            if capture_body and message["type"] == "http.request":
                request_chunks.append(message.get("body", b""))
            return message

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                captured["status"] = message["status"]
                for k, v in message.get("headers") or []:
                    if k.lower() == b"content-type" and b"json" in v.lower():
                        captured["json"] = True
            elif message["type"] == "http.response.body":
                chunk = message.get("body", b"")
                captured["size"] += len(chunk)
                if captured["size"] <= MAX_CAPTURE_BYTES:
                    response_chunks.append(chunk)
            await send(message)

        started = time.perf_counter()
        await self.app(scope, receive_wrapper, send_wrapper)
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        # response is out; nothing below may reach the caller
        try:
            await run_in_threadpool(
                self._log_request,
                scope,
                method,
                captured,
                b"".join(request_chunks),
                b"".join(response_chunks),
                elapsed_ms,
            )
        except Exception:
            activity_entries_total.labels(outcome="failed").inc()
            log.exception("[activity] logging error for %s %s", method, path)

    def _log_request(
        self,
        scope: Scope,
        method: str,
        captured: Dict[str, Any],
        request_raw: bytes,
        response_raw: bytes,
        elapsed_ms: int,
    ) -> None:
        status = captured["status"]
        if status is None or status >= 400:
            return
        principal = (scope.get("state") or {}).get("user")
        if principal is None:
            return

        path = scope.get("path", "")
        rel_path = path[len(self.prefix):] if self.prefix else path
        body = _parse_json(request_raw)
        too_big = captured["size"] > MAX_CAPTURE_BYTES
        response: Any = None
        if not too_big:
            response = _parse_json(response_raw) if captured["json"] else None
            if response is None and response_raw:
                response = response_raw.decode("utf-8", errors="replace")

        db = self.session_factory()
        try:
            account = db.get(User, principal.id)
            actor = {
                "id": principal.id,
                "role": principal.role,
                "first_name": account.first_name if account else None,
            }
            match = self.table.classify(
                method,
                rel_path,
                actor,
                body=body,
                response=response if isinstance(response, dict) else None,
            )
            if match is None:
                return

            window = self.policy.window_for(match.action)
            if find_recent(db, principal.id, match.action, seconds_ago(window), route=path):
                activity_entries_total.labels(outcome="suppressed").inc()
                log.debug("[activity] duplicate %s on %s suppressed", match.action, path)
                return

            details: Dict[str, Any] = {
                "method": method,
                "route": path,
                "routeTemplate": match.route,
                "statusCode": status,
                "responseTime": f"{elapsed_ms}ms",
            }
            query = parse_qs(scope.get("query_string", b"").decode("latin-1"))
            if query:
                details["query"] = {k: v[0] if len(v) == 1 else v for k, v in query.items()}
            if method in self.policy.body_methods and body is not None:
                details["body"] = redact(body, self.policy.redact_fields)
            if match.action in self.policy.response_actions and response is not None:
                details["response"] = self._sanitize_response(response)

            client = scope.get("client")
            forwarded = _header(scope, b"x-forwarded-for")
            ip = forwarded.split(",")[0].strip() if forwarded else (client[0] if client else None)

            record_activity(
                db,
                principal.id,
                match.action,
                match.description,
                resource_type=match.resource_type,
                resource_id=match.resource_id,
                route=path,
                details=details,
                ip_address=ip,
                user_agent=_header(scope, b"user-agent") or None,
            )
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _sanitize_response(self, response: Any) -> Any:
        if isinstance(response, str):
            return response[: self.policy.response_truncate]
        return redact(response, self.policy.redact_fields)
