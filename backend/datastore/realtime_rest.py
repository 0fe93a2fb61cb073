"""
REST client for a Firebase-style realtime database.

Why: The school data (credentials, classes, students, announcements) lives in a
hosted realtime database. This adapter implements RemoteStoreProtocol on top of
its REST API so the identity and scoping layers stay SDK-free:

- GET    {base}/{path}.json          point read (JSON or null)
- POST   {base}/{path}.json          append, answers {"name": "<push key>"}
- PATCH  {base}/{path}.json          field update
- GET    with Accept: text/event-stream   server-sent change events

Streaming: each subscription owns one daemon reader thread. On every `put` or
`patch` event the full collection is re-read and delivered, so callbacks always
see a complete snapshot. The unsubscribe handle stops the thread and closes the
stream.

Security:
- The auth token is passed as the `auth` query parameter and never logged.
- Use https base URLs outside of development (see identity_access.config).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Tuple
import json
import logging
import threading

import requests

from .ports import RemoteStoreError, RemoteStoreProtocol, Snapshot, Unsubscribe, split_path

_log = logging.getLogger("crescent.datastore")


@dataclass(frozen=True)
class SSEEvent:
    event: str
    data: str


def iter_sse_events(lines: Iterable[str]) -> Iterator[SSEEvent]:
    """Parse server-sent event lines into events.

    Only `event:` and `data:` fields are used; comment lines are ignored and a
    blank line terminates an event.
    """
    event = ""
    data: list[str] = []
    for raw in lines:
        line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        line = line.rstrip("\r")
        if not line:
            if event or data:
                yield SSEEvent(event=event or "message", data="\n".join(data))
            event, data = "", []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
    if event or data:
        yield SSEEvent(event=event or "message", data="\n".join(data))


class RealtimeDatabaseClient(RemoteStoreProtocol):
    """RemoteStoreProtocol backed by the realtime database REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        auth_token: Optional[str] = None,
        timeout: float = 10.0,
        reconnect_delay: float = 2.0,
    ):
        if not base_url:
            raise RuntimeError("realtime_db_url_missing")
        self._base = base_url.rstrip("/")
        self._auth = auth_token or None
        self._timeout = timeout
        self._reconnect_delay = reconnect_delay

    # --- Helpers -----------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self._base}/{'/'.join(split_path(path))}.json"

    def _params(self) -> Dict[str, str]:
        return {"auth": self._auth} if self._auth else {}

    def _request(self, method: str, path: str, body: Any = None) -> Any:
        kwargs: Dict[str, Any] = {"params": self._params(), "timeout": self._timeout}
        if body is not None:
            kwargs["json"] = body
        try:
            resp = requests.request(method, self._url(path), **kwargs)
        except requests.RequestException as exc:
            _log.warning("%s %s failed: error=%s", method, path, type(exc).__name__)
            raise RemoteStoreError("store_unreachable") from exc
        status = getattr(resp, "status_code", 500)
        if status >= 400:
            _log.warning("%s %s failed: status=%s", method, path, status)
            raise RemoteStoreError(f"store_http_{status}")
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteStoreError("malformed_response") from exc

    # --- Protocol methods --------------------------------------------------------

    def get(self, path: str) -> Any:
        return self._request("GET", path)

    def push(self, path: str, value: Any) -> str:
        res = self._request("POST", path, value)
        key = res.get("name") if isinstance(res, dict) else None
        if not isinstance(key, str) or not key:
            raise RemoteStoreError("malformed_response")
        return key

    def update(self, path: str, fields: Dict[str, Any]) -> None:
        self._request("PATCH", path, dict(fields))

    def listen(self, path: str, callback: Callable[[Snapshot], None]) -> Unsubscribe:
        split_path(path)
        stop = threading.Event()
        holder: Dict[str, Any] = {}

        def _close_stream() -> None:
            resp = holder.pop("resp", None)
            if resp is not None:
                try:
                    resp.close()
                except Exception as exc:  # pragma: no cover - best effort
                    _log.debug("closing stream failed: error=%s", type(exc).__name__)

        def _run() -> None:
            while not stop.is_set():
                try:
                    resp = requests.get(
                        self._url(path),
                        params=self._params(),
                        headers={"Accept": "text/event-stream"},
                        stream=True,
                        timeout=(self._timeout, None),
                    )
                    holder["resp"] = resp
                    if resp.status_code >= 400:
                        raise RemoteStoreError(f"store_http_{resp.status_code}")
                    if self._consume(path, resp.iter_lines(decode_unicode=True), callback, stop):
                        return
                except (requests.RequestException, RemoteStoreError) as exc:
                    if stop.is_set():
                        return
                    _log.warning("stream %s interrupted: error=%s", path, type(exc).__name__)
                finally:
                    _close_stream()
                stop.wait(self._reconnect_delay)

        thread = threading.Thread(target=_run, name=f"crescent-listen:{path}", daemon=True)
        thread.start()

        def _unsubscribe() -> None:
            stop.set()
            _close_stream()

        return _unsubscribe

    def _consume(
        self,
        path: str,
        lines: Iterable[str],
        callback: Callable[[Snapshot], None],
        stop: threading.Event,
    ) -> bool:
        """Deliver snapshots for change events; return True when the server ends the stream for good."""
        for ev in iter_sse_events(lines):
            if stop.is_set():
                return True
            if ev.event in {"put", "patch"}:
                changed, _ = parse_event_payload(ev)
                _log.debug("stream %s change at %s", path, changed)
                snapshot = self.get(path)
                if stop.is_set():
                    return True
                try:
                    callback(snapshot if isinstance(snapshot, dict) else None)
                except Exception as exc:
                    # Keep the stream alive; the next change delivers a fresh snapshot.
                    _log.warning("stream %s callback failed: error=%s", path, type(exc).__name__)
            elif ev.event in {"cancel", "auth_revoked"}:
                _log.warning("stream %s ended by server: event=%s", path, ev.event)
                return True
        return False


def parse_event_payload(ev: SSEEvent) -> Tuple[str, Any]:
    """Return (path, data) of a put/patch event payload."""
    try:
        payload = json.loads(ev.data or "null")
    except ValueError as exc:
        raise RemoteStoreError("malformed_response") from exc
    if not isinstance(payload, dict):
        raise RemoteStoreError("malformed_response")
    return str(payload.get("path") or "/"), payload.get("data")


__all__ = ["RealtimeDatabaseClient", "SSEEvent", "iter_sse_events", "parse_event_payload"]
