"""The built-in ``http`` tool kind."""

from __future__ import annotations

import json
import time
import urllib.request
from contextlib import closing
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.error import HTTPError

from agentflow.tool_node import ToolError
from agentflow.tools.spec import Spec, trim_body

_MAX_BODY = 1 << 20
_DEFAULT_TIMEOUT_MS = 30_000
_DEFAULT_METHOD = "POST"


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _elapsed_ms(start: float) -> str:
    return str(int((time.monotonic() - start) * 1000))


@dataclass(frozen=True)
class HttpTool:
    """Sends the JSON arguments to a URL and returns the response as output.

    A 2xx body shaped ``{"output": "..."}`` yields that field; any other
    2xx body is returned verbatim. Non-2xx responses raise :class:`ToolError`.
    """

    name: str
    url: str
    method: str = _DEFAULT_METHOD
    headers: dict[str, str] = field(default_factory=dict)
    timeout_ms: int = _DEFAULT_TIMEOUT_MS

    def execute(self, args: Optional[bytes] = None) -> str:
        output, _ = self.execute_with_metadata(args)
        return output

    def execute_with_metadata(
        self, args: Optional[bytes] = None
    ) -> tuple[str, dict[str, str]]:
        """Call the URL and return ``(output, metadata)``.

        Metadata holds ``http_status``, ``bytes`` and ``duration_ms``; a
        raised :class:`ToolError` carries the same keys where known.
        """
        body = bytes(args) if args else b"{}"
        label = _quote(self.name)
        try:
            request = urllib.request.Request(self.url, data=body, method=self.method)
        except ValueError as exc:
            raise ToolError(f"http tool {label}: build request: {exc}") from exc
        request.add_header("Content-Type", "application/json")
        for key, value in self.headers.items():
            request.add_header(key, value)

        start = time.monotonic()
        try:
            response = urllib.request.urlopen(request, timeout=self.timeout_ms / 1000)
        except HTTPError as exc:
            response = exc
        except (OSError, ValueError) as exc:
            raise ToolError(
                f"http tool {label}: do: {exc}", {"duration_ms": _elapsed_ms(start)}
            ) from exc

        with closing(response):
            status = response.getcode()
            read_error: Optional[OSError] = None
            try:
                raw = response.read(_MAX_BODY) or b""
            except OSError as exc:
                raw, read_error = b"", exc
        metadata = {
            "http_status": str(status),
            "bytes": str(len(raw)),
            "duration_ms": _elapsed_ms(start),
        }
        if read_error is not None:
            raise ToolError(f"http tool {label}: read body: {read_error}", metadata)
        if not 200 <= status < 300:
            raise ToolError(
                f"http tool {label}: status {status}: {trim_body(raw)}", metadata
            )
        shaped = _shaped_output(raw)
        if shaped:
            return shaped, metadata
        return raw.decode("utf-8", errors="replace"), metadata


def _shaped_output(raw: bytes) -> str:
    try:
        decoded = json.loads(raw)
    except ValueError:
        return ""
    if not isinstance(decoded, dict):
        return ""
    output = decoded.get("output", "")
    return output if isinstance(output, str) else ""


def _typed(raw: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = raw.get(key)
    if value is None:
        return default
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ValueError(f"decode http spec: field {_quote(key)} has the wrong type")
    return value


def http_kind_factory(spec: Spec) -> HttpTool:
    """Build an :class:`HttpTool` from a manifest entry of kind ``http``."""
    raw = spec.raw
    url = _typed(raw, "url", str, "")
    method = _typed(raw, "method", str, "")
    headers = _typed(raw, "headers", dict, {})
    if not all(isinstance(v, str) for v in headers.values()):
        raise ValueError('decode http spec: field "headers" has the wrong type')
    timeout_ms = _typed(raw, "timeout_ms", int, 0)
    if not url:
        raise ValueError('http tool: missing "url"')
    return HttpTool(
        name=spec.name,
        url=url,
        method=method or _DEFAULT_METHOD,
        headers=dict(headers),
        timeout_ms=timeout_ms or _DEFAULT_TIMEOUT_MS,
    )