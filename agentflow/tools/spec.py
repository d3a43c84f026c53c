"""Tool manifest entries and helpers shared by the built-in tool kinds.

A manifest names every tool a flow can reach and gives each one a kind.
The built-in kinds are ``http`` (send the JSON arguments to a URL and
use the response as output) and ``exec`` (run a command with the JSON
arguments on stdin and use its stdout as output). Further kinds plug in
through a kind registry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

_TRIM_LIMIT = 256


@dataclass
class Spec:
    """One manifest entry: its name, its kind and the full entry object."""

    name: str
    kind: str
    raw: dict[str, Any] = field(default_factory=dict)


def trim_body(data: Union[bytes, bytearray, str]) -> str:
    """Strip surrounding whitespace and cut to 256 bytes, marking a cut with "…"."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    stripped = bytes(data).strip()
    if len(stripped) <= _TRIM_LIMIT:
        return stripped.decode("utf-8", errors="replace")
    return stripped[:_TRIM_LIMIT].decode("utf-8", errors="ignore") + "…"