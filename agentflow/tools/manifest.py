"""Loading tool manifests and resolving their entries into tools."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import IO, Any, Optional, Union

from agentflow.tool_node import Tool
from agentflow.tools.exec_tool import exec_kind_factory
from agentflow.tools.http_tool import http_kind_factory
from agentflow.tools.spec import Spec

KindFactory = Callable[[Spec], Tool]
_Source = Union[str, bytes, bytearray, IO[str], IO[bytes]]


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


class ManifestError(ValueError):
    """A manifest could not be loaded or resolved; ``issues`` lists every fault."""

    def __init__(self, message: str, issues: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.issues = list(issues or [])


@dataclass
class Manifest:
    """A flat list of named tool specifications."""

    tools: list[Spec] = field(default_factory=list)


class KindRegistry:
    """Maps a manifest kind to the factory that builds its tools. Thread-safe."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._factories: dict[str, KindFactory] = {}
        self.register_kind("http", http_kind_factory)
        self.register_kind("exec", exec_kind_factory)

    def register_kind(self, name: str, factory: KindFactory) -> None:
        """Add ``factory`` under ``name``; duplicate names raise :class:`ManifestError`."""
        if not name:
            raise ManifestError("flow/tools: register kind: empty name")
        if factory is None:
            raise ManifestError("flow/tools: register kind: no factory")
        with self._lock:
            if name in self._factories:
                raise ManifestError(
                    f"flow/tools: register kind: {_quote(name)} already registered"
                )
            self._factories[name] = factory

    def build(self, manifest: Manifest) -> list[Tool]:
        """Resolve every entry into a tool, reporting all bad entries at once."""
        tools: list[Tool] = []
        seen: set[str] = set()
        issues: list[str] = []
        for index, spec in enumerate(manifest.tools):
            if not spec.name:
                issues.append(f"tools[{index}]: empty name")
                continue
            label = _quote(spec.name)
            if not spec.kind:
                issues.append(f"tools[{label}]: empty kind")
                continue
            if spec.name in seen:
                issues.append(f"tools[{label}]: duplicate name")
                continue
            with self._lock:
                factory = self._factories.get(spec.kind)
            if factory is None:
                issues.append(f"tools[{label}]: unknown kind {_quote(spec.kind)}")
                continue
            try:
                tool = factory(spec)
            except Exception as exc:
                issues.append(f"tools[{label}]: {exc}")
                continue
            seen.add(spec.name)
            tools.append(tool)
        if issues:
            raise ManifestError(
                f"flow/tools: {len(issues)} issue(s): [{' '.join(issues)}]", issues
            )
        return tools


def _read(source: _Source) -> Union[str, bytes]:
    if isinstance(source, (str, bytes, bytearray)):
        return bytes(source) if isinstance(source, bytearray) else source
    try:
        return source.read()
    except OSError as exc:
        raise ManifestError(f"flow/tools: load: {exc}") from exc


def _entry_field(entry: dict[str, Any], key: str, index: int) -> str:
    value = entry.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ManifestError(
            f"flow/tools: load: tools[{index}]: field {_quote(key)} must be a string"
        )
    return value


def load_manifest(source: _Source) -> Manifest:
    """Parse a manifest from JSON text, bytes or a readable stream.

    Unknown top-level fields are rejected; each entry keeps its full
    object in :attr:`Spec.raw` for the kind's own decoding.
    """
    text = _read(source)
    try:
        document = json.loads(text)
    except ValueError as exc:
        raise ManifestError(f"flow/tools: load: {exc}") from exc
    if document is None:
        return Manifest()
    if not isinstance(document, dict):
        raise ManifestError("flow/tools: load: expected a JSON object")
    for key in document:
        if key != "tools":
            raise ManifestError(f"flow/tools: load: unknown field {_quote(key)}")
    entries = document.get("tools")
    if entries is None:
        return Manifest()
    if not isinstance(entries, list):
        raise ManifestError('flow/tools: load: field "tools" must be an array')

    specs: list[Spec] = []
    for index, entry in enumerate(entries):
        if entry is None:
            specs.append(Spec(name="", kind=""))
            continue
        if not isinstance(entry, dict):
            raise ManifestError(f"flow/tools: load: tools[{index}]: expected a JSON object")
        specs.append(
            Spec(
                name=_entry_field(entry, "name", index),
                kind=_entry_field(entry, "kind", index),
                raw=entry,
            )
        )
    return Manifest(tools=specs)


def load_and_build(source: _Source, registry: Optional[KindRegistry] = None) -> list[Tool]:
    """Load a manifest and resolve every entry into a tool."""
    manifest = load_manifest(source)
    return (registry or KindRegistry()).build(manifest)