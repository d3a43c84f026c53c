"""Tool-backed flow nodes and the in-memory tool lookup they resolve against."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union, runtime_checkable

TYPE_TOOL = "tool"

Metadata = Optional[dict[str, str]]
_RawJSON = Union[str, bytes, bytearray]


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


@runtime_checkable
class Tool(Protocol):
    """A named callable that takes raw JSON arguments and returns text."""

    name: str

    def execute(self, args: bytes) -> str:
        """Run the tool with the JSON-encoded ``args`` and return its output."""


@runtime_checkable
class MetadataAwareTool(Tool, Protocol):
    """A tool that also reports side-channel metadata about each call."""

    def execute_with_metadata(self, args: bytes) -> tuple[str, Metadata]:
        """Run the tool and return ``(output, metadata)``.

        On failure the tool raises :class:`ToolError`; its ``metadata``
        attribute carries whatever was gathered before the failure.
        """


class ToolError(Exception):
    """A tool call failed; ``metadata`` keeps any signal gathered so far."""

    def __init__(self, message: str, metadata: Metadata = None) -> None:
        super().__init__(message)
        self.metadata = metadata


class ToolNodeError(ToolError):
    """A tool node could not be built or its tool call failed."""


@dataclass(frozen=True)
class Port:
    """A named input or output slot on a node."""

    name: str
    type: str = ""


class _ToolLookup(Protocol):
    def lookup(self, name: str) -> Optional[Tool]: ...


class ToolMap(dict):
    """A plain mapping from tool name to tool, usable as a tool lookup."""

    def lookup(self, name: str) -> Optional[Tool]:
        """Return the tool registered under ``name``, or ``None``."""
        return self.get(name)


@dataclass(frozen=True)
class ToolNode:
    """A flow node that forwards its ``input`` port to a tool call."""

    tool: Tool
    args: Optional[_RawJSON] = None

    def inputs(self) -> list[Port]:
        return [Port(name="input", type="string")]

    def outputs(self) -> list[Port]:
        return [Port(name="output", type="string")]

    def run(self, inputs: Mapping[str, str]) -> dict[str, str]:
        """Run the tool and return the node's output ports."""
        outputs, _ = self.run_with_metadata(inputs)
        return outputs

    def run_with_metadata(self, inputs: Mapping[str, str]) -> tuple[dict[str, str], Metadata]:
        """Run the tool and return ``(outputs, metadata)``.

        Metadata is ``None`` for tools that do not report any. When a
        metadata-aware tool fails, the raised :class:`ToolNodeError`
        keeps the tool's metadata.
        """
        merged = self._decode_args()
        if "input" in inputs:
            merged["input"] = inputs["input"]
        try:
            raw = json.dumps(
                merged, ensure_ascii=False, sort_keys=True, separators=(",", ":")
            ).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise ToolNodeError(f"tool node {self._label}: encode args: {exc}") from exc

        if isinstance(self.tool, MetadataAwareTool):
            try:
                output, metadata = self.tool.execute_with_metadata(raw)
            except Exception as exc:
                raise ToolNodeError(
                    f"tool node {self._label}: execute: {exc}",
                    metadata=getattr(exc, "metadata", None),
                ) from exc
            return {"output": output}, metadata

        try:
            output = self.tool.execute(raw)
        except Exception as exc:
            raise ToolNodeError(f"tool node {self._label}: execute: {exc}") from exc
        return {"output": output}, None

    @property
    def _label(self) -> str:
        return _quote(self.tool.name)

    def _decode_args(self) -> dict[str, Any]:
        if not self.args:
            return {}
        try:
            decoded = json.loads(self.args)
        except ValueError as exc:
            raise ToolNodeError(f"tool node {self._label}: decode args: {exc}") from exc
        if decoded is None:
            return {}
        if not isinstance(decoded, dict):
            raise ToolNodeError(
                f"tool node {self._label}: decode args: expected a JSON object"
            )
        return dict(decoded)


def _parse_config(config: Union[Mapping[str, Any], _RawJSON, None]) -> dict[str, Any]:
    if config is None:
        return {}
    if isinstance(config, Mapping):
        return dict(config)
    if not config:
        return {}
    try:
        decoded = json.loads(config)
    except ValueError as exc:
        raise ToolNodeError(f"tool node config: {exc}") from exc
    if decoded is None:
        return {}
    if not isinstance(decoded, dict):
        raise ToolNodeError("tool node config: expected a JSON object")
    return decoded


def build_tool_node(
    config: Union[Mapping[str, Any], _RawJSON, None],
    tools: Optional[_ToolLookup],
) -> ToolNode:
    """Build a :class:`ToolNode` from its node config.

    ``config`` is a mapping or JSON text with a required ``"tool"`` name
    and optional static ``"args"``; the tool is resolved through ``tools``.
    """
    settings = _parse_config(config)
    tool_name = settings.get("tool", "")
    if not isinstance(tool_name, str):
        raise ToolNodeError('tool node config: "tool" must be a string')
    if not tool_name:
        raise ToolNodeError('tool node config: missing "tool"')
    if tools is None:
        raise ToolNodeError("tool node: tool lookup is None")
    tool = tools.lookup(tool_name)
    if tool is None:
        raise ToolNodeError(f"tool node: unknown tool {_quote(tool_name)}")
    args = settings.get("args")
    raw_args = None if args is None else json.dumps(args, ensure_ascii=False)
    return ToolNode(tool=tool, args=raw_args)