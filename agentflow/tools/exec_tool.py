"""The built-in ``exec`` tool kind."""

from __future__ import annotations

import json
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import Optional

from agentflow.tool_node import ToolError
from agentflow.tools.spec import Spec, trim_body

_MAX_STDOUT = 1 << 20
_MAX_STDERR = 1 << 14
_DEFAULT_TIMEOUT_MS = 30_000


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _elapsed_ms(start: float) -> str:
    return str(int((time.monotonic() - start) * 1000))


def _describe_exit(returncode: int) -> str:
    if returncode >= 0:
        return f"exit status {returncode}"
    description = signal.strsignal(-returncode) or str(-returncode)
    return f"signal: {description.lower()}"


@dataclass(frozen=True)
class ExecTool:
    """Runs a command with the JSON arguments on stdin and returns its stdout.

    The manifest is trusted input: the command runs unsandboxed on the host.
    """

    name: str
    command: tuple[str, ...]
    timeout_ms: int = _DEFAULT_TIMEOUT_MS

    def execute(self, args: Optional[bytes] = None) -> str:
        output, _ = self.execute_with_metadata(args)
        return output

    def execute_with_metadata(
        self, args: Optional[bytes] = None
    ) -> tuple[str, dict[str, str]]:
        """Run the command and return ``(stdout, metadata)``.

        Metadata holds ``exit_code`` and ``duration_ms``; on timeout the
        raised :class:`ToolError` carries ``signal="timeout"`` instead of
        an exit code.
        """
        body = bytes(args) if args else b"{}"
        label = _quote(self.name)
        start = time.monotonic()
        try:
            process = subprocess.Popen(
                list(self.command),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise ToolError(
                f"exec tool {label}: {exc} (stderr: )",
                {"duration_ms": _elapsed_ms(start)},
            ) from exc

        with process:
            try:
                stdout, stderr = process.communicate(body, timeout=self.timeout_ms / 1000)
            except subprocess.TimeoutExpired:
                process.kill()
                raise ToolError(
                    f"exec tool {label}: timeout after {self.timeout_ms} ms",
                    {"signal": "timeout", "duration_ms": _elapsed_ms(start)},
                ) from None
        duration = _elapsed_ms(start)
        returncode = process.returncode
        exit_code = str(returncode if returncode >= 0 else -1)
        metadata = {"exit_code": exit_code, "duration_ms": duration}
        if returncode != 0:
            raise ToolError(
                f"exec tool {label}: {_describe_exit(returncode)} "
                f"(stderr: {trim_body(stderr[:_MAX_STDERR])})",
                metadata,
            )
        output = stdout[:_MAX_STDOUT].decode("utf-8", errors="replace")
        return output.rstrip("\r\n"), metadata


def exec_kind_factory(spec: Spec) -> ExecTool:
    """Build an :class:`ExecTool` from a manifest entry of kind ``exec``."""
    raw = spec.raw
    command = raw.get("command")
    if command is None:
        command = []
    if not isinstance(command, list) or not all(isinstance(a, str) for a in command):
        raise ValueError('decode exec spec: field "command" has the wrong type')
    timeout_ms = raw.get("timeout_ms")
    if timeout_ms is None:
        timeout_ms = 0
    if not isinstance(timeout_ms, int) or isinstance(timeout_ms, bool):
        raise ValueError('decode exec spec: field "timeout_ms" has the wrong type')
    if not command:
        raise ValueError('exec tool: missing "command"')
    return ExecTool(
        name=spec.name,
        command=tuple(command),
        timeout_ms=timeout_ms or _DEFAULT_TIMEOUT_MS,
    )