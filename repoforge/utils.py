"""Process execution, run-log persistence and console output for RepoForge."""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, NamedTuple

from rich.console import Console
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

console = Console()


class CommandResult(NamedTuple):
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _decode(raw: bytes | None) -> str:
    return (raw or b"").decode("utf-8", errors="replace").strip()


async def run_command(
    cmd: Sequence[str],
    cwd: str | Path | None = None,
    timeout: float = 120,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run *cmd* without a shell and capture its output.

    Nothing is raised for the usual failure modes: a missing executable
    yields returncode 127 and a timeout kills the child and yields -1.
    *env* is layered over the current environment.

    Args:
        cmd: Executable and arguments.
        cwd: Working directory for the child.
        timeout: Seconds to wait before killing the child.
        env: Extra environment variables.

    Returns:
        A ``CommandResult`` with the exit code and stripped output.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=None if cwd is None else str(cwd),
            env=None if not env else {**os.environ, **env},
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        return CommandResult(127, "", f"{cmd[0]}: command not found")

    try:
        out, err = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return CommandResult(-1, "", f"{cmd[0]} timed out after {timeout:g}s")

    return CommandResult(proc.returncode or 0, _decode(out), _decode(err))


async def save_json(data: Any, path: str | Path) -> None:
    """Write *data* as indented JSON, creating parent directories.

    Values JSON cannot encode natively (paths, datetimes) go through ``str``.
    The file I/O happens on a worker thread.
    """
    target = Path(path)
    payload = json.dumps(data, indent=2, ensure_ascii=False, default=str) + "\n"

    def _write() -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(payload, encoding="utf-8")

    await asyncio.to_thread(_write)


def format_duration(seconds: float) -> str:
    """``3.7`` -> ``"3.7s"``, ``65.2`` -> ``"1m 5s"``, ``3661`` -> ``"1h 1m 1s"``."""
    if seconds < 60:
        return f"{max(seconds, 0.0):.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"


# ---------------------------------------------------------------------------
# Console output
# ---------------------------------------------------------------------------


def _emit(message: str, style: str) -> None:
    # Text keeps stage names such as "[2/10]" from being parsed as markup.
    console.print(Text(message, style=style))


def print_success(message: str) -> None:
    _emit(message, "bold green")


def print_warning(message: str) -> None:
    _emit(message, "bold yellow")


def print_error(message: str) -> None:
    _emit(message, "bold red")


def print_debug(message: str, enabled: bool = True) -> None:
    """Dimmed detail line, shown only when *enabled* (``--verbose``)."""
    if enabled:
        _emit(message, "dim")


def print_stage_header(index: int, total: int, name: str) -> None:
    console.print()
    console.print(Rule(Text(f" [{index}/{total}] {name} ", style="bold bright_cyan"), style="cyan"))


def print_summary_table(rows: Mapping[str, Any], title: str = "Summary") -> None:
    """Two-column key/value table followed by a blank line."""
    table = Table(title=title, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")
    for key, value in rows.items():
        table.add_row(key, Text(str(value)))
    console.print(table)
    console.print()
