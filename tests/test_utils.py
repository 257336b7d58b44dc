"""Unit tests for utility functions (repoforge.utils).

Tests cover:
- run_command (success, failure, timeout, cwd, env, missing executable)
- save_json
- format_duration
- Rich output helpers
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from repoforge.utils import (
    format_duration,
    print_debug,
    print_error,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
    run_command,
    save_json,
)


class TestRunCommand:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success(self):
        rc, out, err = await run_command([sys.executable, "-c", "print('hello')"])
        assert rc == 0
        assert out == "hello"
        assert err == ""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failure(self):
        rc, _, err = await run_command(
            [sys.executable, "-c", "import sys; sys.stderr.write('bad'); sys.exit(3)"]
        )
        assert rc == 3
        assert err == "bad"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cwd(self, tmp_path: Path):
        rc, out, _ = await run_command([sys.executable, "-c", "import os; print(os.getcwd())"], cwd=tmp_path)
        assert rc == 0
        assert Path(out).resolve() == tmp_path.resolve()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_env(self):
        rc, out, _ = await run_command(
            [sys.executable, "-c", "import os; print(os.environ['REPOFORGE_TEST'])"],
            env={"REPOFORGE_TEST": "42"},
        )
        assert rc == 0
        assert out == "42"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self):
        rc, _, err = await run_command([sys.executable, "-c", "import time; time.sleep(10)"], timeout=1)
        assert rc == -1
        assert "timed out" in err

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_executable(self):
        rc, _, err = await run_command(["repoforge-no-such-binary"])
        assert rc == 127
        assert "not found" in err

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_result_ok(self):
        result = await run_command([sys.executable, "-c", "pass"])
        assert result.ok
        assert result.returncode == 0


class TestJsonIO:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_save_creates_parents(self, tmp_path: Path):
        path = tmp_path / "a" / "b" / "log.json"
        await save_json({"status": "completed", "path": Path("/x")}, path)
        assert json.loads(path.read_text(encoding="utf-8")) == {"status": "completed", "path": "/x"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_save_ends_with_newline(self, tmp_path: Path):
        path = tmp_path / "log.json"
        await save_json([1, 2], path)
        assert path.read_text(encoding="utf-8").endswith("]\n")


class TestFormatDuration:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "seconds, expected",
        [(0.0, "0.0s"), (3.7, "3.7s"), (65.2, "1m 5s"), (3661.0, "1h 1m 1s"), (-5, "0.0s")],
    )
    def test_format(self, seconds: float, expected: str):
        assert format_duration(seconds) == expected


class TestOutputHelpers:
    @pytest.mark.unit
    def test_helpers_print(self, capsys):
        print_stage_header(2, 10, "create-structure")
        print_success("done")
        print_warning("careful")
        print_error("broken")
        print_summary_table({"Project": "demo-api"}, title="Summary")
        out = capsys.readouterr().out
        for fragment in ("[2/10] create-structure", "done", "careful", "broken", "demo-api"):
            assert fragment in out

    @pytest.mark.unit
    def test_debug_respects_flag(self, capsys):
        print_debug("hidden", enabled=False)
        print_debug("shown", enabled=True)
        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out
