"""Closing stages: validation gate and version-control finalisation."""

from __future__ import annotations

from pathlib import Path

from repoforge.errors import StageError
from repoforge.stages.base import Stage, StageContext
from repoforge.utils import run_command
from repoforge.validator import Validator

GIT_TIMEOUT = 60
INSTALL_TIMEOUT = 900


class ValidateStage(Stage):
    """Run the validator and store its report on the context.

    Fails when any check fails, which keeps ``finalize`` from running.
    """

    name = "validate"

    def __init__(self, validator: Validator | None = None) -> None:
        self.validator = validator or Validator()

    async def action(self, ctx: StageContext) -> list[Path]:
        ctx.report = await self.validator.validate(ctx.project_path, ctx.config)
        if not ctx.report.passed:
            failed = ctx.report.failed_checks
            details = "; ".join(f"{name}: {ctx.report.checks[name].detail}" for name in failed)
            raise StageError("validation-failed", details)
        return []


class FinalizeStage(Stage):
    """Initialise git, optionally install dependencies, and commit everything."""

    name = "finalize"

    def precondition(self, ctx: StageContext) -> str | None:
        if ctx.report is None:
            return "project has not been validated"
        if not ctx.report.passed:
            return f"validation failed: {', '.join(ctx.report.failed_checks)}"
        return None

    async def action(self, ctx: StageContext) -> list[Path]:
        root = ctx.project_path

        await self._git(ctx, ["init"])

        if ctx.settings.install_dependencies:
            cmd = ctx.profile.install_command
            result = await run_command(cmd, cwd=root, timeout=INSTALL_TIMEOUT)
            if not result.ok:
                raise StageError(
                    "install-failed", f"{' '.join(cmd)} exited {result.returncode}: {result.stderr}"
                )

        await self._git(ctx, ["add", "-A"])

        if await self._git(ctx, ["status", "--porcelain"]):
            await self._git(ctx, [*await self._identity(ctx), "commit", "-m", ctx.settings.commit_message])

        return [root / ".git"]

    @staticmethod
    async def _git(ctx: StageContext, args: list[str]) -> str:
        result = await run_command(["git", *args], cwd=ctx.project_path, timeout=GIT_TIMEOUT)
        if not result.ok:
            verb = next(a for a in args if not a.startswith("-") and "=" not in a)
            raise StageError(
                "git-failed", f"git {verb} exited {result.returncode}: {result.stderr or result.stdout}"
            )
        return result.stdout

    @staticmethod
    async def _identity(ctx: StageContext) -> list[str]:
        """``-c`` overrides for the commit author when git has no identity configured."""
        configured = await run_command(
            ["git", "config", "user.email"], cwd=ctx.project_path, timeout=GIT_TIMEOUT
        )
        if configured.ok and configured.stdout:
            return []
        return [
            "-c",
            f"user.name={ctx.settings.git_author_name}",
            "-c",
            f"user.email={ctx.settings.git_author_email}",
        ]
