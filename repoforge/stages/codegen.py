"""AI-backed stages for the application core, its security layer and tests."""

from __future__ import annotations

from pathlib import Path

from repoforge.stages.base import Stage, StageContext
from repoforge.stages.features import CODING, SECURITY

TESTING = "TESTING_STANDARDS.md"


def _describe(ctx: StageContext) -> str:
    cfg = ctx.config
    framework = f" with {cfg.framework}" if cfg.framework else ""
    return f"a {cfg.type.value} project using {cfg.language.value}{framework}"


class CoreCodeStage(Stage):
    """Generate the application entry point."""

    name = "generate-core-code"
    standards = (CODING,)

    async def action(self, ctx: StageContext) -> list[Path]:
        features = ", ".join(f.value for f in ctx.config.features) or "none"
        task = (
            f"Generate the main application code for {_describe(ctx)}.\n\n"
            "Include:\n"
            "1. Main entry point\n"
            "2. Router/controller setup\n"
            "3. Middleware configuration\n"
            "4. Error handling\n"
            "5. Health check endpoint\n"
            "6. Compliance markers for every security feature\n\n"
            f"Feature modules live under src/features/ ({features}); wire them in."
        )
        code = await self.generate(ctx, task)
        return [await ctx.writer.write_file(ctx.profile.entry_file, code)]


class SecurityStage(Stage):
    """Generate the security module carrying the compliance-control markers."""

    name = "implement-security"
    standards = (SECURITY,)

    async def action(self, ctx: StageContext) -> list[Path]:
        sec = ctx.config.security
        frameworks = ctx.config.compliance.frameworks
        toggles = [
            label
            for label, enabled in (
                ("encryption utilities", sec.encryption),
                ("rate limiting", sec.rate_limit),
                ("security monitoring hooks", sec.monitoring),
            )
            if enabled
        ]
        lines = [
            f"Generate the security implementation for {_describe(ctx)}:",
            f"- Authentication: {sec.authentication.value}",
            f"- Authorization: {sec.authorization.value}",
            f"- Controls: {', '.join(sec.controls) or 'none'}",
            "",
            "Include authentication middleware, authorization policies, input "
            "validation, security headers and audit logging"
            + (f", plus {', '.join(toggles)}." if toggles else "."),
        ]
        if frameworks:
            markers = ", ".join(f"`{f.marker} <control>`" for f in frameworks)
            lines.extend(
                [
                    "",
                    f"Compliance frameworks: {', '.join(f.value for f in frameworks)}. "
                    f"Annotate each implemented control with its marker ({markers}).",
                ]
            )
        code = await self.generate(ctx, "\n".join(lines))
        return [await ctx.writer.write_file(ctx.profile.security_file, code)]


class TestsStage(Stage):
    """Generate the project's test suite."""

    name = "generate-tests"
    standards = (TESTING,)

    async def action(self, ctx: StageContext) -> list[Path]:
        profile = ctx.profile
        modules = [profile.entry_file, profile.security_file] + [
            profile.feature_file(f.slug) for f in ctx.config.features
        ]
        task = (
            f"Generate a comprehensive test suite for {_describe(ctx)}.\n\n"
            "Include unit tests (90% coverage target), integration tests, "
            "security tests and an end-to-end smoke test.\n\n"
            f"Modules under test: {', '.join(modules)}."
        )
        code = await self.generate(ctx, task)
        return [await ctx.writer.write_file(profile.test_file, code)]
