"""Documentation stage: README, agent guide, security/API docs and compliance report."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from repoforge.models import ComplianceFramework, Feature, ProjectType
from repoforge.stages.base import Stage, StageContext
from repoforge.stages.features import CODING, SECURITY


class DocumentationStage(Stage):
    """Write README.md, CLAUDE.md and the docs/ set.

    ``docs/API.md`` is produced for API-shaped projects, and ``docs/SSP.json``
    (a system security plan skeleton) when NIST reports are requested.
    """

    name = "generate-documentation"
    standards = (CODING, SECURITY)

    def wants_api_docs(self, ctx: StageContext) -> bool:
        cfg = ctx.config
        return Feature.API in cfg.features or cfg.type in (ProjectType.API, ProjectType.MICROSERVICE)

    def wants_ssp(self, ctx: StageContext) -> bool:
        compliance = ctx.config.compliance
        return compliance.generate_reports and ComplianceFramework.NIST in compliance.frameworks

    async def action(self, ctx: StageContext) -> list[Path]:
        cfg = ctx.config
        profile = ctx.profile
        entries: dict[str, str | None] = {}

        entries["README.md"] = await self.generate(
            ctx,
            f"Write README.md for '{cfg.name}'. Cover purpose, features, prerequisites, "
            f"installation (`{' '.join(profile.install_command)}`), configuration, running, "
            f"testing, deployment to {cfg.deployment.platform.value}, and security notes.",
            output_language="markdown",
        )
        entries["CLAUDE.md"] = ctx.renderer.render("CLAUDE.md.j2", ctx.template_context())
        entries["docs/SECURITY.md"] = await self.generate(
            ctx,
            "Write docs/SECURITY.md: threat model summary, authentication and authorization "
            "design, implemented controls with their identifiers, vulnerability reporting "
            "process.",
            output_language="markdown",
        )
        if self.wants_api_docs(ctx):
            entries["docs/API.md"] = await self.generate(
                ctx,
                "Write docs/API.md: every endpoint with method, path, request and response "
                "schema, authentication requirements and error codes.",
                output_language="markdown",
            )
        if self.wants_ssp(ctx):
            entries["docs/SSP.json"] = system_security_plan(ctx)

        return await ctx.writer.write_tree(entries)


def system_security_plan(ctx: StageContext) -> str:
    """Render a minimal NIST system security plan for the configured controls."""
    cfg = ctx.config
    plan = {
        "system": cfg.name,
        "compliance": [f.value for f in cfg.compliance.frameworks],
        "generated_at": datetime.now(timezone.utc).date().isoformat(),
        "authentication": cfg.security.authentication.value,
        "authorization": cfg.security.authorization.value,
        "continuous_monitoring": cfg.compliance.continuous_monitoring,
        "controls": [
            {"id": control, "status": "implemented", "evidence": ctx.profile.security_file}
            for control in cfg.security.controls
        ],
    }
    return json.dumps(plan, indent=2) + "\n"
