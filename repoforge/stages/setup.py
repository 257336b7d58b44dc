"""Stages that prepare a run: standards loading and the project skeleton."""

from __future__ import annotations

from pathlib import Path

from repoforge.errors import StageError
from repoforge.languages import BASE_DIRECTORIES
from repoforge.stages.base import Stage, StageContext
from repoforge.standards import StandardsLoader


class LoadStandardsStage(Stage):
    """Populate the run's standards cache. Any missing document is fatal."""

    name = "load-standards"

    async def action(self, ctx: StageContext) -> list[Path]:
        if ctx.standards is not None:
            raise StageError("standards-already-loaded", "the cache is populated once per run")
        ctx.standards = await StandardsLoader(ctx.settings.standards).load()
        return []


class CreateStructureStage(Stage):
    """Create the directory skeleton and the configuration files around it."""

    name = "create-structure"

    def entries(self, ctx: StageContext) -> dict[str, str | None]:
        """Everything this stage writes, relative to the project root."""
        profile = ctx.profile
        context = ctx.template_context()
        entries: dict[str, str | None] = {d: None for d in BASE_DIRECTORIES}
        entries.update({d: None for d in profile.extra_directories})
        entries[".gitignore"] = ctx.renderer.render("gitignore.j2", context)
        entries[profile.manifest_file] = ctx.renderer.render(profile.manifest_template, context)
        entries[".claude/config.yaml"] = ctx.renderer.render("claude/config.yaml.j2", context)
        entries[f"{ctx.settings.state_dir}/config.yaml"] = ctx.config.to_yaml()
        return entries

    async def action(self, ctx: StageContext) -> list[Path]:
        return await ctx.writer.write_tree(self.entries(ctx))
