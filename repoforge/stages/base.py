"""Stage abstraction and the per-run context every stage receives.

A stage has a name, a precondition, an action and a postcondition.
``Stage.execute`` runs the three in order and always returns a
``StageResult``: errors raised by the action are converted here, so the
orchestrator is the only place that decides whether a failure aborts the
run.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from repoforge.ai_client import CodegenResponse, PromptContext
from repoforge.config import Settings
from repoforge.errors import PathTraversalError, StageError, StandardsError, WriteError
from repoforge.languages import LanguageProfile, profile_for
from repoforge.models import ProjectConfig, StageResult, ValidationReport
from repoforge.standards import StandardsCache
from repoforge.templates import TemplateRenderer
from repoforge.writer import ProjectWriter


class Generator(Protocol):
    """Anything that can answer a ``PromptContext`` (the real client or a test double)."""

    async def generate(self, context: PromptContext) -> CodegenResponse: ...


# ---------------------------------------------------------------------------
# Run context
# ---------------------------------------------------------------------------


@dataclass
class StageContext:
    """State shared by the stages of one pipeline run.

    ``config`` never changes; ``standards`` is set exactly once by the
    load-standards stage and ``report`` exactly once by the validate stage.
    """

    config: ProjectConfig
    settings: Settings
    client: Generator
    writer: ProjectWriter
    renderer: TemplateRenderer = field(default_factory=TemplateRenderer)
    standards: StandardsCache | None = None
    report: ValidationReport | None = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def project_path(self) -> Path:
        return self.writer.base_path

    @property
    def profile(self) -> LanguageProfile:
        return profile_for(self.config.language)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def excerpts(self, names: tuple[str, ...] | list[str]) -> dict[str, str]:
        """Bounded excerpts of *names* for a prompt."""
        if self.standards is None:
            return {}
        limit = self.settings.standards.excerpt_chars
        return {name: self.standards.excerpt(name, limit) for name in names if name in self.standards}

    def template_context(self) -> dict[str, Any]:
        """Variables available to every Jinja2 template."""
        cfg = self.config
        profile = self.profile
        frameworks = [f.value for f in cfg.compliance.frameworks]
        return {
            "name": cfg.name,
            "type": cfg.type.value,
            "language": cfg.language.value,
            "framework": cfg.framework,
            "features": [
                {"name": f.value, "slug": f.slug, "path": profile.feature_file(f.slug)}
                for f in cfg.features
            ],
            "authentication": cfg.security.authentication.value,
            "authorization": cfg.security.authorization.value,
            "controls": list(cfg.security.controls),
            "compliance_frameworks": frameworks,
            "markers": [f.marker for f in cfg.compliance.frameworks],
            "platform": cfg.deployment.platform.value,
            "cicd": cfg.deployment.cicd.value,
            "monitoring": cfg.deployment.monitoring.value,
            "entry_file": profile.entry_file,
            "install_command": " ".join(profile.install_command),
            "ignore_patterns": profile.ignore_patterns,
            "state_dir": self.settings.state_dir,
            "model": self.settings.codegen.model,
            "temperature": self.settings.codegen.temperature,
            "max_tokens": self.settings.codegen.max_tokens,
            "standards_source": self.settings.standards.source,
            "standards_documents": list(self.settings.standards.documents),
        }


# ---------------------------------------------------------------------------
# Stage
# ---------------------------------------------------------------------------


class Stage(ABC):
    """One unit of the generation pipeline.

    Subclasses set ``name``, optionally ``standards`` (documents their
    prompts draw on) and implement :meth:`action`.
    """

    name: str = ""
    recoverable: bool = False
    standards: tuple[str, ...] = ()
    feature: str | None = None

    def precondition(self, ctx: StageContext) -> str | None:
        """Return why the stage cannot start, or ``None`` if it can."""
        if self.standards:
            if ctx.standards is None:
                return "standards cache not loaded"
            missing = ctx.standards.missing(list(self.standards))
            if missing:
                return f"standards missing from cache: {', '.join(missing)}"
            if not ctx.project_path.is_dir():
                return f"project directory does not exist: {ctx.project_path}"
        return None

    @abstractmethod
    async def action(self, ctx: StageContext) -> list[Path]:
        """Do the work and return the paths written."""

    def postcondition(self, ctx: StageContext, written: list[Path]) -> str | None:
        """Return why the stage's output is unacceptable, or ``None``."""
        absent = [str(p) for p in written if not p.exists()]
        if absent:
            return f"reported artifacts missing on disk: {', '.join(absent)}"
        return None

    async def execute(self, ctx: StageContext) -> StageResult:
        """Run precondition, action and postcondition; never raises for stage errors."""
        start = time.monotonic()

        def _fail(reason: str, detail: str, recoverable: bool) -> StageResult:
            return StageResult.failure(
                self.name,
                reason,
                recoverable=recoverable,
                detail=detail,
                feature=self.feature,
                duration_seconds=time.monotonic() - start,
            )

        unmet = self.precondition(ctx)
        if unmet:
            return _fail("precondition-failed", unmet, False)

        try:
            written = await self.action(ctx)
        except StageError as exc:
            return _fail(exc.reason, str(exc), self.recoverable and exc.recoverable)
        except PathTraversalError as exc:
            return _fail("path-traversal", str(exc), False)
        except WriteError as exc:
            return _fail("write-error", str(exc), False)
        except StandardsError as exc:
            return _fail("standards-unavailable", str(exc), False)
        except OSError as exc:
            return _fail("filesystem-error", str(exc), False)

        broken = self.postcondition(ctx, written)
        if broken:
            return _fail("postcondition-failed", broken, False)

        return StageResult.success(
            self.name,
            [_display_path(ctx, p) for p in written],
            feature=self.feature,
            duration_seconds=time.monotonic() - start,
        )

    # ------------------------------------------------------------------
    # Helpers for AI-backed stages
    # ------------------------------------------------------------------

    async def generate(
        self,
        ctx: StageContext,
        task: str,
        output_language: str | None = None,
    ) -> str:
        """Ask the AI service for one artifact.

        Raises:
            StageError: With the client's failure reason if generation fails.
        """
        context = PromptContext(
            stage=self.name,
            task=task,
            config=ctx.config,
            excerpts=ctx.excerpts(self.standards),
            output_language=ctx.profile.code_fence if output_language is None else output_language,
        )
        response = await ctx.client.generate(context)
        if not response.success:
            raise StageError(
                response.reason or "generation-failed",
                response.error or "",
                recoverable=True,
            )
        return response.text


def _display_path(ctx: StageContext, path: Path) -> str:
    try:
        return ctx.writer.relative(path)
    except ValueError:
        return str(path)
