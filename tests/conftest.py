"""Shared pytest fixtures for the RepoForge test suite.

Provides reusable fixtures for:
- A local standards directory and settings pointing at it
- The ``demo-api`` project configuration
- A fake code generator that answers without a network
- A ready-to-use ``StageContext``
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from repoforge.ai_client import CodegenResponse, PromptContext
from repoforge.config import DEFAULT_STANDARDS_DOCUMENTS, CodegenSettings, Settings, StandardsSettings
from repoforge.models import ProjectConfig
from repoforge.stages.base import StageContext
from repoforge.standards import StandardsCache
from repoforge.writer import ProjectWriter


# ---------------------------------------------------------------------------
# Fake generator
# ---------------------------------------------------------------------------


class FakeGenerator:
    """Answers every prompt with plausible content.

    Code answers carry a marker for every declared compliance framework so a
    generated project passes validation. ``failures`` maps a stage name to
    the failure reason to return for it.
    """

    def __init__(self, failures: dict[str, str] | None = None, delay: float = 0.0) -> None:
        self.failures = dict(failures or {})
        self.delay = delay
        self.contexts: list[PromptContext] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def stages(self) -> list[str]:
        return [c.stage for c in self.contexts]

    async def generate(self, context: PromptContext) -> CodegenResponse:
        self.contexts.append(context)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

        reason = self.failures.get(context.stage)
        if reason:
            return CodegenResponse(success=False, error="simulated failure", reason=reason, attempts=1)

        if context.output_language == "markdown":
            text = f"# {context.config.name}\n\nWritten for {context.stage}.\n"
        else:
            markers = " ".join(f"{f.marker} AC-2" for f in context.config.compliance.frameworks)
            text = f"// {context.stage}\n// {markers}\nexport const ready = true;\n"
        return CodegenResponse(text=text, model="fake", attempts=1)


# ---------------------------------------------------------------------------
# Standards & settings
# ---------------------------------------------------------------------------


@pytest.fixture
def standards_dir(tmp_path: Path) -> Path:
    """Local directory holding every default standards document."""
    root = tmp_path / "standards"
    root.mkdir()
    for name in DEFAULT_STANDARDS_DOCUMENTS:
        (root / name).write_text(f"# {name}\n\nRule text for {name}.\n" * 50, encoding="utf-8")
    return root


@pytest.fixture
def settings(tmp_path: Path, standards_dir: Path) -> Settings:
    """Settings that write under tmp_path and never sleep between retries."""
    return Settings(
        output_dir=tmp_path / "out",
        codegen=CodegenSettings(backoff_base=0.0, max_attempts=3),
        standards=StandardsSettings(source=str(standards_dir)),
    )


@pytest.fixture
def standards_cache() -> StandardsCache:
    return StandardsCache({name: f"# {name}\n" + "x" * 5000 for name in DEFAULT_STANDARDS_DOCUMENTS})


# ---------------------------------------------------------------------------
# Project configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def demo_config() -> ProjectConfig:
    """The reference ``demo-api`` project."""
    return ProjectConfig(
        name="demo-api",
        type="api",
        language="typescript",
        framework="express",
        features=["Authentication", "Database"],
        compliance={"frameworks": ["NIST"]},
    )


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def stage_context(
    settings: Settings,
    demo_config: ProjectConfig,
    fake_generator: FakeGenerator,
    standards_cache: StandardsCache,
) -> StageContext:
    """Context with the standards loaded and an existing project directory."""
    project = settings.project_path(demo_config.name)
    project.mkdir(parents=True)
    return StageContext(
        config=demo_config,
        settings=settings,
        client=fake_generator,
        writer=ProjectWriter(project),
        standards=standards_cache,
    )
