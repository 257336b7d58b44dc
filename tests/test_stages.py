"""Unit tests for the individual pipeline stages (repoforge.stages)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from repoforge.ai_client import REASON_NON_TRANSIENT
from repoforge.errors import StageError
from repoforge.languages import BASE_DIRECTORIES, PROFILES
from repoforge.models import CISystem, Feature, Language, ProjectConfig, StageStatus
from repoforge.stages import (
    CoreCodeStage,
    CreateStructureStage,
    DocumentationStage,
    FEATURE_SPECS,
    FeatureCodeStage,
    FinalizeStage,
    LoadStandardsStage,
    SecurityStage,
    Stage,
    StageContext,
    ValidateStage,
    WorkflowsStage,
)
from repoforge.stages import TestsStage as GenerateTestsStage
from repoforge.standards import StandardsCache

from conftest import FakeGenerator


class _Boom(Stage):
    name = "boom"

    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    async def action(self, ctx: StageContext) -> list[Path]:
        raise self.exc


class _Liar(Stage):
    name = "liar"

    async def action(self, ctx: StageContext) -> list[Path]:
        return [ctx.project_path / "never-written.txt"]


# ---------------------------------------------------------------------------
# Stage.execute
# ---------------------------------------------------------------------------


class TestExecute:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stage_error_becomes_failure(self, stage_context: StageContext):
        result = await _Boom(StageError("bad-thing", "detail")).execute(stage_context)
        assert result.status == StageStatus.FAILED
        assert result.reason == "bad-thing"
        assert result.recoverable is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_recoverable_only_for_recoverable_stages(self, stage_context: StageContext):
        stage = _Boom(StageError("x", recoverable=True))
        assert (await stage.execute(stage_context)).recoverable is False
        stage.recoverable = True
        assert (await stage.execute(stage_context)).recoverable is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_os_error_becomes_failure(self, stage_context: StageContext):
        result = await _Boom(PermissionError("denied")).execute(stage_context)
        assert result.reason == "filesystem-error"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_postcondition_checks_artifacts(self, stage_context: StageContext):
        result = await _Liar().execute(stage_context)
        assert result.reason == "postcondition-failed"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_precondition_requires_standards(self, stage_context: StageContext):
        stage_context.standards = None
        result = await CoreCodeStage().execute(stage_context)
        assert result.reason == "precondition-failed"
        assert "not loaded" in result.detail

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_precondition_requires_documents(self, stage_context: StageContext):
        stage_context.standards = StandardsCache({"CODING_STANDARDS.md": "x"})
        result = await SecurityStage().execute(stage_context)
        assert result.reason == "precondition-failed"
        assert "MODERN_SECURITY_STANDARDS.md" in result.detail

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_precondition_requires_project_dir(self, stage_context: StageContext):
        stage_context.project_path.rmdir()
        result = await CoreCodeStage().execute(stage_context)
        assert result.reason == "precondition-failed"


# ---------------------------------------------------------------------------
# Setup stages
# ---------------------------------------------------------------------------


class TestLoadStandards:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_populates_cache(self, stage_context: StageContext):
        stage_context.standards = None
        result = await LoadStandardsStage().execute(stage_context)
        assert result.ok
        assert result.artifacts == []
        assert len(stage_context.standards) == 5

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_loaded_once(self, stage_context: StageContext):
        result = await LoadStandardsStage().execute(stage_context)
        assert result.reason == "standards-already-loaded"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_standards_fatal(self, stage_context: StageContext, standards_dir: Path):
        stage_context.standards = None
        (standards_dir / "UNIFIED_STANDARDS.md").unlink()
        result = await LoadStandardsStage().execute(stage_context)
        assert result.reason == "standards-unavailable"
        assert result.recoverable is False


class TestCreateStructure:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_skeleton(self, stage_context: StageContext):
        result = await CreateStructureStage().execute(stage_context)
        root = stage_context.project_path
        assert result.ok
        for directory in BASE_DIRECTORIES + PROFILES[Language.TYPESCRIPT].extra_directories:
            assert (root / directory).is_dir(), directory
        assert (root / ".gitignore").is_file()
        assert json.loads((root / "package.json").read_text())["name"] == "demo-api"
        assert (root / ".claude/config.yaml").is_file()
        assert "package.json" in result.artifacts

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_persists_reloadable_config(self, stage_context: StageContext):
        await CreateStructureStage().execute(stage_context)
        saved = stage_context.settings.project_config_path(stage_context.config.name)
        assert ProjectConfig.load(saved) == stage_context.config

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("language", list(Language))
    async def test_manifest_per_language(self, stage_context: StageContext, language: Language):
        stage_context.config = ProjectConfig(name="lib", type="library", language=language)
        await CreateStructureStage().execute(stage_context)
        assert (stage_context.project_path / PROFILES[language].manifest_file).is_file()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, stage_context: StageContext):
        await CreateStructureStage().execute(stage_context)
        gitignore = (stage_context.project_path / ".gitignore").read_text()
        result = await CreateStructureStage().execute(stage_context)
        assert result.ok
        assert (stage_context.project_path / ".gitignore").read_text() == gitignore


# ---------------------------------------------------------------------------
# AI-backed stages
# ---------------------------------------------------------------------------


class TestCodegenStages:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_core_code(self, stage_context: StageContext, fake_generator: FakeGenerator):
        result = await CoreCodeStage().execute(stage_context)
        assert result.artifacts == ["src/index.ts"]
        context = fake_generator.contexts[0]
        assert context.stage == "generate-core-code"
        assert set(context.excerpts) == {"CODING_STANDARDS.md"}
        assert len(context.excerpts["CODING_STANDARDS.md"]) == 2000
        assert context.output_language == "typescript"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_security_prompt_names_markers(
        self, stage_context: StageContext, fake_generator: FakeGenerator
    ):
        result = await SecurityStage().execute(stage_context)
        assert result.artifacts == ["src/security.ts"]
        task = fake_generator.contexts[0].task
        assert "@nist:" in task
        assert "AC-2" in task
        assert "rate limiting" in task

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tests_stage(self, stage_context: StageContext, fake_generator: FakeGenerator):
        result = await GenerateTestsStage().execute(stage_context)
        assert result.artifacts == ["tests/unit/index.test.ts"]
        assert "src/features/database.ts" in fake_generator.contexts[0].task

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generation_failure_is_fatal_outside_features(self, stage_context: StageContext):
        stage_context.client = FakeGenerator(failures={"generate-core-code": REASON_NON_TRANSIENT})
        result = await CoreCodeStage().execute(stage_context)
        assert result.reason == REASON_NON_TRANSIENT
        assert result.recoverable is False
        assert not (stage_context.project_path / "src/index.ts").exists()


class TestFeatureStage:
    @pytest.mark.unit
    def test_every_feature_has_a_spec(self):
        assert set(FEATURE_SPECS) == set(Feature)

    @pytest.mark.unit
    def test_naming(self):
        stage = FeatureCodeStage(Feature.REALTIME)
        assert stage.name == "generate-feature-code:real-time"
        assert stage.feature == "Real-time (WebSocket)"
        assert stage.recoverable is True

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "language, expected",
        [
            (Language.TYPESCRIPT, "src/features/file-upload.ts"),
            (Language.PYTHON, "src/features/file_upload.py"),
            (Language.GO, "src/features/file-upload.go"),
            (Language.RUST, "src/features/file_upload.rs"),
            (Language.JAVA, "src/features/FileUpload.java"),
        ],
    )
    def test_feature_paths(self, language: Language, expected: str):
        assert PROFILES[language].feature_file("file-upload") == expected

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_writes_feature_module(self, stage_context: StageContext, fake_generator: FakeGenerator):
        result = await FeatureCodeStage(Feature.AUTHENTICATION).execute(stage_context)
        assert result.ok
        assert result.artifacts == ["src/features/authentication.ts"]
        assert result.feature == "Authentication"
        assert set(fake_generator.contexts[0].excerpts) == {
            "CODING_STANDARDS.md",
            "MODERN_SECURITY_STANDARDS.md",
        }

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["non-transient", "invalid-shape", "transient-exhausted"])
    async def test_failure_is_recoverable(self, stage_context: StageContext, reason: str):
        stage_context.client = FakeGenerator(failures={"generate-feature-code:database": reason})
        result = await FeatureCodeStage(Feature.DATABASE).execute(stage_context)
        assert result.reason == reason
        assert result.recoverable is True
        assert not (stage_context.project_path / "src/features/database.ts").exists()


class TestWorkflowsStage:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_github_actions(self, stage_context: StageContext):
        result = await WorkflowsStage().execute(stage_context)
        assert sorted(result.artifacts) == [
            ".github/workflows/ai-review.yml",
            ".github/workflows/cd.yml",
            ".github/workflows/ci.yml",
            ".github/workflows/security.yml",
        ]
        ci = (stage_context.project_path / ".github/workflows/ci.yml").read_text()
        assert "npm ci" in ci

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "cicd, path",
        [("gitlab-ci", ".gitlab-ci.yml"), ("jenkins", "Jenkinsfile"), ("circleci", ".circleci/config.yml")],
    )
    async def test_other_systems(self, stage_context: StageContext, cicd: str, path: str):
        stage_context.config = stage_context.config.model_copy(
            update={"deployment": stage_context.config.deployment.model_copy(update={"cicd": CISystem(cicd)})}
        )
        result = await WorkflowsStage().execute(stage_context)
        assert result.artifacts == [path]


class TestDocumentationStage:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_api_project_docs(self, stage_context: StageContext, fake_generator: FakeGenerator):
        result = await DocumentationStage().execute(stage_context)
        assert sorted(result.artifacts) == [
            "CLAUDE.md",
            "README.md",
            "docs/API.md",
            "docs/SECURITY.md",
            "docs/SSP.json",
        ]
        assert all(c.output_language == "markdown" for c in fake_generator.contexts)
        plan = json.loads((stage_context.project_path / "docs/SSP.json").read_text())
        assert plan["system"] == "demo-api"
        assert [c["id"] for c in plan["controls"]] == list(stage_context.config.security.controls)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cli_project_without_compliance(self, stage_context: StageContext):
        stage_context.config = ProjectConfig(name="tool", type="cli", language="go", framework="cobra")
        result = await DocumentationStage().execute(stage_context)
        assert sorted(result.artifacts) == ["CLAUDE.md", "README.md", "docs/SECURITY.md"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_readme_failure_is_fatal(self, stage_context: StageContext):
        stage_context.client = FakeGenerator(failures={"generate-documentation": "invalid-shape"})
        result = await DocumentationStage().execute(stage_context)
        assert result.reason == "invalid-shape"
        assert result.recoverable is False


# ---------------------------------------------------------------------------
# Closing stages
# ---------------------------------------------------------------------------


class TestValidateStage:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failing_project(self, stage_context: StageContext):
        result = await ValidateStage().execute(stage_context)
        assert result.reason == "validation-failed"
        assert stage_context.report is not None
        assert not stage_context.report.passed
        assert "structure" in result.detail


class TestFinalizeStage:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_requires_validation(self, stage_context: StageContext):
        result = await FinalizeStage().execute(stage_context)
        assert result.reason == "precondition-failed"
        assert not (stage_context.project_path / ".git").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refuses_failed_report(self, stage_context: StageContext):
        await ValidateStage().execute(stage_context)
        result = await FinalizeStage().execute(stage_context)
        assert result.reason == "precondition-failed"
        assert "validation failed" in result.detail
