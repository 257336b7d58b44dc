"""Unit tests for runtime settings (repoforge.config)."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from repoforge.config import (
    DEFAULT_STANDARDS_DOCUMENTS,
    DEFAULT_STANDARDS_SOURCE,
    CodegenSettings,
    Settings,
)


class TestDefaults:
    @pytest.mark.unit
    def test_codegen_defaults(self):
        codegen = CodegenSettings()
        assert codegen.url == "http://localhost:11434"
        assert codegen.max_attempts == 3
        assert codegen.backoff_max == 30.0

    @pytest.mark.unit
    def test_standards_defaults(self):
        settings = Settings()
        assert settings.standards.source == DEFAULT_STANDARDS_SOURCE
        assert settings.standards.documents == DEFAULT_STANDARDS_DOCUMENTS
        assert settings.standards.excerpt_chars == 2000

    @pytest.mark.unit
    def test_parallelism_default(self):
        assert Settings().max_parallel_features == 3

    @pytest.mark.unit
    def test_invalid_parallelism_rejected(self):
        with pytest.raises(ValidationError):
            Settings(max_parallel_features=0)


class TestPaths:
    @pytest.mark.unit
    def test_derived_paths(self, tmp_path: Path):
        settings = Settings(output_dir=tmp_path)
        assert settings.project_path("demo") == tmp_path / "demo"
        assert settings.run_log_path("demo") == tmp_path / "demo" / ".repoforge" / "run-log.json"
        assert settings.project_config_path("demo") == tmp_path / "demo" / ".repoforge" / "config.yaml"

    @pytest.mark.unit
    def test_custom_state_dir(self, tmp_path: Path):
        settings = Settings(output_dir=tmp_path, state_dir=".meta")
        assert settings.state_path("demo") == tmp_path / "demo" / ".meta"


class TestPersistence:
    @pytest.mark.unit
    def test_save_and_load(self, tmp_path: Path):
        original = Settings(output_dir=tmp_path, max_parallel_features=5)
        original.codegen.model = "llama3.1:8b"
        path = original.save(tmp_path / "settings.json")
        loaded = Settings.load(path)
        assert loaded.max_parallel_features == 5
        assert loaded.codegen.model == "llama3.1:8b"
        assert loaded.output_dir == tmp_path


class TestFromEnv:
    @pytest.mark.unit
    def test_reads_variables(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.setenv("REPOFORGE_OUTPUT_DIR", str(tmp_path))
        monkeypatch.setenv("REPOFORGE_OLLAMA_URL", "http://gpu:11434")
        monkeypatch.setenv("REPOFORGE_MODEL", "codellama")
        monkeypatch.setenv("REPOFORGE_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("REPOFORGE_MAX_PARALLEL_FEATURES", "2")
        monkeypatch.setenv("REPOFORGE_INSTALL_DEPS", "yes")
        monkeypatch.setenv("REPOFORGE_STANDARDS_SOURCE", "/srv/standards")

        settings = Settings.from_env()

        assert settings.output_dir == tmp_path
        assert settings.codegen.url == "http://gpu:11434"
        assert settings.codegen.model == "codellama"
        assert settings.codegen.max_attempts == 5
        assert settings.max_parallel_features == 2
        assert settings.install_dependencies is True
        assert settings.standards.source == "/srv/standards"

    @pytest.mark.unit
    def test_empty_environment_gives_defaults(self, monkeypatch: pytest.MonkeyPatch):
        for key in (
            "REPOFORGE_OUTPUT_DIR",
            "REPOFORGE_OLLAMA_URL",
            "REPOFORGE_MODEL",
            "REPOFORGE_INSTALL_DEPS",
            "REPOFORGE_MAX_PARALLEL_FEATURES",
        ):
            monkeypatch.delenv(key, raising=False)
        settings = Settings.from_env()
        assert settings.output_dir == Path(".")
        assert settings.install_dependencies is False
