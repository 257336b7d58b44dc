"""RepoForge runtime settings.

Centralised, typed configuration for the tool itself (as opposed to
``ProjectConfig``, which describes the project being generated). All settings
use Pydantic v2 models so they can be validated at construction time and
serialised to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_STANDARDS_SOURCE = (
    "https://raw.githubusercontent.com/williamzujkowski/standards/master/docs/standards"
)

DEFAULT_STANDARDS_DOCUMENTS: list[str] = [
    "UNIFIED_STANDARDS.md",
    "CODING_STANDARDS.md",
    "TESTING_STANDARDS.md",
    "MODERN_SECURITY_STANDARDS.md",
    "CLOUD_NATIVE_STANDARDS.md",
]


class CodegenSettings(BaseModel):
    """Configuration for the AI generation service (Ollama-compatible)."""

    url: str = Field(default="http://localhost:11434")
    model: str = Field(default="qwen2.5-coder:32b")
    timeout: int = Field(default=120, ge=10, description="Per-request timeout in seconds")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, ge=256)
    max_attempts: int = Field(
        default=3, ge=1, description="Attempt ceiling for transient failures"
    )
    backoff_base: float = Field(
        default=1.0, ge=0.0, description="First retry delay in seconds; doubles per attempt"
    )
    backoff_max: float = Field(default=30.0, ge=0.0, description="Upper bound for one retry delay")


class StandardsSettings(BaseModel):
    """Where the standards corpus comes from and how much of it prompts may use."""

    source: str = Field(
        default=DEFAULT_STANDARDS_SOURCE,
        description="HTTP(S) base URL or local directory holding the documents",
    )
    documents: list[str] = Field(default_factory=lambda: list(DEFAULT_STANDARDS_DOCUMENTS))
    excerpt_chars: int = Field(
        default=2000, ge=100, description="Characters of each document included in a prompt"
    )
    timeout: int = Field(default=30, ge=1)


class Settings(BaseModel):
    """Global RepoForge settings.

    Instances are typically created once by the CLI entry point and then
    passed to ``Pipeline``.
    """

    output_dir: Path = Field(default=Path("."))
    state_dir: str = Field(default=".repoforge")
    codegen: CodegenSettings = Field(default_factory=CodegenSettings)
    standards: StandardsSettings = Field(default_factory=StandardsSettings)
    max_parallel_features: int = Field(
        default=3, ge=1, description="Maximum feature modules generated concurrently"
    )
    install_dependencies: bool = Field(
        default=False, description="Run the language's dependency install during finalize"
    )
    commit_message: str = Field(default="Initial commit - Generated by RepoForge")
    git_author_name: str = Field(default="RepoForge")
    git_author_email: str = Field(default="repoforge@localhost")
    verbose: bool = False

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    def project_path(self, name: str) -> Path:
        """Directory the project called *name* is generated into."""
        return self.output_dir / name

    def state_path(self, name: str) -> Path:
        """Root of the ``.repoforge/`` metadata directory inside a project."""
        return self.project_path(name) / self.state_dir

    def run_log_path(self, name: str) -> Path:
        return self.state_path(name) / "run-log.json"

    def project_config_path(self, name: str) -> Path:
        return self.state_path(name) / "config.yaml"

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the settings to a JSON file and return the path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Settings":
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build ``Settings`` from environment variables.

        Recognised variables (all optional):
            REPOFORGE_OUTPUT_DIR, REPOFORGE_MAX_PARALLEL_FEATURES,
            REPOFORGE_INSTALL_DEPS, REPOFORGE_OLLAMA_URL, REPOFORGE_MODEL,
            REPOFORGE_TIMEOUT, REPOFORGE_MAX_ATTEMPTS, REPOFORGE_BACKOFF_BASE,
            REPOFORGE_STANDARDS_SOURCE, REPOFORGE_EXCERPT_CHARS.
        """
        codegen_kwargs: dict[str, Any] = {}
        if os.environ.get("REPOFORGE_OLLAMA_URL"):
            codegen_kwargs["url"] = os.environ["REPOFORGE_OLLAMA_URL"]
        if os.environ.get("REPOFORGE_MODEL"):
            codegen_kwargs["model"] = os.environ["REPOFORGE_MODEL"]
        if os.environ.get("REPOFORGE_TIMEOUT"):
            codegen_kwargs["timeout"] = int(os.environ["REPOFORGE_TIMEOUT"])
        if os.environ.get("REPOFORGE_MAX_ATTEMPTS"):
            codegen_kwargs["max_attempts"] = int(os.environ["REPOFORGE_MAX_ATTEMPTS"])
        if os.environ.get("REPOFORGE_BACKOFF_BASE"):
            codegen_kwargs["backoff_base"] = float(os.environ["REPOFORGE_BACKOFF_BASE"])

        standards_kwargs: dict[str, Any] = {}
        if os.environ.get("REPOFORGE_STANDARDS_SOURCE"):
            standards_kwargs["source"] = os.environ["REPOFORGE_STANDARDS_SOURCE"]
        if os.environ.get("REPOFORGE_EXCERPT_CHARS"):
            standards_kwargs["excerpt_chars"] = int(os.environ["REPOFORGE_EXCERPT_CHARS"])

        kwargs: dict[str, Any] = {}
        if os.environ.get("REPOFORGE_MAX_PARALLEL_FEATURES"):
            kwargs["max_parallel_features"] = int(os.environ["REPOFORGE_MAX_PARALLEL_FEATURES"])
        install = os.environ.get("REPOFORGE_INSTALL_DEPS", "").strip().lower()
        if install:
            kwargs["install_dependencies"] = install in ("1", "true", "yes")

        return cls(
            output_dir=Path(os.environ.get("REPOFORGE_OUTPUT_DIR", ".")),
            codegen=CodegenSettings(**codegen_kwargs),
            standards=StandardsSettings(**standards_kwargs),
            **kwargs,
        )
