"""Data models shared by every RepoForge component.

``ProjectConfig`` is the immutable description of the project being
generated. It is validated once, before any stage runs, and then handed by
reference to every stage. The remaining models describe what the pipeline
produces: per-stage results, the validation report and the final run
outcome.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ProjectType(str, Enum):
    WEB = "web"
    API = "api"
    CLI = "cli"
    MICROSERVICE = "microservice"
    LIBRARY = "library"
    MOBILE = "mobile"


class Language(str, Enum):
    TYPESCRIPT = "typescript"
    PYTHON = "python"
    GO = "go"
    RUST = "rust"
    JAVA = "java"


class AuthMode(str, Enum):
    JWT = "jwt"
    OAUTH2 = "oauth2"
    SAML = "saml"
    BASIC = "basic"


class AuthzModel(str, Enum):
    RBAC = "rbac"
    ABAC = "abac"
    PBAC = "pbac"


class ComplianceFramework(str, Enum):
    NIST = "NIST"
    SOC2 = "SOC2"
    GDPR = "GDPR"
    HIPAA = "HIPAA"
    PCI_DSS = "PCI-DSS"

    @property
    def marker(self) -> str:
        """Annotation that generated source uses to tag a control, e.g. ``@nist:``."""
        return f"@{self.value.lower()}:"


class Platform(str, Enum):
    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"
    KUBERNETES = "kubernetes"
    DOCKER = "docker"
    VERCEL = "vercel"


class CISystem(str, Enum):
    GITHUB_ACTIONS = "github-actions"
    GITLAB_CI = "gitlab-ci"
    JENKINS = "jenkins"
    CIRCLECI = "circleci"


class MonitoringSystem(str, Enum):
    PROMETHEUS = "prometheus"
    DATADOG = "datadog"
    NEWRELIC = "newrelic"


class Feature(str, Enum):
    """Closed set of features a generated project can include."""

    AUTHENTICATION = "Authentication"
    DATABASE = "Database"
    API = "API"
    REALTIME = "Real-time (WebSocket)"
    FILE_UPLOAD = "File Upload"
    EMAIL = "Email Service"
    PAYMENTS = "Payment Processing"
    ANALYTICS = "Analytics"
    ADMIN = "Admin Dashboard"
    MULTI_TENANCY = "Multi-tenancy"

    @property
    def slug(self) -> str:
        """Filesystem-safe name, e.g. ``real-time`` or ``file-upload``."""
        return _FEATURE_SLUGS[self]

    @classmethod
    def parse(cls, value: str | Feature) -> Feature:
        """Resolve a display label or slug (case-insensitive) to a feature.

        Raises:
            ValueError: If *value* names no supported feature.
        """
        if isinstance(value, Feature):
            return value
        needle = value.strip().lower()
        for feature in cls:
            if needle in (feature.value.lower(), feature.slug):
                return feature
        supported = ", ".join(f.value for f in cls)
        raise ValueError(f"Unknown feature '{value}'. Supported: {supported}")


_FEATURE_SLUGS: dict[Feature, str] = {
    Feature.AUTHENTICATION: "authentication",
    Feature.DATABASE: "database",
    Feature.API: "api",
    Feature.REALTIME: "real-time",
    Feature.FILE_UPLOAD: "file-upload",
    Feature.EMAIL: "email-service",
    Feature.PAYMENTS: "payment-processing",
    Feature.ANALYTICS: "analytics",
    Feature.ADMIN: "admin-dashboard",
    Feature.MULTI_TENANCY: "multi-tenancy",
}


# ---------------------------------------------------------------------------
# Framework compatibility table
# ---------------------------------------------------------------------------

_SERVICE_FRAMEWORKS: dict[Language, list[str]] = {
    Language.TYPESCRIPT: ["express", "nestjs", "fastify"],
    Language.PYTHON: ["fastapi", "django-rest", "flask"],
    Language.GO: ["gin", "chi", "fiber"],
    Language.RUST: ["actix-web", "rocket", "tide"],
    Language.JAVA: ["spring-boot", "quarkus", "dropwizard"],
}

FRAMEWORKS: dict[ProjectType, dict[Language, list[str]]] = {
    ProjectType.WEB: {
        Language.TYPESCRIPT: ["react", "nextjs", "vue", "angular"],
        Language.PYTHON: ["django", "flask", "fastapi"],
        Language.GO: ["gin", "echo", "fiber"],
        Language.RUST: ["actix", "rocket", "warp"],
        Language.JAVA: ["spring", "quarkus", "micronaut"],
    },
    ProjectType.API: _SERVICE_FRAMEWORKS,
    ProjectType.MICROSERVICE: _SERVICE_FRAMEWORKS,
    ProjectType.CLI: {
        Language.TYPESCRIPT: ["commander", "oclif", "yargs"],
        Language.PYTHON: ["click", "typer", "argparse"],
        Language.GO: ["cobra", "urfave-cli", "kingpin"],
        Language.RUST: ["clap", "structopt"],
        Language.JAVA: ["picocli", "jcommander"],
    },
}


def frameworks_for(project_type: ProjectType | str, language: Language | str) -> list[str]:
    """Return the frameworks compatible with a project type and language."""
    return list(FRAMEWORKS.get(ProjectType(project_type), {}).get(Language(language), []))


def default_framework(project_type: ProjectType | str, language: Language | str) -> str | None:
    """Return the first compatible framework, or ``None`` if there are none."""
    options = frameworks_for(project_type, language)
    return options[0] if options else None


# ---------------------------------------------------------------------------
# Configuration model
# ---------------------------------------------------------------------------

_NAME_RE = re.compile(r"^[a-z0-9-]+$")
_CONTROL_RE = re.compile(r"^[A-Z]{2}-\d+(\(\d+\))?$")

_FROZEN = ConfigDict(frozen=True, use_enum_values=False)


class SecurityConfig(BaseModel):
    model_config = _FROZEN

    authentication: AuthMode = AuthMode.JWT
    authorization: AuthzModel = AuthzModel.RBAC
    encryption: bool = True
    rate_limit: bool = True
    monitoring: bool = True
    controls: tuple[str, ...] = Field(
        default=("AC-2", "AC-3", "AU-2", "IA-2", "SC-13"),
        description="Compliance control identifiers, e.g. AC-2 or SC-13",
    )

    @field_validator("controls", mode="before")
    @classmethod
    def _check_controls(cls, value: Any) -> tuple[str, ...]:
        if isinstance(value, str):
            value = value.split(",")
        controls = [str(c).strip().upper() for c in (value or [])]
        bad = [c for c in controls if not _CONTROL_RE.match(c)]
        if bad:
            raise ValueError(f"Invalid control identifier(s): {', '.join(bad)}")
        return tuple(dict.fromkeys(controls))


class ComplianceRequirements(BaseModel):
    model_config = _FROZEN

    frameworks: tuple[ComplianceFramework, ...] = ()
    generate_reports: bool = True
    continuous_monitoring: bool = True

    @field_validator("frameworks", mode="before")
    @classmethod
    def _normalise_frameworks(cls, value: Any) -> tuple[ComplianceFramework, ...]:
        if isinstance(value, str):
            value = [value]
        # "NIST 800-53r5" -> NIST
        result: list[ComplianceFramework] = []
        for item in value or []:
            label = item.value if isinstance(item, ComplianceFramework) else str(item).split(" ")[0]
            try:
                framework = ComplianceFramework(label.upper())
            except ValueError:
                supported = ", ".join(f.value for f in ComplianceFramework)
                raise ValueError(
                    f"Unknown compliance framework '{item}'. Supported: {supported}"
                ) from None
            if framework not in result:
                result.append(framework)
        return tuple(result)


class DeploymentTarget(BaseModel):
    model_config = _FROZEN

    platform: Platform = Platform.DOCKER
    cicd: CISystem = CISystem.GITHUB_ACTIONS
    monitoring: MonitoringSystem = MonitoringSystem.PROMETHEUS


class ProjectConfig(BaseModel):
    """Immutable description of the project to generate.

    Created once at pipeline start and never mutated. Every invalid value is
    rejected here, so a pipeline run never starts with a bad configuration.
    """

    model_config = _FROZEN

    name: str = Field(..., description="Project name: lowercase letters, digits and hyphens")
    type: ProjectType
    language: Language
    framework: str | None = Field(default=None, description="Framework compatible with type+language")
    features: tuple[Feature, ...] = Field(
        default=(), description="Selected features in selection order"
    )
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    compliance: ComplianceRequirements = Field(default_factory=ComplianceRequirements)
    deployment: DeploymentTarget = Field(default_factory=DeploymentTarget)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not value or not _NAME_RE.match(value):
            raise ValueError("Use lowercase letters, numbers, and hyphens only")
        return value

    @field_validator("features", mode="before")
    @classmethod
    def _parse_features(cls, value: Any) -> tuple[Feature, ...]:
        if isinstance(value, str):
            value = [value]
        parsed = [Feature.parse(v) for v in value or []]
        return tuple(dict.fromkeys(parsed))

    @field_validator("framework", mode="before")
    @classmethod
    def _blank_framework(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and value.strip().lower() in ("", "none")):
            return None
        return str(value).strip().lower()

    @model_validator(mode="after")
    def _check_framework(self) -> "ProjectConfig":
        if self.framework is None:
            return self
        options = frameworks_for(self.type, self.language)
        if self.framework not in options:
            allowed = ", ".join(options) or "none"
            raise ValueError(
                f"Framework '{self.framework}' is not available for a "
                f"{self.language.value} {self.type.value} project (allowed: {allowed})"
            )
        return self

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def to_prompt_json(self) -> str:
        """Serialise the full configuration for inclusion in AI prompts."""
        return self.model_dump_json(indent=2)

    def save(self, path: Path) -> Path:
        """Write the configuration as YAML and return the path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.to_yaml(), encoding="utf-8")
        return target

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(mode="json"), sort_keys=False)

    @classmethod
    def load(cls, path: Path) -> "ProjectConfig":
        """Load a configuration from a YAML or JSON file.

        Raises:
            pydantic.ValidationError: If the file contains invalid values.
        """
        raw = Path(path).read_text(encoding="utf-8")
        if Path(path).suffix == ".json":
            data = json.loads(raw)
        else:
            data = yaml.safe_load(raw) or {}
        return cls.model_validate(data)


# ---------------------------------------------------------------------------
# Stage results
# ---------------------------------------------------------------------------


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABORTED = "aborted"


class StageResult(BaseModel):
    """Tagged outcome of one stage: success with artifacts, or failure with a reason."""

    stage: str
    status: StageStatus
    artifacts: list[str] = Field(default_factory=list)
    reason: str | None = None
    detail: str | None = None
    recoverable: bool = False
    feature: str | None = None
    duration_seconds: float = 0.0
    finished_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @classmethod
    def success(cls, stage: str, artifacts: list[str] | None = None, **kwargs: Any) -> "StageResult":
        return cls(stage=stage, status=StageStatus.SUCCEEDED, artifacts=artifacts or [], **kwargs)

    @classmethod
    def failure(
        cls, stage: str, reason: str, recoverable: bool = False, **kwargs: Any
    ) -> "StageResult":
        return cls(
            stage=stage,
            status=StageStatus.FAILED,
            reason=reason,
            recoverable=recoverable,
            **kwargs,
        )

    @property
    def ok(self) -> bool:
        return self.status == StageStatus.SUCCEEDED


# ---------------------------------------------------------------------------
# Validation report
# ---------------------------------------------------------------------------


class CheckResult(BaseModel):
    passed: bool
    detail: str = ""


class ValidationReport(BaseModel):
    """Per-check results. The report passes only if every check passes."""

    project_path: str
    checks: dict[str, CheckResult] = Field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.checks.values())

    @property
    def failed_checks(self) -> list[str]:
        return [name for name, check in self.checks.items() if not check.passed]

    def as_flags(self) -> dict[str, bool]:
        """Return a plain ``{check: passed}`` mapping."""
        return {name: check.passed for name, check in self.checks.items()}


# ---------------------------------------------------------------------------
# Run outcome
# ---------------------------------------------------------------------------


class RunOutcome(BaseModel):
    """Final result of a pipeline run."""

    status: RunStatus
    project_name: str
    project_path: str
    stages: list[StageResult] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    progress: dict[str, StageStatus] = Field(
        default_factory=dict,
        description="State of every planned stage; stages that never started stay pending",
    )
    report: ValidationReport | None = None
    aborted_at: str | None = None
    reason: str | None = None
    duration_seconds: float = 0.0

    @property
    def completed(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def exit_code(self) -> int:
        return 0 if self.completed else 1

    @property
    def failed_features(self) -> list[str]:
        return [r.feature for r in self.stages if r.feature and not r.ok]

    @property
    def succeeded_features(self) -> list[str]:
        return [r.feature for r in self.stages if r.feature and r.ok]
