"""Per-feature code generation.

Each selected ``Feature`` becomes its own recoverable sub-stage that writes
one module under ``src/features/``. Target paths never overlap, which is
what lets the orchestrator run several of these concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from repoforge.models import Feature
from repoforge.stages.base import Stage, StageContext

CODING = "CODING_STANDARDS.md"
SECURITY = "MODERN_SECURITY_STANDARDS.md"
CLOUD = "CLOUD_NATIVE_STANDARDS.md"


@dataclass(frozen=True)
class FeatureSpec:
    """How to generate one feature."""

    instructions: str
    standards: tuple[str, ...] = (CODING,)


FEATURE_SPECS: dict[Feature, FeatureSpec] = {
    Feature.AUTHENTICATION: FeatureSpec(
        "User authentication: registration, login, logout, password hashing, token "
        "issuance and verification, account lockout after repeated failures.",
        (CODING, SECURITY),
    ),
    Feature.DATABASE: FeatureSpec(
        "Database access layer: connection pooling from environment configuration, "
        "a repository abstraction with CRUD operations, migrations bootstrap, "
        "parameterised queries only.",
    ),
    Feature.API: FeatureSpec(
        "HTTP API layer: versioned routing, request validation, consistent error "
        "responses, pagination helpers and an OpenAPI description.",
    ),
    Feature.REALTIME: FeatureSpec(
        "Real-time messaging over WebSocket: authenticated connections, rooms/channels, "
        "heartbeat, back-pressure and graceful disconnect handling.",
        (CODING, CLOUD),
    ),
    Feature.FILE_UPLOAD: FeatureSpec(
        "File upload handling: size and content-type limits, streaming to storage, "
        "filename sanitisation and malware-scan hook.",
        (CODING, SECURITY),
    ),
    Feature.EMAIL: FeatureSpec(
        "Email service: provider abstraction, templated messages, retry queue and "
        "delivery logging without leaking recipient data.",
    ),
    Feature.PAYMENTS: FeatureSpec(
        "Payment processing: provider client abstraction, idempotent charge creation, "
        "webhook signature verification; never store raw card data.",
        (CODING, SECURITY),
    ),
    Feature.ANALYTICS: FeatureSpec(
        "Analytics: event capture API, batching, privacy-preserving identifiers and "
        "opt-out handling.",
    ),
    Feature.ADMIN: FeatureSpec(
        "Admin dashboard backend: role-guarded management endpoints, audit trail of "
        "administrative actions, user and configuration management.",
        (CODING, SECURITY),
    ),
    Feature.MULTI_TENANCY: FeatureSpec(
        "Multi-tenancy: tenant resolution per request, tenant-scoped data access, "
        "isolation checks and per-tenant configuration.",
        (CODING, CLOUD),
    ),
}


def spec_for(feature: Feature) -> FeatureSpec:
    """Look up the generation spec for *feature*."""
    return FEATURE_SPECS[feature]


class FeatureCodeStage(Stage):
    """Generate the module for a single feature. Failures are recoverable."""

    recoverable = True

    def __init__(self, feature: Feature) -> None:
        self.selected = feature
        self.spec = spec_for(feature)
        self.name = f"generate-feature-code:{feature.slug}"
        self.feature = feature.value
        self.standards = self.spec.standards

    def target(self, ctx: StageContext) -> str:
        return ctx.profile.feature_file(self.selected.slug)

    async def action(self, ctx: StageContext) -> list[Path]:
        cfg = ctx.config
        task = (
            f"Implement the '{self.selected.value}' feature module for the "
            f"{cfg.language.value} {cfg.type.value} project '{cfg.name}'"
            f"{f' using {cfg.framework}' if cfg.framework else ''}.\n\n"
            f"{self.spec.instructions}\n\n"
            f"The file will be saved as {self.target(ctx)} and imported by "
            f"{ctx.profile.entry_file}. Annotate security controls with their "
            f"compliance markers."
        )
        code = await self.generate(ctx, task)
        return [await ctx.writer.write_file(self.target(ctx), code)]
