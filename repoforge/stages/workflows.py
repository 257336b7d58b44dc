"""CI/CD workflow generation for the configured CI system."""

from __future__ import annotations

from pathlib import Path

from repoforge.models import CISystem, Language
from repoforge.stages.base import Stage, StageContext

CI_COMMANDS: dict[Language, dict[str, str]] = {
    Language.TYPESCRIPT: {
        "setup_action": "actions/setup-node@v4",
        "setup_key": "node-version",
        "setup_version": "20",
        "image": "node:20",
        "install": "npm ci",
        "test": "npm test",
        "build": "npm run build",
        "audit": "npm audit --audit-level=high",
    },
    Language.PYTHON: {
        "setup_action": "actions/setup-python@v5",
        "setup_key": "python-version",
        "setup_version": "3.12",
        "image": "python:3.12",
        "install": "pip install -r requirements.txt",
        "test": "pytest --cov=src",
        "build": "python -m compileall src",
        "audit": "bandit -r src",
    },
    Language.GO: {
        "setup_action": "actions/setup-go@v5",
        "setup_key": "go-version",
        "setup_version": "1.22",
        "image": "golang:1.22",
        "install": "go mod download",
        "test": "go test ./...",
        "build": "go build ./...",
        "audit": "go vet ./...",
    },
    Language.RUST: {
        "setup_action": "dtolnay/rust-toolchain@stable",
        "setup_key": "toolchain",
        "setup_version": "stable",
        "image": "rust:1",
        "install": "cargo fetch",
        "test": "cargo test",
        "build": "cargo build --release",
        "audit": "cargo audit",
    },
    Language.JAVA: {
        "setup_action": "actions/setup-java@v4",
        "setup_key": "java-version",
        "setup_version": "21",
        "image": "maven:3-eclipse-temurin-21",
        "install": "mvn -q dependency:resolve",
        "test": "mvn -q test",
        "build": "mvn -q package",
        "audit": "mvn -q dependency-check:check",
    },
}

# CI system -> {output path: template}
WORKFLOW_FILES: dict[CISystem, dict[str, str]] = {
    CISystem.GITHUB_ACTIONS: {
        ".github/workflows/ci.yml": "workflows/github/ci.yml.j2",
        ".github/workflows/cd.yml": "workflows/github/cd.yml.j2",
        ".github/workflows/security.yml": "workflows/github/security.yml.j2",
        ".github/workflows/ai-review.yml": "workflows/github/ai-review.yml.j2",
    },
    CISystem.GITLAB_CI: {".gitlab-ci.yml": "workflows/gitlab-ci.yml.j2"},
    CISystem.JENKINS: {"Jenkinsfile": "workflows/Jenkinsfile.j2"},
    CISystem.CIRCLECI: {".circleci/config.yml": "workflows/circleci/config.yml.j2"},
}


class WorkflowsStage(Stage):
    name = "setup-workflows"

    async def action(self, ctx: StageContext) -> list[Path]:
        context = ctx.template_context()
        context["ci"] = CI_COMMANDS[ctx.config.language]
        rendered = ctx.renderer.render_tree(WORKFLOW_FILES[ctx.config.deployment.cicd], context)
        return await ctx.writer.write_tree(rendered)
