"""Post-generation checks for a project directory.

Every check looks only at the filesystem. All five always run, so a report
lists every problem at once rather than the first one found.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable

from repoforge.languages import profile_for
from repoforge.models import CheckResult, CISystem, ProjectConfig, ValidationReport

# Where each CI system keeps its definition.
CI_LOCATIONS: dict[CISystem, str] = {
    CISystem.GITHUB_ACTIONS: ".github/workflows",
    CISystem.GITLAB_CI: ".gitlab-ci.yml",
    CISystem.JENKINS: "Jenkinsfile",
    CISystem.CIRCLECI: ".circleci",
}

# Generated sources are small; skip anything larger when scanning for markers.
_MAX_SCAN_BYTES = 2 * 1024 * 1024


class Validator:
    """Run the fixed check battery against a generated project."""

    async def validate(self, project_path: str | Path, config: ProjectConfig) -> ValidationReport:
        """Run every check against the project on disk.

        All checks run even when an earlier one fails.

        Args:
            project_path: Root of the generated project.
            config: Configuration the project was generated from. It selects
                the CI location, manifests and compliance frameworks checked.

        Returns:
            A ``ValidationReport`` with one ``CheckResult`` per check, in the
            order structure, dependencies, security, tests, documentation.
        """
        return await asyncio.to_thread(self.validate_sync, Path(project_path), config)

    def validate_sync(self, project_path: Path, config: ProjectConfig) -> ValidationReport:
        battery: dict[str, Callable[[Path, ProjectConfig], CheckResult]] = {
            "structure": self.check_structure,
            "dependencies": self.check_dependencies,
            "security": self.check_security,
            "tests": self.check_tests,
            "documentation": self.check_documentation,
        }
        checks = {name: check(project_path, config) for name, check in battery.items()}
        return ValidationReport(project_path=str(project_path), checks=checks)

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------

    @staticmethod
    def check_structure(root: Path, config: ProjectConfig) -> CheckResult:
        required = ["README.md", "CLAUDE.md", ".gitignore", "src", "tests", "docs"]
        required.append(CI_LOCATIONS[config.deployment.cicd])
        missing = [item for item in required if not (root / item).exists()]
        if missing:
            return CheckResult(passed=False, detail=f"missing: {', '.join(missing)}")
        return CheckResult(passed=True, detail="all required paths present")

    @staticmethod
    def check_dependencies(root: Path, config: ProjectConfig) -> CheckResult:
        accepted = profile_for(config.language).accepted_manifests
        found = [name for name in accepted if (root / name).is_file()]
        if not found:
            return CheckResult(passed=False, detail=f"no manifest found (expected one of {', '.join(accepted)})")
        return CheckResult(passed=True, detail=f"found {found[0]}")

    @staticmethod
    def check_security(root: Path, config: ProjectConfig) -> CheckResult:
        frameworks = config.compliance.frameworks
        if not frameworks:
            return CheckResult(passed=True, detail="no compliance frameworks declared")

        remaining = {f.marker: f.value for f in frameworks}
        src = root / "src"
        if src.is_dir():
            for path in sorted(src.rglob("*")):
                if not remaining:
                    break
                if not path.is_file() or path.stat().st_size > _MAX_SCAN_BYTES:
                    continue
                text = path.read_text(encoding="utf-8", errors="ignore").lower()
                for marker in [m for m in remaining if m in text]:
                    del remaining[marker]

        if remaining:
            names = ", ".join(remaining.values())
            return CheckResult(passed=False, detail=f"no compliance markers under src/ for: {names}")
        return CheckResult(
            passed=True,
            detail=f"markers found for {', '.join(f.value for f in frameworks)}",
        )

    @staticmethod
    def check_tests(root: Path, config: ProjectConfig) -> CheckResult:
        tests = root / "tests"
        if not tests.is_dir():
            return CheckResult(passed=False, detail="tests/ directory missing")
        count = sum(1 for p in tests.rglob("*") if p.is_file())
        if count == 0:
            return CheckResult(passed=False, detail="tests/ contains no files")
        return CheckResult(passed=True, detail=f"{count} test file(s)")

    @staticmethod
    def check_documentation(root: Path, config: ProjectConfig) -> CheckResult:
        readme = root / "README.md"
        if not readme.is_file():
            return CheckResult(passed=False, detail="README.md missing")
        if not readme.read_text(encoding="utf-8", errors="ignore").strip():
            return CheckResult(passed=False, detail="README.md is empty")
        return CheckResult(passed=True, detail="README.md present")
