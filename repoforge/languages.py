"""Per-language layout of a generated project.

Every stage that needs to know *where* a language puts things (entry point,
security module, tests, dependency manifest) asks the profile instead of
branching on the language itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from repoforge.models import Language

BASE_DIRECTORIES: list[str] = [
    ".claude",
    ".claude/prompts",
    ".claude/workflows",
    ".vscode",
    "src",
    "src/features",
    "tests/unit",
    "tests/integration",
    "tests/e2e",
    "docs",
    "scripts",
    "config",
    "infrastructure/docker",
    "infrastructure/kubernetes",
    "infrastructure/terraform",
]


@dataclass(frozen=True)
class LanguageProfile:
    """File layout and tooling for one language."""

    language: Language
    extension: str
    entry_file: str
    security_file: str
    test_file: str
    manifest_template: str
    manifest_file: str
    accepted_manifests: tuple[str, ...]
    install_command: list[str]
    extra_directories: list[str] = field(default_factory=list)
    ignore_patterns: list[str] = field(default_factory=list)
    code_fence: str = ""

    def feature_file(self, slug: str) -> str:
        """Relative path of the module generated for one feature."""
        stem = slug.replace("-", "_") if self.language in (Language.PYTHON, Language.RUST) else slug
        if self.language == Language.JAVA:
            stem = "".join(part.capitalize() for part in slug.split("-"))
        return f"src/features/{stem}{self.extension}"


PROFILES: dict[Language, LanguageProfile] = {
    Language.TYPESCRIPT: LanguageProfile(
        language=Language.TYPESCRIPT,
        extension=".ts",
        entry_file="src/index.ts",
        security_file="src/security.ts",
        test_file="tests/unit/index.test.ts",
        manifest_template="manifests/package.json.j2",
        manifest_file="package.json",
        accepted_manifests=("package.json",),
        install_command=["npm", "install"],
        extra_directories=["src/types", "src/utils", "src/services", "src/middleware"],
        ignore_patterns=["node_modules/", "dist/", "coverage/", "*.tsbuildinfo"],
        code_fence="typescript",
    ),
    Language.PYTHON: LanguageProfile(
        language=Language.PYTHON,
        extension=".py",
        entry_file="src/main.py",
        security_file="src/security.py",
        test_file="tests/unit/test_main.py",
        manifest_template="manifests/requirements.txt.j2",
        manifest_file="requirements.txt",
        accepted_manifests=("pyproject.toml", "requirements.txt"),
        install_command=["pip", "install", "-r", "requirements.txt"],
        extra_directories=["src/models", "src/services", "src/utils", "src/api"],
        ignore_patterns=["__pycache__/", "*.pyc", ".venv/", ".pytest_cache/", ".coverage"],
        code_fence="python",
    ),
    Language.GO: LanguageProfile(
        language=Language.GO,
        extension=".go",
        entry_file="src/main.go",
        security_file="src/security.go",
        test_file="tests/unit/main_test.go",
        manifest_template="manifests/go.mod.j2",
        manifest_file="go.mod",
        accepted_manifests=("go.mod",),
        install_command=["go", "mod", "download"],
        extra_directories=["cmd", "internal", "pkg", "api", "web"],
        ignore_patterns=["bin/", "*.test", "coverage.out"],
        code_fence="go",
    ),
    Language.RUST: LanguageProfile(
        language=Language.RUST,
        extension=".rs",
        entry_file="src/main.rs",
        security_file="src/security.rs",
        test_file="tests/unit/main_test.rs",
        manifest_template="manifests/Cargo.toml.j2",
        manifest_file="Cargo.toml",
        accepted_manifests=("Cargo.toml",),
        install_command=["cargo", "fetch"],
        ignore_patterns=["target/", "**/*.rs.bk"],
        code_fence="rust",
    ),
    Language.JAVA: LanguageProfile(
        language=Language.JAVA,
        extension=".java",
        entry_file="src/Main.java",
        security_file="src/Security.java",
        test_file="tests/unit/MainTest.java",
        manifest_template="manifests/pom.xml.j2",
        manifest_file="pom.xml",
        accepted_manifests=("pom.xml", "build.gradle", "build.gradle.kts"),
        install_command=["mvn", "-q", "dependency:resolve"],
        ignore_patterns=["target/", "build/", "*.class", ".gradle/"],
        code_fence="java",
    ),
}


def profile_for(language: Language | str) -> LanguageProfile:
    """Return the profile for *language*."""
    return PROFILES[Language(language)]
