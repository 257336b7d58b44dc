"""Command-line entry point.

Usage::

    repoforge init --name demo-api --type api --language typescript \\
        --framework express --feature Authentication --feature Database \\
        --compliance NIST
    repoforge init --config project.yaml --output ./out
    repoforge validate ./out/demo-api

Exit codes: 0 when the run completed (or validation passed), 1 when it
aborted (or a check failed), 2 when the configuration is invalid.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from repoforge.ai_client import CodegenClient
from repoforge.config import Settings
from repoforge.models import (
    AuthMode,
    AuthzModel,
    CISystem,
    ComplianceFramework,
    Feature,
    Language,
    MonitoringSystem,
    Platform,
    ProjectConfig,
    ProjectType,
    default_framework,
)
from repoforge.pipeline import Pipeline
from repoforge.utils import console, print_error, print_success, print_summary_table, print_warning
from repoforge.validator import Validator

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_INVALID_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repoforge",
        description="RepoForge -- generate standards-compliant project repositories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Generate a new project")
    init.add_argument("--config", "-c", type=Path, help="YAML or JSON project configuration file")
    init.add_argument("--name", help="Project name (lowercase letters, digits, hyphens)")
    init.add_argument("--type", choices=[t.value for t in ProjectType])
    init.add_argument("--language", choices=[lang.value for lang in Language])
    init.add_argument("--framework", help="Framework, or 'none' (default: first compatible)")
    init.add_argument(
        "--feature",
        action="append",
        dest="features",
        metavar="FEATURE",
        help=f"Feature to include; repeatable ({', '.join(f.slug for f in Feature)})",
    )
    init.add_argument(
        "--compliance",
        action="append",
        metavar="FRAMEWORK",
        help=f"Compliance framework; repeatable ({', '.join(f.value for f in ComplianceFramework)})",
    )
    init.add_argument("--auth", choices=[a.value for a in AuthMode])
    init.add_argument("--authz", choices=[a.value for a in AuthzModel])
    init.add_argument("--controls", help="Comma-separated control identifiers, e.g. AC-2,SC-13")
    init.add_argument("--platform", choices=[p.value for p in Platform])
    init.add_argument("--cicd", choices=[c.value for c in CISystem])
    init.add_argument("--monitoring", choices=[m.value for m in MonitoringSystem])
    init.add_argument("--output", "-o", type=Path, help="Parent directory for the project")
    init.add_argument("--standards-source", help="Standards base URL or local directory")
    init.add_argument("--model", help="Model name on the AI service")
    init.add_argument("--ollama-url", help="Base URL of the Ollama-compatible service")
    init.add_argument("--max-parallel", type=int, help="Feature modules generated concurrently")
    init.add_argument(
        "--install-deps", action="store_true", help="Install dependencies before the commit"
    )
    init.add_argument("--verbose", "-v", action="store_true")

    validate = sub.add_parser("validate", help="Re-run validation on a generated project")
    validate.add_argument("path", type=Path, help="Path to the generated project")
    validate.add_argument("--state-dir", default=".repoforge")

    return parser


# ---------------------------------------------------------------------------
# Configuration assembly
# ---------------------------------------------------------------------------


def _read_config_file(path: Path) -> dict[str, Any]:
    # JSON is a subset of YAML.
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")
    return data


def config_from_args(args: argparse.Namespace) -> ProjectConfig:
    """Merge ``--config`` file contents with flags; flags win.

    Raises:
        pydantic.ValidationError: If the merged configuration is invalid.
        ValueError: If the file is not a mapping.
    """
    data: dict[str, Any] = _read_config_file(args.config) if args.config else {}

    for key in ("name", "type", "language", "framework", "features"):
        value = getattr(args, key)
        if value is not None:
            data[key] = value

    security = dict(data.get("security") or {})
    for key, flag in (("authentication", "auth"), ("authorization", "authz"), ("controls", "controls")):
        if getattr(args, flag) is not None:
            security[key] = getattr(args, flag)
    if security:
        data["security"] = security

    if args.compliance is not None:
        data["compliance"] = {**(data.get("compliance") or {}), "frameworks": args.compliance}

    deployment = dict(data.get("deployment") or {})
    for key in ("platform", "cicd", "monitoring"):
        if getattr(args, key) is not None:
            deployment[key] = getattr(args, key)
    if deployment:
        data["deployment"] = deployment

    if "framework" not in data and data.get("type") and data.get("language"):
        try:
            data["framework"] = default_framework(data["type"], data["language"])
        except ValueError:
            # Unknown type or language: let the model report it.
            pass

    return ProjectConfig.model_validate(data)


def settings_from_args(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    if args.output is not None:
        settings.output_dir = args.output
    if args.standards_source:
        settings.standards.source = args.standards_source
    if args.model:
        settings.codegen.model = args.model
    if args.ollama_url:
        settings.codegen.url = args.ollama_url
    if args.max_parallel is not None:
        settings.max_parallel_features = args.max_parallel
    if args.install_deps:
        settings.install_dependencies = True
    settings.verbose = args.verbose
    return Settings.model_validate(settings.model_dump())


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _run_init(settings: Settings, config: ProjectConfig) -> int:
    client = CodegenClient(settings.codegen)
    pipeline = Pipeline(settings, client=client)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, pipeline.cancel)
        except (NotImplementedError, RuntimeError):
            # No signal support on this platform/loop.
            pass

    if not await client.is_available():
        print_warning(
            f"AI service not reachable at {settings.codegen.url}; "
            "generation stages will fail unless it comes up."
        )

    outcome = await pipeline.run(config)
    if outcome.completed:
        print_success(f"Project ready at {outcome.project_path}")
    else:
        print_error(f"Aborted at {outcome.aborted_at}: {outcome.reason}")
        if outcome.report is not None and outcome.report.failed_checks:
            print_error(f"Failing checks: {', '.join(outcome.report.failed_checks)}")
    return outcome.exit_code


def cmd_init(args: argparse.Namespace) -> int:
    try:
        settings = settings_from_args(args)
        config = config_from_args(args)
    except ValidationError as exc:
        print_error("Invalid configuration:")
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or "config"
            console.print(f"  [red]{location}[/red]: {error['msg']}")
        return EXIT_INVALID_CONFIG
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print_error(f"Invalid configuration: {exc}")
        return EXIT_INVALID_CONFIG

    return asyncio.run(_run_init(settings, config))


def cmd_validate(args: argparse.Namespace) -> int:
    config_path = args.path / args.state_dir / "config.yaml"
    try:
        config = ProjectConfig.load(config_path)
    except (OSError, ValidationError, yaml.YAMLError) as exc:
        print_error(f"Cannot load {config_path}: {exc}")
        return EXIT_INVALID_CONFIG

    report = asyncio.run(Validator().validate(args.path, config))
    print_summary_table(
        {
            name: f"{'pass' if check.passed else 'FAIL'} - {check.detail}"
            for name, check in report.checks.items()
        },
        title=f"Validation: {config.name}",
    )
    if report.passed:
        print_success("All checks passed")
        return EXIT_OK
    print_error(f"Failing checks: {', '.join(report.failed_checks)}")
    return EXIT_ABORTED


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``repoforge``."""
    args = build_parser().parse_args(argv)
    handlers = {"init": cmd_init, "validate": cmd_validate}
    sys.exit(handlers[args.command](args))


if __name__ == "__main__":
    main()
