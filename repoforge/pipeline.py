"""RepoForge pipeline orchestrator.

Runs the fixed stage sequence for one ``ProjectConfig``:

    load-standards -> create-structure -> generate-core-code
    -> generate-feature-code:<slug> (one per feature, bounded parallel)
    -> setup-workflows -> implement-security -> generate-tests
    -> generate-documentation -> validate -> finalize

Any failed stage aborts the run except a feature sub-stage, whose failure is
recorded and surfaced in the summary. ``finalize`` runs only after a passing
validation report. The run log is rewritten after every stage.
"""

from __future__ import annotations

import asyncio
import time
import traceback
from datetime import datetime, timezone
from typing import Union

from rich.panel import Panel
from rich.table import Table

from repoforge.ai_client import CodegenClient
from repoforge.config import Settings
from repoforge.models import ProjectConfig, RunOutcome, RunStatus, StageResult, StageStatus
from repoforge.stages import (
    CoreCodeStage,
    CreateStructureStage,
    DocumentationStage,
    FeatureCodeStage,
    FinalizeStage,
    Generator,
    LoadStandardsStage,
    SecurityStage,
    Stage,
    StageContext,
    TestsStage,
    ValidateStage,
    WorkflowsStage,
)
from repoforge.templates import TemplateRenderer
from repoforge.utils import (
    console,
    format_duration,
    print_debug,
    print_error,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
    save_json,
)
from repoforge.validator import Validator
from repoforge.writer import ProjectWriter

# A step is a single stage or the group of feature sub-stages run together.
Step = Union[Stage, list[FeatureCodeStage]]


class Pipeline:
    """Drive one project generation from configuration to committed repository.

    Attributes:
        settings: Runtime settings (output directory, AI service, parallelism).
        client: The code generator; a ``CodegenClient`` unless one is injected.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: Generator | None = None,
        renderer: TemplateRenderer | None = None,
        validator: Validator | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.client = client or CodegenClient(self.settings.codegen)
        self.renderer = renderer or TemplateRenderer()
        self.validator = validator or Validator()
        self._cancel_event = asyncio.Event()

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop the run before the next stage or feature sub-stage starts."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    # ------------------------------------------------------------------
    # Stage plan
    # ------------------------------------------------------------------

    def plan(self, config: ProjectConfig) -> list[Step]:
        """Return the ordered steps for *config*."""
        steps: list[Step] = [LoadStandardsStage(), CreateStructureStage(), CoreCodeStage()]
        if config.features:
            steps.append([FeatureCodeStage(f) for f in config.features])
        steps.extend(
            [
                WorkflowsStage(),
                SecurityStage(),
                TestsStage(),
                DocumentationStage(),
                ValidateStage(self.validator),
                FinalizeStage(),
            ]
        )
        return steps

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, config: ProjectConfig) -> RunOutcome:
        """Generate the project described by *config*.

        Never raises for stage failures; the returned ``RunOutcome`` says
        whether the run completed or where and why it aborted.

        Args:
            config: Validated project configuration.

        Returns:
            The ``RunOutcome``, also persisted as the run log.
        """
        start = time.monotonic()
        project_path = self.settings.project_path(config.name)
        ctx = StageContext(
            config=config,
            settings=self.settings,
            client=self.client,
            writer=ProjectWriter(project_path),
            renderer=self.renderer,
            cancel_event=self._cancel_event,
        )
        outcome = RunOutcome(
            status=RunStatus.IN_PROGRESS,
            project_name=config.name,
            project_path=str(project_path),
        )

        console.print(
            Panel(
                f"[bold bright_cyan]RepoForge[/bold bright_cyan]\n"
                f"Project  : {config.name}\n"
                f"Stack    : {config.language.value} / {config.type.value}"
                f"{f' / {config.framework}' if config.framework else ''}\n"
                f"Features : {', '.join(f.value for f in config.features) or 'none'}\n"
                f"Output   : {project_path.resolve()}",
                title="[bold]Pipeline Start[/bold]",
                border_style="bright_cyan",
            )
        )

        steps = self.plan(config)
        outcome.progress = {name: StageStatus.PENDING for name in _names(steps)}
        total = sum(len(s) if isinstance(s, list) else 1 for s in steps)
        index = 0

        for position, step in enumerate(steps):
            if self.cancelled:
                self._abort(outcome, _first_name(step), "cancelled")
                outcome.skipped.extend(_names(steps[position:]))
                break

            if isinstance(step, list):
                results = await self._run_features(step, ctx, outcome, index, total)
                index += len(step)
                started = [r for r in results if r is not None]
                outcome.stages.extend(started)
                outcome.skipped.extend(
                    stage.name for stage, r in zip(step, results) if r is None
                )
                await self._save_log(outcome)

                fatal = next((r for r in started if not r.ok and not r.recoverable), None)
                if fatal is not None:
                    self._abort(outcome, fatal.stage, fatal.reason)
                    outcome.skipped.extend(_names(steps[position + 1 :]))
                    break
                if len(started) < len(step):
                    first_skipped = results.index(None)
                    self._abort(outcome, step[first_skipped].name, "cancelled")
                    outcome.skipped.extend(_names(steps[position + 1 :]))
                    break
                continue

            index += 1
            print_stage_header(index, total, step.name)
            outcome.progress[step.name] = StageStatus.RUNNING
            result = await self._execute(step, ctx)
            outcome.progress[step.name] = result.status
            self._report_stage(result)
            outcome.stages.append(result)
            await self._save_log(outcome)

            if not result.ok:
                self._abort(outcome, result.stage, result.reason)
                outcome.skipped.extend(_names(steps[position + 1 :]))
                break
        else:
            outcome.status = RunStatus.COMPLETED

        outcome.report = ctx.report
        outcome.duration_seconds = time.monotonic() - start
        await self._save_log(outcome)
        self._print_final_summary(outcome)
        return outcome

    async def _run_features(
        self,
        stages: list[FeatureCodeStage],
        ctx: StageContext,
        outcome: RunOutcome,
        offset: int,
        total: int,
    ) -> list[StageResult | None]:
        """Run the feature sub-stages with bounded parallelism.

        Results come back in selection order; ``None`` marks a sub-stage that
        never started because the run was cancelled first.
        """
        limit = self.settings.max_parallel_features
        print_stage_header(
            offset + 1,
            total,
            f"generate-feature-code ({len(stages)} feature(s), max {limit} parallel)",
        )
        semaphore = asyncio.Semaphore(limit)

        async def _one(stage: FeatureCodeStage) -> StageResult | None:
            async with semaphore:
                if self.cancelled:
                    return None
                outcome.progress[stage.name] = StageStatus.RUNNING
                result = await self._execute(stage, ctx)
                outcome.progress[stage.name] = result.status
                self._report_stage(result)
                return result

        return list(await asyncio.gather(*(_one(s) for s in stages)))

    async def _execute(self, stage: Stage, ctx: StageContext) -> StageResult:
        """Run one stage, turning any unexpected exception into a fatal result."""
        started = time.monotonic()
        try:
            return await stage.execute(ctx)
        except Exception as exc:
            return StageResult.failure(
                stage.name,
                "unexpected-error",
                detail=f"{exc}\n{traceback.format_exc()}",
                feature=stage.feature,
                duration_seconds=time.monotonic() - started,
            )

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    @staticmethod
    def _abort(outcome: RunOutcome, stage: str, reason: str | None) -> None:
        outcome.status = RunStatus.ABORTED
        outcome.aborted_at = stage
        outcome.reason = reason

    async def _save_log(self, outcome: RunOutcome) -> None:
        data = outcome.model_dump(mode="json")
        data["updated_at"] = datetime.now(timezone.utc).isoformat()
        await save_json(data, self.settings.run_log_path(outcome.project_name))

    def _report_stage(self, result: StageResult) -> None:
        took = format_duration(result.duration_seconds)
        if result.ok:
            print_success(f"  {result.stage} completed in {took}")
            for artifact in result.artifacts:
                print_debug(f"    wrote {artifact}", self.settings.verbose)
        elif result.recoverable:
            print_warning(f"  {result.stage} failed after {took}: {result.reason} (continuing)")
            print_debug(f"    {result.detail}", self.settings.verbose)
        else:
            print_error(f"  {result.stage} FAILED after {took}: {result.reason}")
            if result.detail:
                print_debug(result.detail, self.settings.verbose)

    def _print_final_summary(self, outcome: RunOutcome) -> None:
        """Print every stage outcome, failed features and the validation report."""
        table = Table(title="Stages", show_header=True, header_style="bold cyan")
        table.add_column("Stage", no_wrap=True)
        table.add_column("Status")
        table.add_column("Duration", justify="right")
        table.add_column("Reason", style="dim")
        for result in outcome.stages:
            status = "[green]ok[/green]" if result.ok else "[red]failed[/red]"
            table.add_row(
                result.stage, status, format_duration(result.duration_seconds), result.reason or ""
            )
        for name in outcome.skipped:
            table.add_row(name, "[dim]skipped[/dim]", "", "")
        console.print()
        console.print(table)

        if outcome.report is not None:
            print_summary_table(
                {
                    name: f"{'pass' if check.passed else 'FAIL'} - {check.detail}"
                    for name, check in outcome.report.checks.items()
                },
                title="Validation",
            )

        if outcome.completed:
            border_style = "bold green"
            lines = ["[bold green]PROJECT GENERATED[/bold green]"]
        else:
            border_style = "bold red"
            lines = [
                "[bold red]PIPELINE ABORTED[/bold red]",
                f"Stage     : {outcome.aborted_at}",
                f"Reason    : {outcome.reason}",
            ]
        lines.extend(["", f"Duration  : {format_duration(outcome.duration_seconds)}"])
        if outcome.succeeded_features:
            lines.append(f"Features  : {', '.join(outcome.succeeded_features)}")
        if outcome.failed_features:
            lines.append(f"[yellow]Failed    : {', '.join(outcome.failed_features)}[/yellow]")
        lines.extend(
            [
                "",
                f"Output    : {outcome.project_path}",
                f"Run log   : {self.settings.run_log_path(outcome.project_name)}",
            ]
        )

        console.print()
        console.print(
            Panel("\n".join(lines), title="[bold]Pipeline Complete[/bold]", border_style=border_style)
        )


def _first_name(step: Step) -> str:
    return step[0].name if isinstance(step, list) else step.name


def _names(steps: list[Step]) -> list[str]:
    names: list[str] = []
    for step in steps:
        if isinstance(step, list):
            names.extend(s.name for s in step)
        else:
            names.append(step.name)
    return names
