"""Pipeline stages, in execution order."""

from repoforge.stages.base import Generator, Stage, StageContext
from repoforge.stages.codegen import CoreCodeStage, SecurityStage, TestsStage
from repoforge.stages.docs import DocumentationStage
from repoforge.stages.features import FEATURE_SPECS, FeatureCodeStage, FeatureSpec
from repoforge.stages.finalize import FinalizeStage, ValidateStage
from repoforge.stages.setup import CreateStructureStage, LoadStandardsStage
from repoforge.stages.workflows import CI_COMMANDS, WorkflowsStage

__all__ = [
    "CI_COMMANDS",
    "FEATURE_SPECS",
    "CoreCodeStage",
    "CreateStructureStage",
    "DocumentationStage",
    "FeatureCodeStage",
    "FeatureSpec",
    "FinalizeStage",
    "Generator",
    "LoadStandardsStage",
    "SecurityStage",
    "Stage",
    "StageContext",
    "TestsStage",
    "ValidateStage",
    "WorkflowsStage",
]
