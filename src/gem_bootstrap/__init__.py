from gem_bootstrap.checklist import ChecklistStep, PipelineStep, StepResult
from gem_bootstrap.config_editor import ConfigDocument
from gem_bootstrap.context import ProjectContext, build_project_context
from gem_bootstrap.errors import (
    BootstrapError,
    CollaboratorError,
    CollaboratorTimeout,
    ConfigError,
    GeneratorError,
    ParseError,
    PatchError,
    UsageError,
)
from gem_bootstrap.patcher import PatchRule, apply_patches
from gem_bootstrap.pipeline import PipelineRun, run_pipeline

__all__ = [
    "BootstrapError",
    "ChecklistStep",
    "CollaboratorError",
    "CollaboratorTimeout",
    "ConfigDocument",
    "ConfigError",
    "GeneratorError",
    "ParseError",
    "PatchError",
    "PatchRule",
    "PipelineRun",
    "PipelineStep",
    "ProjectContext",
    "StepResult",
    "UsageError",
    "apply_patches",
    "build_project_context",
    "run_pipeline",
]
