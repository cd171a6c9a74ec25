"""Public package entrypoint for the TrajoptLib native build pipeline."""

from .config import PipelineConfig, from_environment, trajoptlib_config
from .errors import (
    BridgeCompileError,
    BuildOutputError,
    ConfigurationError,
    NativeBuildError,
    TrajoptBuildError,
)
from .models import (
    BridgeArtifact,
    BridgeSources,
    BuildConfiguration,
    BuildOutputLocation,
    LinkDirective,
    LinkPlan,
    PipelineResult,
    Toolchain,
)
from .pipeline import Pipeline, run_pipeline

__all__ = [
    "BridgeArtifact",
    "BridgeCompileError",
    "BridgeSources",
    "BuildConfiguration",
    "BuildOutputError",
    "BuildOutputLocation",
    "ConfigurationError",
    "LinkDirective",
    "LinkPlan",
    "NativeBuildError",
    "Pipeline",
    "PipelineConfig",
    "PipelineResult",
    "Toolchain",
    "TrajoptBuildError",
    "from_environment",
    "run_pipeline",
    "trajoptlib_config",
]
