"""Authoring-time pipeline configuration.

Everything the pipeline needs is captured in one frozen ``PipelineConfig``
built at start-up and passed explicitly to each stage. The TrajoptLib
defaults below are the pipeline's own definition; editing this module
re-triggers the whole pipeline through the change-tracking set.
"""

from __future__ import annotations

import dataclasses
import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from trajopt_build.errors import ConfigurationError
from trajopt_build.models import (
    BridgeSources,
    BuildConfiguration,
    DefinitionValue,
    HostPlatform,
)
from trajopt_build.platforms import host_platform, toolchain_for

CXX_STANDARD = "c++20"
BRIDGE_LIBRARY = "trajoptrust"
# Domain library, its numerics dependency, then supporting utilities.
DEPENDENCY_LIBRARIES = ("TrajoptLib", "Sleipnir", "fmt")
DEFAULT_OUT_DIR = Path("target") / "trajopt-build"
DEFINITION_FILE = Path(__file__).resolve()


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    source_root: Path
    out_dir: Path
    build: BuildConfiguration
    bridge: BridgeSources
    platform: HostPlatform
    definition: Path = DEFINITION_FILE
    standard: str = CXX_STANDARD
    bridge_library: str = BRIDGE_LIBRARY
    libraries: tuple[str, ...] = DEPENDENCY_LIBRARIES
    cmake: str = "cmake"
    cxxbridge: str = "cxxbridge"
    cxx: str | None = None
    ar: str | None = None
    cxxflags: tuple[str, ...] = ()
    jobs: int | None = None

    @property
    def bridge_out_dir(self) -> Path:
        return self.out_dir / "bridge"


def trajoptlib_config(
    root: Path,
    *,
    out_dir: Path | None = None,
    platform: str | None = None,
    definitions: Mapping[str, DefinitionValue] | None = None,
) -> PipelineConfig:
    """Build the TrajoptLib pipeline configuration rooted at *root*.

    The CMake project lives at the crate root; the bridge interface,
    adapter and adapter header live under ``src/``.
    """
    resolved_platform = host_platform(platform)
    src = root / "src"
    bridge = BridgeSources(
        interface=src / "lib.rs",
        adapters=(src / "trajoptlibrust.cpp",),
        headers=(src / "trajoptlibrust.hpp",),
        include_dir=src,
        crate_name="trajoptlib",
    )
    build = BuildConfiguration(
        profile="Release",
        definitions=dict(definitions or {}),
        toolchain=toolchain_for(resolved_platform),
    )
    return PipelineConfig(
        source_root=root,
        out_dir=out_dir if out_dir is not None else root / DEFAULT_OUT_DIR,
        build=build,
        bridge=bridge,
        platform=resolved_platform,
    )


def from_environment(
    env: Mapping[str, str] | None = None,
    *,
    platform: str | None = None,
) -> PipelineConfig:
    """Read host-build locations and tool overrides from *env*."""
    values = os.environ if env is None else env
    root = Path(values.get("CARGO_MANIFEST_DIR") or Path.cwd())
    out_dir_raw = values.get("OUT_DIR")
    config = trajoptlib_config(
        root,
        out_dir=Path(out_dir_raw) if out_dir_raw else None,
        platform=platform,
    )
    return dataclasses.replace(
        config,
        cmake=values.get("CMAKE") or "cmake",
        cxxbridge=values.get("CXXBRIDGE") or "cxxbridge",
        cxx=values.get("CXX") or None,
        ar=values.get("AR") or None,
        cxxflags=tuple(shlex.split(values.get("CXXFLAGS") or "")),
        jobs=_parse_jobs(values.get("NUM_JOBS")),
    )


def _parse_jobs(raw: str | None) -> int | None:
    if not raw:
        return None
    try:
        jobs = int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            "NUM_JOBS must be a positive integer.",
            context={"operation": "from_environment", "NUM_JOBS": raw},
        ) from exc
    if jobs < 1:
        raise ConfigurationError(
            "NUM_JOBS must be a positive integer.",
            context={"operation": "from_environment", "NUM_JOBS": raw},
        )
    return jobs
