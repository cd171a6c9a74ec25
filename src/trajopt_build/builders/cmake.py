"""Native build invoker: out-of-tree CMake configure, build and install."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from trajopt_build.builders.base import run_checked
from trajopt_build.errors import ConfigurationError, NativeBuildError
from trajopt_build.models import BuildConfiguration, BuildOutputLocation, DefinitionValue
from trajopt_build.observability import StructuredLogger
from trajopt_build.runner import CommandRunner, CommandStep, SubprocessRunner, require_tool

STAGE = "native"


@dataclass(slots=True)
class CMakeBuilder:
    runner: CommandRunner = field(default_factory=SubprocessRunner)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    tool: str = "cmake"
    jobs: int | None = None

    def configure_command(
        self,
        source_root: Path,
        configuration: BuildConfiguration,
        out_dir: Path,
    ) -> tuple[str, ...]:
        definitions = configuration.effective_definitions()
        definitions["CMAKE_INSTALL_PREFIX"] = str(out_dir)
        toolchain = configuration.toolchain
        if toolchain.cxxflags:
            existing = str(definitions.get("CMAKE_CXX_FLAGS", "")).split()
            definitions["CMAKE_CXX_FLAGS"] = " ".join([*existing, *toolchain.cxxflags])

        command = [self.tool, "-S", str(source_root), "-B", str(out_dir / "build")]
        if toolchain.generator is not None:
            command.extend(["-G", toolchain.generator])
        for key, value in definitions.items():
            command.append(f"-D{key}={_format_value(value)}")
        return tuple(command)

    def build_command(self, configuration: BuildConfiguration, out_dir: Path) -> tuple[str, ...]:
        command = [
            self.tool,
            "--build",
            str(out_dir / "build"),
            "--target",
            "install",
            "--config",
            configuration.profile,
        ]
        if self.jobs is not None:
            command.extend(["--parallel", str(self.jobs)])
        return tuple(command)

    def build(
        self,
        source_root: Path,
        configuration: BuildConfiguration,
        out_dir: Path,
    ) -> BuildOutputLocation:
        """Configure, build and install the external project into *out_dir*.

        CMake is re-invoked on every run; its own dependency scanning decides
        how much is rebuilt.
        """
        self._ensure_prerequisites(source_root)
        (out_dir / "build").mkdir(parents=True, exist_ok=True)

        steps = (
            CommandStep(
                description="Configure native project",
                command=self.configure_command(source_root, configuration, out_dir),
                cwd=out_dir,
            ),
            CommandStep(
                description="Build and install native project",
                command=self.build_command(configuration, out_dir),
                cwd=out_dir,
            ),
        )
        for step in steps:
            run_checked(
                self.runner,
                step,
                stage=STAGE,
                logger=self.logger,
                failure=NativeBuildError,
                hint="The native project's own diagnostics are reported above.",
            )

        location = BuildOutputLocation(root=out_dir)
        if not location.lib_dir.is_dir() and not location.bin_dir.is_dir():
            self.logger.log(
                operation="build",
                stage=STAGE,
                level="warning",
                message=f"Native install under {out_dir} has no lib/ or bin/ directory.",
            )
        self.logger.log(
            operation="build",
            stage=STAGE,
            message="Native project installed.",
            extra={"out_dir": str(out_dir)},
        )
        return location

    def _ensure_prerequisites(self, source_root: Path) -> None:
        if not (source_root / "CMakeLists.txt").is_file():
            raise ConfigurationError(
                "Native project descriptor is missing.",
                hint="Point the pipeline at the directory holding CMakeLists.txt.",
                context={"operation": "native_build", "source_root": str(source_root)},
            )
        require_tool(
            self.runner,
            self.tool,
            operation="native_build",
            hint="Install CMake or set the CMAKE environment variable.",
        )


def _format_value(value: DefinitionValue) -> str:
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    return str(value)
