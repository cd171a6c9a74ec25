"""Shared test fixtures."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest

from trajopt_build.config import PipelineConfig, trajoptlib_config
from trajopt_build.runner import CommandResult, CommandStep


@dataclass
class FakeRunner:
    """Records steps and writes the files the real tools would have produced."""

    fail_on: str | None = None
    fail_returncode: int = 2
    missing_tools: set[str] = field(default_factory=set)
    versions: dict[str, str] = field(default_factory=dict)
    steps: list[CommandStep] = field(default_factory=list)
    queries: list[CommandStep] = field(default_factory=list)
    which_calls: list[str] = field(default_factory=list)

    def which(self, tool: str) -> str | None:
        self.which_calls.append(tool)
        if tool in self.missing_tools:
            return None
        return f"/usr/bin/{tool}"

    def run(self, step: CommandStep) -> CommandResult:
        if step.description.startswith("Query "):
            # Version queries are kept apart from the steps that build something.
            self.queries.append(step)
            tool = step.command[0]
            return CommandResult(returncode=0, stdout=self.versions.get(tool, f"{Path(tool).name} 1.0.0\n"))
        self.steps.append(step)
        if self.fail_on is not None and self.fail_on in step.description:
            return CommandResult(
                returncode=self.fail_returncode,
                stdout="",
                stderr="error: simulated tool failure",
            )
        self._materialize(step.command)
        return CommandResult(returncode=0)

    def descriptions(self) -> list[str]:
        return [step.description for step in self.steps]

    def _materialize(self, command: tuple[str, ...]) -> None:
        if "--build" in command:
            prefix = Path(command[command.index("--build") + 1]).parent
            _write(prefix / "include" / "trajopt" / "OptimalTrajectoryGenerator.hpp", "#pragma once\n")
            _write(prefix / "lib" / "libTrajoptLib.a", "archive")
            _write(prefix / "lib" / "libSleipnir.a", "archive")
            _write(prefix / "lib" / "libfmt.a", "archive")
            return
        if "-o" in command:
            _write(Path(command[command.index("-o") + 1]), " ".join(command))
            return
        if len(command) > 2 and command[1] == "crs":
            _write(Path(command[2]), " ".join(command))
            return
        for arg in command:
            if arg.startswith("/Fo"):
                _write(Path(arg[3:]), " ".join(command))
            elif arg.startswith("/OUT:"):
                _write(Path(arg[5:]), " ".join(command))


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def crate(tmp_path: Path) -> Path:
    """Lay out a crate root holding the CMake project and the bridge sources."""
    root = tmp_path / "crate"
    _write(root / "CMakeLists.txt", "cmake_minimum_required(VERSION 3.21)\nproject(TrajoptLib)\n")
    _write(root / "src" / "lib.rs", "#[cxx::bridge(namespace = \"trajoptlibrust\")]\nmod ffi {}\n")
    _write(root / "src" / "trajoptlibrust.hpp", "#pragma once\n")
    _write(root / "src" / "trajoptlibrust.cpp", "#include \"trajoptlibrust.hpp\"\n")
    return root


@pytest.fixture
def config(crate: Path, tmp_path: Path) -> PipelineConfig:
    return trajoptlib_config(crate, out_dir=tmp_path / "out", platform="linux")


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def runner_factory() -> type[FakeRunner]:
    return FakeRunner
