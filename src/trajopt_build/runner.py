"""Subprocess execution for pipeline steps."""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from trajopt_build.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class CommandStep:
    description: str
    command: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""


class CommandRunner(Protocol):
    def run(self, step: CommandStep) -> CommandResult:
        """Run *step* to completion and return its exit status and output."""

    def which(self, tool: str) -> str | None:
        """Resolve *tool* to an executable path, or ``None`` when absent."""


@dataclass(slots=True)
class SubprocessRunner:
    """Blocking runner; one child process per step, no timeout."""

    base_env: Mapping[str, str] | None = None

    def run(self, step: CommandStep) -> CommandResult:
        env = dict(os.environ if self.base_env is None else self.base_env)
        env.update(step.env)
        result = subprocess.run(
            list(step.command),
            cwd=str(step.cwd) if step.cwd is not None else None,
            env=env,
            capture_output=True,
            text=True,
            check=False,
        )
        return CommandResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )

    def which(self, tool: str) -> str | None:
        return shutil.which(tool)


def require_tool(runner: CommandRunner, tool: str, *, operation: str, hint: str) -> str:
    """Resolve *tool* or raise before any subprocess is started."""
    resolved = runner.which(tool)
    if resolved is None:
        raise ConfigurationError(
            f"Required tool `{tool}` was not found.",
            hint=hint,
            context={"operation": operation, "tool": tool},
        )
    return resolved
