"""Shared step execution for pipeline builders."""

from __future__ import annotations

from trajopt_build.errors import BridgeCompileError, NativeBuildError
from trajopt_build.observability import StructuredLogger
from trajopt_build.runner import CommandResult, CommandRunner, CommandStep

StageError = type[NativeBuildError] | type[BridgeCompileError]


def run_checked(
    runner: CommandRunner,
    step: CommandStep,
    *,
    stage: str,
    logger: StructuredLogger,
    failure: StageError,
    hint: str,
) -> CommandResult:
    """Run *step* and raise *failure* with the tool's own output on a non-zero exit."""
    logger.log(
        operation="run",
        stage=stage,
        message=step.description,
        extra={"command": list(step.command)},
    )
    result = runner.run(step)
    if result.returncode != 0:
        logger.log(
            operation="run",
            stage=stage,
            level="error",
            message=f"{step.description} exited with status {result.returncode}.",
            extra={"command": list(step.command), "returncode": result.returncode},
        )
        raise failure(
            f"{step.description} failed.",
            hint=hint,
            context={
                "stage": stage,
                "command": " ".join(step.command),
                "returncode": str(result.returncode),
                "stdout": result.stdout,
                "stderr": result.stderr,
            },
            returncode=result.returncode,
        )
    return result
