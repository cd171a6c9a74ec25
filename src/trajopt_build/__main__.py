"""Pre-build hook entry point: ``python -m trajopt_build``.

Takes no flags; locations and tool overrides come from the host build
environment (see ``trajopt_build.config.from_environment``).
"""

from __future__ import annotations

import sys
from collections.abc import Mapping

from trajopt_build.config import from_environment
from trajopt_build.errors import TrajoptBuildError
from trajopt_build.observability import StructuredLogger
from trajopt_build.pipeline import LOG_NAME, Pipeline
from trajopt_build.runner import CommandRunner, SubprocessRunner


def main(
    env: Mapping[str, str] | None = None,
    *,
    runner: CommandRunner | None = None,
) -> int:
    logger = StructuredLogger()
    try:
        config = from_environment(env)
    except TrajoptBuildError as exc:
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        return exc.exit_status

    try:
        Pipeline(
            config=config,
            runner=runner if runner is not None else SubprocessRunner(),
            logger=logger,
        ).run()
    except TrajoptBuildError as exc:
        logger.log(
            operation="run",
            stage=exc.context.get("stage"),
            level="error",
            message=str(exc),
            extra=exc.to_dict(),
        )
        logger.to_json_lines(config.out_dir / LOG_NAME)
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        return exc.exit_status
    return 0


if __name__ == "__main__":
    sys.exit(main())
