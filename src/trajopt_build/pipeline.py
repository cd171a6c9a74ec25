"""Pipeline driver: native build, bridge compile, link plan, change triggers."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from trajopt_build.builders.bridge import BridgeCompiler
from trajopt_build.builders.cmake import CMakeBuilder
from trajopt_build.config import PipelineConfig
from trajopt_build.errors import ConfigurationError
from trajopt_build.link import emit, resolve_link_plan
from trajopt_build.models import (
    BridgeArtifact,
    BuildOutputLocation,
    LinkPlan,
    PipelineResult,
)
from trajopt_build.observability import StructuredLogger
from trajopt_build.runner import CommandRunner, SubprocessRunner
from trajopt_build.tracking import change_tracking_set, rerun_directives

REPORT_NAME = "link-plan.json"
PLAN_NAME = "link-plan.cbor"
LOG_NAME = "trajopt-build.log.jsonl"


@dataclass(slots=True)
class Pipeline:
    config: PipelineConfig
    runner: CommandRunner = field(default_factory=SubprocessRunner)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    sink: Callable[[str], object] = print

    def run(self) -> PipelineResult:
        """Run every stage in order; the first failure propagates and aborts the rest."""
        config = self.config
        tracked = change_tracking_set(config.bridge, config.definition)
        self._ensure_tracked_inputs(tracked)
        self.logger.log(
            operation="run",
            stage=None,
            message="Pipeline started.",
            extra={"platform": config.platform, "out_dir": str(config.out_dir)},
        )

        native = CMakeBuilder(
            runner=self.runner,
            logger=self.logger,
            tool=config.cmake,
            jobs=config.jobs,
        )
        location = native.build(config.source_root, config.build, config.out_dir)

        bridge = BridgeCompiler(
            runner=self.runner,
            logger=self.logger,
            family=config.build.toolchain.compiler_family,
            cxxbridge=config.cxxbridge,
            cxx=config.cxx,
            ar=config.ar,
            flags=config.cxxflags,
        )
        artifact = bridge.compile(
            config.bridge,
            location,
            config.bridge_out_dir,
            name=config.bridge_library,
            standard=config.standard,
            tracked=tracked,
        )

        plan = resolve_link_plan(artifact, location, config.libraries)
        emit(plan.directives, self.sink)
        emit(rerun_directives(tracked), self.sink)
        for warning in self.logger.warnings():
            self.sink(warning)

        report_path = self._write_report(location, artifact, plan, tracked)
        plan_path = config.out_dir / PLAN_NAME
        plan.to_cbor(plan_path)
        self.logger.log(
            operation="run",
            stage=None,
            message="Pipeline finished.",
            extra={
                "report": str(report_path),
                "plan": str(plan_path),
                "bridge_rebuilt": artifact.rebuilt,
            },
        )
        self.logger.to_json_lines(config.out_dir / LOG_NAME)
        return PipelineResult(
            location=location,
            artifact=artifact,
            link_plan=plan,
            tracked=tracked,
            report_path=report_path,
            plan_path=plan_path,
        )

    def _ensure_tracked_inputs(self, tracked: tuple[Path, ...]) -> None:
        missing = [str(path) for path in tracked if not path.is_file()]
        if missing:
            raise ConfigurationError(
                "Tracked bridge inputs are missing.",
                hint="Every interface, adapter and header listed for the bridge must exist.",
                context={"operation": "pipeline", "missing": ", ".join(missing)},
            )

    def _write_report(
        self,
        location: BuildOutputLocation,
        artifact: BridgeArtifact,
        plan: LinkPlan,
        tracked: tuple[Path, ...],
    ) -> Path:
        report = {
            "platform": self.config.platform,
            "native_root": str(location.root),
            "bridge": {
                "archive": str(artifact.path),
                "fingerprint": artifact.fingerprint,
                "rebuilt": artifact.rebuilt,
                "standard": self.config.standard,
            },
            "link_plan": plan.to_dict(),
            "tracked": [str(path) for path in tracked],
        }
        report_path = self.config.out_dir / REPORT_NAME
        report_path.write_text(json.dumps(report, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        return report_path


def run_pipeline(
    config: PipelineConfig,
    *,
    runner: CommandRunner | None = None,
    logger: StructuredLogger | None = None,
    sink: Callable[[str], object] = print,
) -> PipelineResult:
    pipeline = Pipeline(
        config=config,
        runner=runner if runner is not None else SubprocessRunner(),
        logger=logger if logger is not None else StructuredLogger(),
        sink=sink,
    )
    return pipeline.run()
