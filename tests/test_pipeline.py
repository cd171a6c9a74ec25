import dataclasses
import json
from pathlib import Path

import cbor2
import pytest

from trajopt_build import Pipeline, run_pipeline, trajoptlib_config
from trajopt_build.config import PipelineConfig
from trajopt_build.errors import ConfigurationError, NativeBuildError
from trajopt_build.models import PipelineResult
from trajopt_build.observability import StructuredLogger
from trajopt_build.pipeline import LOG_NAME, PLAN_NAME, REPORT_NAME


def _run(config: PipelineConfig, runner) -> tuple[list[str], PipelineResult]:
    lines: list[str] = []
    result = run_pipeline(config, runner=runner, sink=lines.append)
    return lines, result


@pytest.mark.parametrize("platform", ["linux", "darwin", "windows"])
def test_directives_put_search_paths_first_and_libraries_in_link_order(
    crate: Path,
    tmp_path: Path,
    runner,
    platform: str,
) -> None:
    config = trajoptlib_config(crate, out_dir=tmp_path / "out", platform=platform)
    lines, _ = _run(config, runner)

    link_lines = [line for line in lines if not line.startswith("cargo:rerun-if-changed=")]
    search = [line for line in link_lines if line.startswith("cargo:rustc-link-search=")]
    libs = [line for line in link_lines if line.startswith("cargo:rustc-link-lib=")]

    assert link_lines[: len(search)] == search
    assert f"cargo:rustc-link-search=native={tmp_path / 'out' / 'bin'}" in search
    assert f"cargo:rustc-link-search=native={tmp_path / 'out' / 'lib'}" in search
    assert libs == [
        "cargo:rustc-link-lib=trajoptrust",
        "cargo:rustc-link-lib=TrajoptLib",
        "cargo:rustc-link-lib=Sleipnir",
        "cargo:rustc-link-lib=fmt",
    ]


def test_pipeline_runs_stages_in_order(config: PipelineConfig, runner) -> None:
    _run(config, runner)

    descriptions = runner.descriptions()
    assert descriptions[:2] == ["Configure native project", "Build and install native project"]
    assert descriptions[2] == "Generate bridge header"
    assert descriptions[-1] == "Archive libtrajoptrust.a"


def test_pipeline_declares_change_triggers(config: PipelineConfig, runner) -> None:
    lines, result = _run(config, runner)

    triggers = [line for line in lines if line.startswith("cargo:rerun-if-changed=")]
    assert triggers == [f"cargo:rerun-if-changed={path}" for path in result.tracked]
    assert f"cargo:rerun-if-changed={config.bridge.adapters[0]}" in triggers
    assert f"cargo:rerun-if-changed={config.definition}" in triggers


def test_second_run_is_idempotent(config: PipelineConfig, runner_factory) -> None:
    first_lines, first = _run(config, runner_factory())
    second_runner = runner_factory()
    second_lines, second = _run(config, second_runner)

    assert second_lines == first_lines
    assert second.link_plan == first.link_plan
    assert second.artifact.rebuilt is False
    # The native build is always re-invoked; its own incremental logic skips work.
    assert second_runner.descriptions() == [
        "Configure native project",
        "Build and install native project",
    ]


def test_adapter_edit_reruns_bridge_stage(config: PipelineConfig, runner_factory) -> None:
    first_lines, first = _run(config, runner_factory())
    config.bridge.adapters[0].write_text('#include "trajoptlibrust.hpp"\nint x;\n', encoding="utf-8")

    runner = runner_factory()
    lines, result = _run(config, runner)

    assert result.artifact.rebuilt is True
    assert result.artifact.fingerprint != first.artifact.fingerprint
    assert "Compile trajoptlibrust.cpp" in runner.descriptions()
    assert lines == first_lines


def test_definition_edit_reruns_bridge_stage(
    config: PipelineConfig,
    tmp_path: Path,
    runner_factory,
) -> None:
    definition = tmp_path / "build_definition.py"
    definition.write_text("STANDARD = 'c++20'\n", encoding="utf-8")
    config = dataclasses.replace(config, definition=definition)
    _run(config, runner_factory())

    definition.write_text("STANDARD = 'c++20'\nEXTRA = 1\n", encoding="utf-8")
    _, result = _run(config, runner_factory())

    assert result.artifact.rebuilt is True


def test_native_failure_aborts_before_bridge_stage(config: PipelineConfig, runner_factory) -> None:
    runner = runner_factory(fail_on="Build and install", fail_returncode=2)
    lines: list[str] = []

    with pytest.raises(NativeBuildError) as excinfo:
        run_pipeline(config, runner=runner, sink=lines.append)

    assert excinfo.value.returncode == 2
    assert lines == []
    assert not any(step.command[0] == "cxxbridge" for step in runner.steps)
    assert "cxxbridge" not in runner.which_calls
    assert not config.bridge_out_dir.exists()


def test_missing_bridge_source_fails_before_any_subprocess(config: PipelineConfig, runner) -> None:
    config.bridge.headers[0].unlink()

    with pytest.raises(ConfigurationError) as excinfo:
        run_pipeline(config, runner=runner, sink=lambda _: None)

    assert "trajoptlibrust.hpp" in excinfo.value.context["missing"]
    assert runner.steps == []


def test_pipeline_writes_report_and_log(config: PipelineConfig, runner) -> None:
    logger = StructuredLogger()
    result = Pipeline(config=config, runner=runner, logger=logger, sink=lambda _: None).run()

    assert result.report_path == config.out_dir / REPORT_NAME
    report = json.loads(result.report_path.read_text(encoding="utf-8"))
    assert report["bridge"]["standard"] == "c++20"
    assert report["bridge"]["rebuilt"] is True
    assert report["link_plan"]["libraries"] == ["trajoptrust", "TrajoptLib", "Sleipnir", "fmt"]
    assert report["tracked"] == [str(path) for path in result.tracked]

    assert result.plan_path == config.out_dir / PLAN_NAME
    plan = cbor2.loads(result.plan_path.read_bytes())
    assert plan == result.link_plan.to_dict()
    assert plan["libraries"] == ["trajoptrust", "TrajoptLib", "Sleipnir", "fmt"]

    log_lines = (config.out_dir / LOG_NAME).read_text(encoding="utf-8").splitlines()
    assert len(log_lines) == len(logger.records)
    assert {record["stage"] for record in logger.records} >= {"native", "bridge"}


def test_native_install_without_libraries_warns(
    config: PipelineConfig,
    runner,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    original = runner._materialize

    def install_headers_only(command: tuple[str, ...]) -> None:
        original(command)
        if "--build" in command:
            for archive in (config.out_dir / "lib").iterdir():
                archive.unlink()
            (config.out_dir / "lib").rmdir()

    monkeypatch.setattr(runner, "_materialize", install_headers_only)
    lines, _ = _run(config, runner)

    assert any(line.startswith("cargo:warning=") and "no lib/ or bin/" in line for line in lines)


def test_pipeline_passes_configured_compiler_flags_to_bridge(config: PipelineConfig, runner) -> None:
    config = dataclasses.replace(config, cxxflags=("-DNDEBUG", "-fno-plt"))
    _run(config, runner)

    compile_steps = [step for step in runner.steps if step.description.startswith("Compile")]
    assert compile_steps
    for step in compile_steps:
        assert step.command[-6:-4] == ("-DNDEBUG", "-fno-plt")
