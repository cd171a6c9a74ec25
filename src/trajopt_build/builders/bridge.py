"""Bridge compiler: generate cxx glue, compile it with the adapter, archive."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from trajopt_build.builders.base import run_checked
from trajopt_build.cache import StampStore, cache_key
from trajopt_build.errors import BridgeCompileError
from trajopt_build.models import (
    BridgeArtifact,
    BridgeSources,
    BuildOutputLocation,
    CompilerFamily,
)
from trajopt_build.observability import StructuredLogger
from trajopt_build.runner import CommandRunner, CommandStep, SubprocessRunner, require_tool
from trajopt_build.tracking import bridge_fingerprint

STAGE = "bridge"

_DEFAULT_COMPILER: dict[CompilerFamily, str] = {"gnu": "c++", "msvc": "cl"}
_DEFAULT_ARCHIVER: dict[CompilerFamily, str] = {"gnu": "ar", "msvc": "lib"}


def archive_filename(name: str, family: CompilerFamily) -> str:
    if family == "msvc":
        return f"{name}.lib"
    return f"lib{name}.a"


@dataclass(slots=True)
class BridgeCompiler:
    runner: CommandRunner = field(default_factory=SubprocessRunner)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    family: CompilerFamily = "gnu"
    cxxbridge: str = "cxxbridge"
    cxx: str | None = None
    ar: str | None = None
    flags: tuple[str, ...] = ()

    @property
    def compiler(self) -> str:
        return self.cxx or _DEFAULT_COMPILER[self.family]

    @property
    def archiver(self) -> str:
        return self.ar or _DEFAULT_ARCHIVER[self.family]

    def glue_paths(self, sources: BridgeSources, out_dir: Path) -> tuple[Path, Path, Path]:
        """Return (generated header, generated source, cxx support header)."""
        gen = out_dir / "cxxbridge"
        try:
            rel = sources.interface.relative_to(sources.include_dir.parent)
        except ValueError:
            rel = Path(sources.interface.name)
        header = gen / "include" / sources.crate_name / f"{rel}.h"
        source = gen / "sources" / sources.crate_name / f"{rel}.cc"
        support = gen / "include" / "rust" / "cxx.h"
        return header, source, support

    def include_dirs(
        self,
        sources: BridgeSources,
        location: BuildOutputLocation,
        out_dir: Path,
    ) -> tuple[Path, ...]:
        return (sources.include_dir, location.include_dir, out_dir / "cxxbridge" / "include")

    def compile_command(
        self,
        source: Path,
        obj: Path,
        *,
        standard: str,
        include_dirs: Iterable[Path],
    ) -> tuple[str, ...]:
        if self.family == "msvc":
            includes = [f"/I{path}" for path in include_dirs]
            return (
                self.compiler,
                "/nologo",
                "/EHsc",
                f"/std:{standard}",
                "/O2",
                "/MD",
                *includes,
                *self.flags,
                "/c",
                str(source),
                f"/Fo{obj}",
            )
        includes = [f"-I{path}" for path in include_dirs]
        return (
            self.compiler,
            f"-std={standard}",
            "-O2",
            "-fPIC",
            *includes,
            *self.flags,
            "-c",
            str(source),
            "-o",
            str(obj),
        )

    def archive_command(self, archive: Path, objects: Iterable[Path]) -> tuple[str, ...]:
        if self.family == "msvc":
            return (self.archiver, "/nologo", f"/OUT:{archive}", *(str(o) for o in objects))
        return (self.archiver, "crs", str(archive), *(str(o) for o in objects))

    def compile(
        self,
        sources: BridgeSources,
        location: BuildOutputLocation,
        out_dir: Path,
        *,
        name: str,
        standard: str,
        tracked: tuple[Path, ...] | None = None,
    ) -> BridgeArtifact:
        """Compile the bridge into one static archive under *out_dir*.

        The archive is reused when its stamp records the same tracked-file
        contents, standard, tool versions and installed header tree.
        """
        location.ensure_ready()
        if not sources.adapters:
            raise BridgeCompileError(
                "No adapter sources were listed for the bridge.",
                hint="List every adapter source explicitly.",
                context={"operation": "bridge_compile", "interface": str(sources.interface)},
            )
        self._ensure_prerequisites()

        archive = out_dir / archive_filename(name, self.family)
        inputs = bridge_fingerprint(
            tracked=tracked if tracked is not None else sources.tracked_paths(),
            standard=standard,
            compiler=(self.compiler, self.family, self.tool_version(self.compiler)),
            archive_name=archive.name,
            include_dir=location.include_dir,
            flags=self.flags,
            generator=(self.cxxbridge, self.tool_version(self.cxxbridge)),
        )
        stamps = StampStore(out_dir)
        obj_dir = out_dir / "obj"
        header, glue, support = self.glue_paths(sources, out_dir)
        compile_units = (glue, *sources.adapters)
        objects = tuple(obj_dir / f"{unit.name}.{self._object_suffix}" for unit in compile_units)

        if stamps.is_fresh(archive=archive, expected_inputs=inputs):
            self.logger.log(
                operation="compile",
                stage=STAGE,
                message="Bridge inputs unchanged; reusing archive.",
                extra={"archive": str(archive)},
            )
            return BridgeArtifact(
                name=name,
                path=archive,
                standard=standard,
                fingerprint=cache_key(inputs),
                objects=objects,
                rebuilt=False,
            )

        stamps.invalidate()
        for path in (header, glue, support):
            path.parent.mkdir(parents=True, exist_ok=True)
        obj_dir.mkdir(parents=True, exist_ok=True)

        steps = [
            CommandStep(
                description="Generate bridge header",
                command=(self.cxxbridge, str(sources.interface), "--header", "-o", str(header)),
            ),
            CommandStep(
                description="Generate bridge source",
                command=(self.cxxbridge, str(sources.interface), "-o", str(glue)),
            ),
            CommandStep(
                description="Generate cxx support header",
                command=(self.cxxbridge, "--header", "-o", str(support)),
            ),
        ]
        include_dirs = self.include_dirs(sources, location, out_dir)
        for unit, obj in zip(compile_units, objects, strict=True):
            steps.append(
                CommandStep(
                    description=f"Compile {unit.name}",
                    command=self.compile_command(
                        unit, obj, standard=standard, include_dirs=include_dirs
                    ),
                )
            )
        archive.unlink(missing_ok=True)
        steps.append(
            CommandStep(
                description=f"Archive {archive.name}",
                command=self.archive_command(archive, objects),
            )
        )

        for step in steps:
            run_checked(
                self.runner,
                step,
                stage=STAGE,
                logger=self.logger,
                failure=BridgeCompileError,
                hint="Check the bridge interface, adapter signatures and installed headers.",
            )

        if not archive.is_file():
            raise BridgeCompileError(
                "Archiver reported success but produced no archive.",
                context={"operation": "bridge_compile", "archive": str(archive)},
            )
        key = stamps.save(inputs=inputs, archive=archive)
        self.logger.log(
            operation="compile",
            stage=STAGE,
            message="Bridge archive built.",
            extra={"archive": str(archive), "key": key},
        )
        return BridgeArtifact(
            name=name,
            path=archive,
            standard=standard,
            fingerprint=key,
            objects=objects,
            rebuilt=True,
        )

    def tool_version(self, tool: str) -> str:
        """Return the first line *tool* reports about its version.

        MSVC `cl` has no version flag; run bare it prints its banner on stderr.
        """
        args = () if self.family == "msvc" and tool == self.compiler else ("--version",)
        result = self.runner.run(
            CommandStep(description=f"Query {tool} version", command=(tool, *args))
        )
        streams = (result.stdout, result.stderr) if args else (result.stderr, result.stdout)
        for line in "\n".join(streams).splitlines():
            if line.strip():
                version = line.strip()
                break
        else:
            version = f"exit status {result.returncode}"
        self.logger.log(
            operation="tool_version",
            stage=STAGE,
            message=f"{tool}: {version}",
            extra={"tool": tool, "version": version},
        )
        return version

    @property
    def _object_suffix(self) -> str:
        return "obj" if self.family == "msvc" else "o"

    def _ensure_prerequisites(self) -> None:
        for tool, hint in (
            (self.cxxbridge, "Install it with `cargo install cxxbridge-cmd`."),
            (self.compiler, "Install a C++ compiler or set the CXX environment variable."),
            (self.archiver, "Install an archiver or set the AR environment variable."),
        ):
            require_tool(self.runner, tool, operation="bridge_compile", hint=hint)
