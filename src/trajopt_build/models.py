"""Core typed dataclasses for build configuration, locations and link plans."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import cbor2

from trajopt_build.errors import BuildOutputError

HostPlatform = Literal["linux", "darwin", "windows", "posix"]
CompilerFamily = Literal["gnu", "msvc"]
DirectiveKind = Literal["link-search", "link-lib", "rerun-if-changed"]
DefinitionValue = str | bool | int

# Switches the downstream link step depends on; callers cannot override them.
FORCED_DEFINITIONS: Mapping[str, DefinitionValue] = {
    "BUILD_SHARED_LIBS": False,
    "BUILD_TESTING": False,
}


@dataclass(frozen=True, slots=True)
class Toolchain:
    """Explicit generator and compiler flags, or the platform default when empty."""

    generator: str | None = None
    cxxflags: tuple[str, ...] = ()
    compiler_family: CompilerFamily = "gnu"

    @property
    def is_default(self) -> bool:
        return self.generator is None and not self.cxxflags


@dataclass(frozen=True, slots=True)
class BuildConfiguration:
    profile: str = "Release"
    definitions: Mapping[str, DefinitionValue] = field(default_factory=dict)
    toolchain: Toolchain = field(default_factory=Toolchain)

    def effective_definitions(self) -> dict[str, DefinitionValue]:
        """Return caller definitions with the profile and forced switches applied.

        ``BUILD_SHARED_LIBS`` and ``BUILD_TESTING`` are always ``OFF`` even
        when the caller sets them, since the link step only plans static
        archives and the external project's tests are never built here.
        """
        merged: dict[str, DefinitionValue] = dict(self.definitions)
        merged["CMAKE_BUILD_TYPE"] = self.profile
        merged.update(FORCED_DEFINITIONS)
        return dict(sorted(merged.items()))


@dataclass(frozen=True, slots=True)
class BuildOutputLocation:
    root: Path

    @property
    def include_dir(self) -> Path:
        return self.root / "include"

    @property
    def lib_dir(self) -> Path:
        return self.root / "lib"

    @property
    def bin_dir(self) -> Path:
        return self.root / "bin"

    def ensure_ready(self) -> None:
        """Fail unless the native build left a populated install tree behind."""
        if not self.root.is_dir() or not any(self.root.iterdir()):
            raise BuildOutputError(
                "Native build output location is missing or empty.",
                hint="Run the native build stage before compiling the bridge.",
                context={"operation": "ensure_ready", "path": str(self.root)},
            )
        if not self.include_dir.is_dir() or not any(self.include_dir.iterdir()):
            raise BuildOutputError(
                "Native build output has no installed headers.",
                hint="Check that the external project installs its public headers.",
                context={"operation": "ensure_ready", "path": str(self.include_dir)},
            )


@dataclass(frozen=True, slots=True)
class BridgeSources:
    interface: Path
    adapters: tuple[Path, ...]
    include_dir: Path
    headers: tuple[Path, ...] = ()
    crate_name: str = "trajoptlib"

    def tracked_paths(self) -> tuple[Path, ...]:
        return (self.interface, *self.adapters, *self.headers)


@dataclass(frozen=True, slots=True)
class BridgeArtifact:
    name: str
    path: Path
    standard: str
    fingerprint: str
    objects: tuple[Path, ...] = ()
    rebuilt: bool = True

    @property
    def directory(self) -> Path:
        return self.path.parent


@dataclass(frozen=True, slots=True)
class LinkDirective:
    kind: DirectiveKind
    value: str

    def render(self) -> str:
        if self.kind == "link-search":
            return f"cargo:rustc-link-search=native={self.value}"
        if self.kind == "link-lib":
            return f"cargo:rustc-link-lib={self.value}"
        return f"cargo:rerun-if-changed={self.value}"


@dataclass(frozen=True, slots=True)
class LinkPlan:
    directives: tuple[LinkDirective, ...] = ()

    @property
    def search_paths(self) -> tuple[str, ...]:
        return tuple(d.value for d in self.directives if d.kind == "link-search")

    @property
    def libraries(self) -> tuple[str, ...]:
        return tuple(d.value for d in self.directives if d.kind == "link-lib")

    def render(self) -> Iterator[str]:
        for directive in self.directives:
            yield directive.render()

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self.to_dict(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def to_dict(self) -> dict[str, object]:
        return {
            "search_paths": list(self.search_paths),
            "libraries": list(self.libraries),
            "directives": [d.render() for d in self.directives],
        }


@dataclass(frozen=True, slots=True)
class PipelineResult:
    location: BuildOutputLocation
    artifact: BridgeArtifact
    link_plan: LinkPlan
    tracked: tuple[Path, ...]
    report_path: Path | None = None
    plan_path: Path | None = None
