"""Link plan resolution for single-pass static linkers.

Search paths come first so archives are found regardless of the linker's
own search order. Libraries follow in dependency order: the bridge glue,
then the domain library it calls, then the numerics dependency, then the
supporting utility libraries. Each archive appears before every archive
whose symbols it needs. Nothing is checked for existence here; a wrong
name or order surfaces at the downstream link step.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from trajopt_build.models import BridgeArtifact, BuildOutputLocation, LinkDirective, LinkPlan


def resolve_link_plan(
    artifact: BridgeArtifact,
    location: BuildOutputLocation,
    libraries: Iterable[str],
) -> LinkPlan:
    search_paths = (artifact.directory, location.bin_dir, location.lib_dir)
    names = (artifact.name, *libraries)
    directives = [LinkDirective(kind="link-search", value=str(path)) for path in search_paths]
    directives.extend(LinkDirective(kind="link-lib", value=name) for name in names)
    return LinkPlan(directives=tuple(directives))


def emit(directives: Iterable[LinkDirective], sink: Callable[[str], object] = print) -> None:
    for directive in directives:
        sink(directive.render())
