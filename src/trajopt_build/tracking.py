"""Change tracking: which paths invalidate a cached pipeline result.

The tracked set covers the bridge interface description, every adapter
source and header, and the file defining the pipeline itself. Sources of
the external native project are not tracked here; the native build is
re-invoked on every run and its own incremental logic decides what to
rebuild.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from pathlib import Path

from trajopt_build.cache import BridgeCacheInput
from trajopt_build.errors import ConfigurationError
from trajopt_build.models import BridgeSources, LinkDirective


def change_tracking_set(sources: BridgeSources, definition: Path) -> tuple[Path, ...]:
    ordered: list[Path] = []
    for path in (*sources.tracked_paths(), definition):
        if path not in ordered:
            ordered.append(path)
    return tuple(ordered)


def rerun_directives(paths: Iterable[Path]) -> tuple[LinkDirective, ...]:
    return tuple(LinkDirective(kind="rerun-if-changed", value=str(path)) for path in paths)


def file_digest(path: Path) -> str:
    try:
        payload = path.read_bytes()
    except FileNotFoundError as exc:
        raise ConfigurationError(
            "Tracked bridge input does not exist.",
            hint="List only files that exist in the bridge source tree.",
            context={"operation": "file_digest", "path": str(path)},
        ) from exc
    return hashlib.sha256(payload).hexdigest()


def tree_digest(root: Path) -> str:
    """Digest relative paths and contents of every file under *root*."""
    digest = hashlib.sha256()
    if not root.is_dir():
        return digest.hexdigest()
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        digest.update(path.relative_to(root).as_posix().encode("utf-8"))
        digest.update(b"\0")
        digest.update(path.read_bytes())
        digest.update(b"\0")
    return digest.hexdigest()


def bridge_fingerprint(
    *,
    tracked: Iterable[Path],
    standard: str,
    compiler: tuple[str, ...],
    archive_name: str,
    include_dir: Path,
    flags: tuple[str, ...] = (),
    generator: tuple[str, ...] = (),
) -> BridgeCacheInput:
    """Collect every input the bridge archive depends on.

    *compiler* and *generator* carry the tool command together with the
    version it reported, so a different binary or an upgraded one behind
    the same name both count as a change.
    """
    return BridgeCacheInput(
        source_digests=tuple((str(path), file_digest(path)) for path in tracked),
        standard=standard,
        compiler=compiler,
        archive_name=archive_name,
        header_tree=tree_digest(include_dir),
        flags=flags,
        generator=generator,
    )
