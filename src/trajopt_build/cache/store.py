"""Stamp manifests recording which inputs a bridge archive was built from."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

from trajopt_build.cache.keys import BridgeCacheInput, _to_payload, cache_key

STAMP_NAME = "bridge.stamp.json"


class StampStore:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    @property
    def stamp_path(self) -> Path:
        return self.root / STAMP_NAME

    def is_fresh(self, *, archive: Path, expected_inputs: BridgeCacheInput) -> bool:
        """Return whether *archive* was built from exactly *expected_inputs*.

        Unreadable, tampered or mismatched stamps count as stale; the caller
        rebuilds and overwrites them.
        """
        if not archive.is_file() or not self.stamp_path.is_file():
            return False
        manifest = self._read_manifest()
        if manifest is None:
            return False
        key = cache_key(expected_inputs)
        if manifest.get("key") != key:
            return False
        if manifest.get("inputs") != _to_payload(expected_inputs):
            return False
        actual_digest = hashlib.sha256(archive.read_bytes()).hexdigest()
        return manifest.get("artifact_sha256") == actual_digest

    def save(self, *, inputs: BridgeCacheInput, archive: Path) -> str:
        key = cache_key(inputs)
        self.root.mkdir(parents=True, exist_ok=True)
        manifest = {
            "key": key,
            "inputs": _to_payload(inputs),
            "artifact": archive.name,
            "artifact_sha256": hashlib.sha256(archive.read_bytes()).hexdigest(),
        }
        self.stamp_path.write_text(
            json.dumps(manifest, indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return key

    def invalidate(self) -> None:
        self.stamp_path.unlink(missing_ok=True)

    def _read_manifest(self) -> dict[str, object] | None:
        try:
            parsed = json.loads(self.stamp_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None
        if not isinstance(parsed, dict):
            return None
        return parsed
