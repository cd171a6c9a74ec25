"""Cache key derivation for the bridge stage."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any

import cbor2


@dataclass(frozen=True, slots=True)
class BridgeCacheInput:
    source_digests: tuple[tuple[str, str], ...]
    standard: str
    compiler: tuple[str, ...]
    archive_name: str
    header_tree: str
    flags: tuple[str, ...] = ()
    generator: tuple[str, ...] = ()


def cache_key(inputs: BridgeCacheInput) -> str:
    canonical = cbor2.dumps(_to_payload(inputs), canonical=True)
    return hashlib.sha256(canonical).hexdigest()


def _to_payload(inputs: BridgeCacheInput) -> dict[str, Any]:
    return {
        "source_digests": [list(item) for item in inputs.source_digests],
        "standard": inputs.standard,
        "compiler": list(inputs.compiler),
        "archive_name": inputs.archive_name,
        "header_tree": inputs.header_tree,
        "flags": list(inputs.flags),
        "generator": list(inputs.generator),
    }
