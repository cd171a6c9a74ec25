"""Bridge stamp cache APIs."""

from .keys import BridgeCacheInput, cache_key
from .store import StampStore

__all__ = ["BridgeCacheInput", "StampStore", "cache_key"]
