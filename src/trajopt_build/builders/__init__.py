"""Native build and bridge compile stages."""

from .bridge import BridgeCompiler, archive_filename
from .cmake import CMakeBuilder

__all__ = [
    "BridgeCompiler",
    "CMakeBuilder",
    "archive_filename",
]
