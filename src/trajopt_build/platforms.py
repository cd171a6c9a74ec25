"""Host platform detection and toolchain selection."""

from __future__ import annotations

import sys

from trajopt_build.models import HostPlatform, Toolchain

MSVC_GENERATOR = "Visual Studio 17 2022"
MSVC_EXCEPTION_FLAG = "/EHsc"

_PLATFORM_PREFIXES: tuple[tuple[str, HostPlatform], ...] = (
    ("linux", "linux"),
    ("darwin", "darwin"),
    ("win32", "windows"),
    ("cygwin", "windows"),
    ("windows", "windows"),
)


def host_platform(platform: str | None = None) -> HostPlatform:
    """Map a ``sys.platform`` string (or a host name) to a host platform.

    Hosts that are neither Linux, macOS nor Windows (the BSDs, illumos and
    so on) map to ``"posix"``.
    """
    raw = sys.platform if platform is None else platform
    for prefix, name in _PLATFORM_PREFIXES:
        if raw.startswith(prefix):
            return name
    return "posix"


def toolchain_for(platform: str) -> Toolchain:
    """Return the toolchain descriptor for *platform*.

    Windows has no toolchain CMake discovers the way it does elsewhere, so
    the Visual Studio generator is selected explicitly together with the
    exception-handling model the bridge's standard library usage needs.
    Every other host uses its default toolchain unmodified.
    """
    if platform == "windows":
        return Toolchain(
            generator=MSVC_GENERATOR,
            cxxflags=(MSVC_EXCEPTION_FLAG,),
            compiler_family="msvc",
        )
    return Toolchain()
