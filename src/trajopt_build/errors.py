"""Typed pipeline error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across pipeline stages."""

    CONFIGURATION = "E_CONFIGURATION"
    NATIVE_BUILD = "E_NATIVE_BUILD"
    BUILD_OUTPUT = "E_BUILD_OUTPUT"
    BRIDGE_COMPILE = "E_BRIDGE_COMPILE"


class TrajoptBuildError(Exception):
    """Base error class that carries code, optional hint, context and exit status."""

    code: str
    hint: str | None
    context: Mapping[str, str]
    returncode: int | None

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        returncode: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})
        self.returncode = returncode

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    @property
    def exit_status(self) -> int:
        """Exit status the pipeline propagates for this failure.

        A child killed by signal N reports ``-N``; that becomes the shell
        convention ``128 + N``.
        """
        if not self.returncode:
            return 1
        if self.returncode < 0:
            return 128 - self.returncode
        return self.returncode

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        if self.returncode is not None:
            payload["returncode"] = self.returncode
        return payload


class ConfigurationError(TrajoptBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CONFIGURATION, hint=hint, context=context)


class NativeBuildError(TrajoptBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        returncode: int | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.NATIVE_BUILD,
            hint=hint,
            context=context,
            returncode=returncode,
        )


class BuildOutputError(TrajoptBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BUILD_OUTPUT, hint=hint, context=context)


class BridgeCompileError(TrajoptBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        returncode: int | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.BRIDGE_COMPILE,
            hint=hint,
            context=context,
            returncode=returncode,
        )


__all__ = [
    "BridgeCompileError",
    "BuildOutputError",
    "ConfigurationError",
    "ErrorCode",
    "NativeBuildError",
    "TrajoptBuildError",
]
