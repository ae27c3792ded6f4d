"""Error taxonomy for the promotion pipeline.

Lower layers raise these; only the orchestrator turns a kind into an exit code.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class ErrorKind(str, Enum):
    """Machine-readable failure classes."""

    ARGUMENT = "argument"
    CONFIG = "config"
    TARGET_NOT_FOUND = "target_not_found"
    UNIDENTIFIED_BUILD = "unidentified_build"
    DESCRIPTOR_NOT_FOUND = "descriptor_not_found"
    CREDENTIAL = "credential"
    GIT_TRANSPORT = "git_transport"
    FILESYSTEM = "filesystem"


class PromoteError(RuntimeError):
    """Base class for every terminal promotion failure."""

    kind: ErrorKind = ErrorKind.FILESYSTEM


class ArgumentError(PromoteError):
    """Unknown flag or malformed command line."""

    kind = ErrorKind.ARGUMENT


class ConfigError(PromoteError):
    """Configuration present but unparseable or schema-invalid."""

    kind = ErrorKind.CONFIG


class TargetNotFoundError(PromoteError):
    """Target is not a key of the gitops section."""

    kind = ErrorKind.TARGET_NOT_FOUND


class UnidentifiedBuildError(PromoteError):
    """CI metadata lacks commit or branch."""

    kind = ErrorKind.UNIDENTIFIED_BUILD


class DescriptorNotFoundError(PromoteError):
    """No deployment descriptors resolved for the target."""

    kind = ErrorKind.DESCRIPTOR_NOT_FOUND


class CredentialError(PromoteError):
    """SSH key missing or unreadable."""

    kind = ErrorKind.CREDENTIAL


class GitTransportError(PromoteError):
    """Clone, authentication or push failure."""

    kind = ErrorKind.GIT_TRANSPORT


class FilesystemError(PromoteError):
    """Reading descriptors or writing the destination failed."""

    kind = ErrorKind.FILESYSTEM


class ExitCode(IntEnum):
    """Process exit codes surfaced to CI callers."""

    OK = 0
    INVALID_INPUT = -1
    UNKNOWN_TARGET = -2
    UNIDENTIFIED_BUILD = -3
    PROMOTION_FAILED = -4

    @classmethod
    def for_kind(cls, kind: ErrorKind) -> ExitCode:
        return _EXIT_CODES[kind]


_EXIT_CODES: dict[ErrorKind, ExitCode] = {
    ErrorKind.ARGUMENT: ExitCode.INVALID_INPUT,
    ErrorKind.CONFIG: ExitCode.INVALID_INPUT,
    ErrorKind.TARGET_NOT_FOUND: ExitCode.UNKNOWN_TARGET,
    ErrorKind.UNIDENTIFIED_BUILD: ExitCode.UNIDENTIFIED_BUILD,
    ErrorKind.DESCRIPTOR_NOT_FOUND: ExitCode.PROMOTION_FAILED,
    ErrorKind.CREDENTIAL: ExitCode.PROMOTION_FAILED,
    ErrorKind.GIT_TRANSPORT: ExitCode.PROMOTION_FAILED,
    ErrorKind.FILESYSTEM: ExitCode.PROMOTION_FAILED,
}
