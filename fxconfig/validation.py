"""Checks for policy expressions, files and directories used by fxconfig operations."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Protocol

from fxconfig.policydsl import PolicyParseError, SignaturePolicyEnvelope, from_string


class ValidationError(ValueError):
    """Raised when an input fails validation."""


class PolicyChecker(Protocol):
    """Validates policy expressions."""

    def check(self, expression: str) -> object:
        """Raise ValidationError if the expression is not a valid policy."""
        ...


class FileChecker(Protocol):
    """Validates that a path names an existing regular file."""

    def exists(self, path: str) -> str:
        """Raise ValidationError unless the path is an existing file."""
        ...


class DirectoryChecker(Protocol):
    """Validates that a path names an existing directory."""

    def exists(self, path: str) -> str:
        """Raise ValidationError unless the path is an existing directory."""
        ...


@dataclass
class ValidationContext:
    """The set of checkers used to verify domain input."""

    policy_checker: PolicyChecker | None = None
    file_checker: FileChecker | None = None
    directory_checker: DirectoryChecker | None = None


class PolicyDSLChecker:
    """Validates policy expressions with the policy language parser."""

    def check(self, expression: str) -> SignaturePolicyEnvelope:
        """Parse the expression and return it, or raise ValidationError."""
        try:
            return from_string(expression)
        except PolicyParseError as exc:
            raise ValidationError(f"invalid policy expression: {exc}") from exc


def _stat_clean(path: str, missing_message: str) -> tuple[str, os.stat_result]:
    if not path:
        raise ValidationError("path must not be empty")
    clean = os.path.normpath(path)
    if ".." in clean:
        raise ValidationError("path traversal not allowed")
    try:
        return clean, os.stat(clean)
    except FileNotFoundError as exc:
        raise ValidationError(f"{missing_message}: {path}") from exc
    except OSError as exc:
        raise ValidationError(str(exc)) from exc


class OSFileChecker:
    """Checks file paths on the local file system, rejecting path traversal."""

    def exists(self, path: str) -> str:
        """Return the cleaned path if it is an existing regular file."""
        clean, info = _stat_clean(path, "file does not exist")
        if os.path.isdir(clean) or _is_dir(info):
            raise ValidationError(f"expected file but got directory: {path}")
        return clean


class OSDirectoryChecker:
    """Checks directory paths on the local file system, rejecting path traversal."""

    def exists(self, path: str) -> str:
        """Return the cleaned path if it is an existing directory."""
        clean, info = _stat_clean(path, "directory does not exist")
        if not _is_dir(info):
            raise ValidationError(f"not a directory: {path}")
        return clean


def _is_dir(info: os.stat_result) -> bool:
    import stat

    return stat.S_ISDIR(info.st_mode)


def new_validation_context() -> ValidationContext:
    """Return a context with the policy parser and local file-system checkers."""
    return ValidationContext(
        policy_checker=PolicyDSLChecker(),
        file_checker=OSFileChecker(),
        directory_checker=OSDirectoryChecker(),
    )