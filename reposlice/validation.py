"""
Validation — Error types and input checks shared across the codebase.

Every failure that aborts a run is one of the exceptions below, so the
CLI can report it with a single ``except ReposliceError``.

## Usage

    from reposlice.validation import ConfigurationError, validate_config_file

    try:
        validate_config_file(config_path)
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}")
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional


class ReposliceError(Exception):
    """Base class for all errors raised by reposlice."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(ReposliceError):
    """Raised when configuration, a filter, a version or a location is malformed."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.field = field
        super().__init__(f"{field}: {message}" if field else message, details)


class FilterSyntaxError(ConfigurationError):
    """Raised when an LDAP-style filter expression cannot be parsed."""

    def __init__(self, message: str, expression: str, position: int = -1):
        self.expression = expression
        self.position = position
        where = f" at position {position}" if position >= 0 else ""
        super().__init__(
            f"{message}{where} in filter {expression!r}",
            details={"expression": expression, "position": position},
        )


class VersionFormatError(ConfigurationError):
    """Raised when a version or version range string is malformed."""

    def __init__(self, message: str, text: str):
        self.text = text
        super().__init__(f"{message}: {text!r}", details={"text": text})


class ReferenceLoadError(ReposliceError):
    """Raised when a referenced repository cannot be opened."""

    def __init__(self, location: str, reason: str):
        self.location = location
        self.reason = reason
        super().__init__(
            f"Cannot load referenced repository {location}: {reason}",
            details={"location": location},
        )


class MirrorError(ReposliceError):
    """Raised when a mirror run cannot complete."""

    def __init__(self, message: str, items: Optional[List[str]] = None):
        self.items = items or []
        super().__init__(message, details={"items": self.items})


def validate_config_file(path: Path) -> None:
    """Validate that a configuration file exists and is a readable file."""
    if not path.exists():
        raise ConfigurationError(f"Configuration file does not exist: {path}")
    if not path.is_file():
        raise ConfigurationError(f"Configuration path is not a file: {path}")
    try:
        path.read_text(encoding="utf-8")
    except (PermissionError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Configuration file is not readable: {path} ({e})")


def validate_destination_dir(path: Path) -> None:
    """Validate that a destination path is not an existing regular file."""
    if path.exists() and not path.is_dir() and path.suffix != ".json":
        raise ConfigurationError(
            f"Destination must be a directory or a .json file: {path}",
            field="destination.location",
        )
