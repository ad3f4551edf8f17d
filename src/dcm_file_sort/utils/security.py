"""
Path safety utilities for building destinations from header values.

Header values end up as directory and file names, so they are sanitized
before use and every final destination is checked against its root.
"""

import re
from pathlib import Path

from ..exceptions import InvalidFieldValueError


class PathValidationError(ValueError):
    """Raised when path validation fails."""
    pass


# Characters that are illegal in file names on at least one supported platform
_ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
_TRAILING_DOTS_SPACES = re.compile(r"[. ]+$")

_RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    *(f"COM{i}" for i in range(1, 10)),
    *(f"LPT{i}" for i in range(1, 10)),
}


class SecurityUtils:
    """Security utilities for destination paths."""

    @staticmethod
    def sanitize_component(field: str, value: str) -> str:
        """
        Make a header value usable as a single path component.

        Illegal characters and trailing dots/spaces are replaced with ``_``
        one for one, so the length never changes. Values that cannot be made
        safe are rejected rather than altered.

        Args:
            field: Logical field name, used in error messages
            value: Raw header value

        Returns:
            The sanitized component

        Raises:
            InvalidFieldValueError: If the value is empty, a relative
                reference ('.' or '..'), or a reserved device name
        """
        text = value.strip()
        if not text:
            raise InvalidFieldValueError(field, value, "empty after trimming")
        if text in (".", ".."):
            raise InvalidFieldValueError(field, value, "relative path reference")

        text = _ILLEGAL_CHARS.sub("_", text)
        text = _TRAILING_DOTS_SPACES.sub(lambda m: "_" * len(m.group(0)), text)

        if text.split(".")[0].upper() in _RESERVED_NAMES:
            raise InvalidFieldValueError(field, value, "reserved device name")
        return text

    @staticmethod
    def is_valid_path(path: Path, base_path: Path) -> bool:
        """
        Ensure path is within the base directory and doesn't escape.

        Args:
            path: Path to validate
            base_path: Base directory to check against

        Returns:
            True if path is valid and safe

        Raises:
            PathValidationError: If path contains suspicious patterns or escapes base
        """
        if not str(path):
            raise PathValidationError("Path cannot be empty")

        if '\x00' in str(path):
            raise PathValidationError("Path contains null bytes")

        if ".." in path.parts:
            raise PathValidationError("Path contains parent directory references")

        try:
            base_resolved = base_path.resolve()
            path_resolved = path.resolve()
        except OSError as e:
            raise PathValidationError(f"Cannot resolve path: {e}")

        if not path_resolved.is_relative_to(base_resolved):
            raise PathValidationError(f"Path escapes base directory: {path}")

        return True
