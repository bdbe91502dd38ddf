"""traceviz Error Code Registry.

Provides structured error codes with helpful messages and next steps.
Each error has:
- Code: TVZ-EXXX format
- Message: Human-readable description
- Next step: Actionable command or instruction
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import sys


class ErrorCode(Enum):
    """traceviz error codes."""

    # Configuration errors (E001-E099)
    E001 = "E001"  # Invalid configuration value

    # Input errors (E100-E199)
    E100 = "E100"  # Spans file not found
    E101 = "E101"  # Spans file unreadable / malformed
    E102 = "E102"  # Span schema validation failed
    E103 = "E103"  # Trace id not present in spans file

    # Output errors (E300-E399)
    E300 = "E300"  # Cannot write file


@dataclass
class TraceVizError:
    """Structured error with code, message, and next step."""

    code: ErrorCode
    message: str
    next_step: str
    details: Optional[str] = None

    def __str__(self) -> str:
        lines = [
            f"TVZ-{self.code.value}: {self.message}",
        ]
        if self.details:
            lines.append(f"  Details: {self.details}")
        lines.append(f"  Next step: {self.next_step}")
        return "\n".join(lines)

    def print(self, file=None) -> None:
        """Print the error to stderr (or specified file)."""
        print(str(self), file=file or sys.stderr)


# (message_template, next_step)
ERROR_TEMPLATES: dict[ErrorCode, tuple[str, str]] = {
    ErrorCode.E001: (
        "Invalid configuration: {details}",
        "Run 'traceviz show-config' and check TRACEVIZ_* variables",
    ),
    ErrorCode.E100: (
        "Spans file not found: {details}",
        "Check the --spans path",
    ),
    ErrorCode.E101: (
        "Cannot parse spans file: {details}",
        "Spans files must be JSON, JSONL or YAML lists of span records",
    ),
    ErrorCode.E102: (
        "Span schema validation failed",
        "Run 'traceviz validate --spans <file>' to see details",
    ),
    ErrorCode.E103: (
        "No spans found for trace: {details}",
        "Check --trace-id or omit it to use every span in the file",
    ),
    ErrorCode.E300: (
        "Cannot write file: {details}",
        "Check directory permissions",
    ),
}


def make_error(code: ErrorCode, details: Optional[str] = None) -> TraceVizError:
    """Create a TraceVizError from a code with optional details.

    Args:
        code: The error code
        details: Optional details to include in the message

    Returns:
        TraceVizError instance ready to print
    """
    template = ERROR_TEMPLATES.get(code, ("Unknown error", "Re-run with --verbose"))
    message_template, next_step = template

    if details and "{details}" in message_template:
        message = message_template.format(details=details)
    elif details:
        message = f"{message_template}: {details}"
    else:
        message = message_template.replace(": {details}", "")

    return TraceVizError(
        code=code,
        message=message,
        next_step=next_step,
        details=details if "{details}" not in message_template else None,
    )


# Verbose mode flag (set by CLI)
_verbose_mode: bool = False


def set_verbose(verbose: bool) -> None:
    """Set verbose mode for error output."""
    global _verbose_mode
    _verbose_mode = verbose


def is_verbose() -> bool:
    """Check if verbose mode is enabled."""
    return _verbose_mode


def handle_exception(exc: Exception, code: ErrorCode, details: Optional[str] = None) -> None:
    """Print a formatted error; in verbose mode also print the traceback."""
    import traceback

    err = make_error(code, details or str(exc))
    err.print()

    if _verbose_mode:
        print("\n--- Full Traceback ---", file=sys.stderr)
        traceback.print_exception(type(exc), exc, exc.__traceback__)
