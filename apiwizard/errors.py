# File: apiwizard/errors.py
"""
APIWizard - Error Taxonomy
===========================

Every failure raised by the compiler derives from ``APIWizardError`` so that
callers embedding the library can catch the whole family with one clause.

    APIWizardError
    ├── PermissionCodecError
    │   ├── InvalidVerbError
    │   ├── InvalidRequestorError
    │   └── MalformedMaskError
    ├── UnsupportedFieldTypeError
    ├── SynthesisError
    │   ├── MissingPrimaryKeyError
    │   └── DuplicatePathError
    ├── InvalidTransitionError
    └── DraftStoreError

Codec and field-type errors also subclass ``ValueError``: they describe a bad
value, and code that already guards against ``ValueError`` keeps working.
"""

from __future__ import annotations

from typing import Any, Optional


class APIWizardError(Exception):
    """Base class for all apiwizard errors."""


# ---------------------------------------------------------------------------
# Codec-level
# ---------------------------------------------------------------------------


class PermissionCodecError(APIWizardError, ValueError):
    """Raised by the bitmask codec for bad input or corrupt persisted data."""


class InvalidVerbError(PermissionCodecError):
    """An HTTP verb outside GET/POST/PUT/PATCH/DELETE was supplied."""

    def __init__(self, verb: Any) -> None:
        self.verb: Any = verb
        super().__init__(f"Unsupported HTTP verb: {verb!r}.")


class InvalidRequestorError(PermissionCodecError):
    """A requestor kind other than API/SCRIPT was supplied."""

    def __init__(self, requestor: Any) -> None:
        self.requestor: Any = requestor
        super().__init__(f"Unsupported requestor type: {requestor!r}.")


class MalformedMaskError(PermissionCodecError):
    """An integer mask does not decompose into the expected flag set."""

    def __init__(self, mask: Any, kind: str = "verb", reason: str = "") -> None:
        self.mask: Any = mask
        self.kind: str = kind
        detail: str = f" ({reason})" if reason else ""
        super().__init__(f"Malformed {kind} mask {mask!r}{detail}.")


# ---------------------------------------------------------------------------
# Schema mapping
# ---------------------------------------------------------------------------


class UnsupportedFieldTypeError(APIWizardError, ValueError):
    """A column type outside the closed logical-type enumeration."""

    def __init__(self, field_type: Any, field_name: Optional[str] = None) -> None:
        self.field_type: Any = field_type
        self.field_name: Optional[str] = field_name
        where: str = f" on field '{field_name}'" if field_name else ""
        super().__init__(f"Unsupported field type {field_type!r}{where}.")


# ---------------------------------------------------------------------------
# Synthesis-level (user-recoverable by changing selections)
# ---------------------------------------------------------------------------


class SynthesisError(APIWizardError):
    """Base class for endpoint/document synthesis failures."""


class MissingPrimaryKeyError(SynthesisError):
    """A single-record verb was requested for a table with no primary key."""

    def __init__(self, table: str, verb: str) -> None:
        self.table: str = table
        self.verb: str = verb
        super().__init__(
            f"Table '{table}' has no primary key; "
            f"{verb} requires a path 'id' parameter."
        )


class DuplicatePathError(SynthesisError):
    """Two selected tables resolve to the same path or component name."""

    def __init__(self, path: str, tables: Any) -> None:
        self.path: str = path
        self.tables: tuple = tuple(tables)
        super().__init__(
            f"Tables {list(self.tables)} collide on '{path}'."
        )


# ---------------------------------------------------------------------------
# Wizard / persistence
# ---------------------------------------------------------------------------


class InvalidTransitionError(APIWizardError):
    """The wizard was asked to move in a direction it does not allow."""

    def __init__(self, step: Any, action: str, reason: str = "") -> None:
        self.step: Any = step
        self.action: str = action
        detail: str = f": {reason}" if reason else ""
        super().__init__(f"Cannot {action} from step {step}{detail}.")


class DraftStoreError(APIWizardError):
    """A draft store could not read or write a payload."""


__all__ = [
    "APIWizardError",
    "PermissionCodecError",
    "InvalidVerbError",
    "InvalidRequestorError",
    "MalformedMaskError",
    "UnsupportedFieldTypeError",
    "SynthesisError",
    "MissingPrimaryKeyError",
    "DuplicatePathError",
    "InvalidTransitionError",
    "DraftStoreError",
]
