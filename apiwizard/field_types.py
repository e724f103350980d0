# File: apiwizard/field_types.py
"""
APIWizard - Field Type Mapper
==============================
Maps a column's logical type onto the OpenAPI ``type`` / ``format`` pair and
the validation constraints every column of that type gets by default.

The mapping is total over ``LogicalType``; anything else reaching it is a
programmer error and raises ``UnsupportedFieldTypeError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from apiwizard.errors import UnsupportedFieldTypeError
from apiwizard.models import (
    FieldDescriptor,
    LogicalType,
    ParameterLocation,
    ParameterSpec,
    normalize_logical_type,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.field_types")


@dataclass(frozen=True)
class OpenAPIType:
    """OpenAPI rendering of one logical type."""

    type: str
    format: Optional[str] = None
    default_constraints: Dict[str, Any] = field(default_factory=dict)

    def as_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type}
        if self.format:
            schema["format"] = self.format
        schema.update(self.default_constraints)
        return schema


_UUID_PATTERN: str = (
    "^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)

# ---------------------------------------------------------------------------
# Type table
# ---------------------------------------------------------------------------

_TYPE_TABLE: Dict[LogicalType, OpenAPIType] = {
    LogicalType.STRING: OpenAPIType("string", None, {"maxLength": 255}),
    LogicalType.INTEGER: OpenAPIType(
        "integer", "int32", {"minimum": -2147483648, "maximum": 2147483647}
    ),
    LogicalType.BIGINT: OpenAPIType(
        "integer",
        "int64",
        {"minimum": -9223372036854775808, "maximum": 9223372036854775807},
    ),
    LogicalType.DECIMAL: OpenAPIType("number", "decimal"),
    LogicalType.FLOAT: OpenAPIType("number", "float"),
    LogicalType.DOUBLE: OpenAPIType("number", "double"),
    LogicalType.BOOLEAN: OpenAPIType("boolean"),
    LogicalType.DATE: OpenAPIType("string", "date"),
    LogicalType.DATETIME: OpenAPIType("string", "date-time"),
    LogicalType.TIMESTAMP: OpenAPIType("string", "date-time"),
    LogicalType.TIME: OpenAPIType("string", "time"),
    LogicalType.TEXT: OpenAPIType("string", None, {"maxLength": 65535}),
    LogicalType.JSON: OpenAPIType("object"),
    LogicalType.BINARY: OpenAPIType("string", "binary"),
    LogicalType.UUID: OpenAPIType("string", "uuid", {"pattern": _UUID_PATTERN}),
}

# Keywords that only make sense for string-typed values.
_STRING_ONLY_KEYWORDS = frozenset({"maxLength", "minLength", "pattern"})


def map_to_openapi_type(logical_type: Any) -> OpenAPIType:
    """
    Return the OpenAPI type, format and default constraints for
    *logical_type*.

    Examples:
        >>> map_to_openapi_type(LogicalType.BIGINT).format
        'int64'
        >>> map_to_openapi_type("uuid").type
        'string'

    Raises:
        UnsupportedFieldTypeError: when *logical_type* is not a member of
            the closed enumeration.
    """
    if isinstance(logical_type, LogicalType):
        member: LogicalType = logical_type
    else:
        try:
            member = LogicalType(logical_type)
        except ValueError:
            raise UnsupportedFieldTypeError(logical_type) from None
    mapped: OpenAPIType = _TYPE_TABLE[member]
    # Hand out a copy: callers merge field-specific constraints into it.
    return OpenAPIType(mapped.type, mapped.format, dict(mapped.default_constraints))


def _field_constraints(fd: FieldDescriptor) -> Dict[str, Any]:
    constraints: Dict[str, Any] = dict(_TYPE_TABLE[fd.logical_type].default_constraints)
    if fd.length and _TYPE_TABLE[fd.logical_type].type == "string":
        constraints["maxLength"] = fd.length
    return constraints


def infer_parameter_defaults(fd: FieldDescriptor) -> ParameterSpec:
    """
    Derive the parameter an editor should be pre-populated with for *fd*.

    A field is required when it is declared required, not nullable and not
    filled in by the database (auto-increment).  A declared ``length``
    replaces the type's default ``maxLength``.
    """
    mapped: OpenAPIType = _TYPE_TABLE[fd.logical_type]
    return ParameterSpec(
        name=fd.name,
        location=ParameterLocation.QUERY,
        type=mapped.type,
        format=mapped.format,
        required=fd.required and not fd.allow_null and not fd.auto_increment,
        nullable=fd.allow_null,
        description=fd.description or fd.label or "",
        default=fd.default,
        constraints=_field_constraints(fd),
    )


def field_schema(fd: FieldDescriptor) -> Dict[str, Any]:
    """OpenAPI property schema for a single column."""
    schema: Dict[str, Any] = _TYPE_TABLE[fd.logical_type].as_schema()
    schema.update(_field_constraints(fd))
    if fd.allow_null and not fd.is_primary_key:
        schema["nullable"] = True
    if fd.is_primary_key and fd.auto_increment:
        schema["readOnly"] = True
    if fd.default is not None:
        schema["default"] = fd.default

    description: str = fd.description or fd.label or ""
    if fd.is_foreign_key and fd.ref_table:
        target: str = f"{fd.ref_table}.{fd.ref_field}" if fd.ref_field else fd.ref_table
        description = f"{description} (references {target})".strip()
    if description:
        schema["description"] = description
    return schema


def parameter_schema(param: ParameterSpec) -> Dict[str, Any]:
    """Render a non-body ``ParameterSpec`` as an OpenAPI schema object."""
    schema: Dict[str, Any] = {"type": param.type}
    if param.format:
        schema["format"] = param.format
    for key, value in param.constraints.items():
        if key in _STRING_ONLY_KEYWORDS and param.type != "string":
            logger.debug(
                "Dropping %s on non-string parameter '%s'.", key, param.name
            )
            continue
        schema[key] = value
    if param.nullable:
        schema["nullable"] = True
    if param.default is not None:
        schema["default"] = param.default
    return schema


__all__: List[str] = [
    "OpenAPIType",
    "map_to_openapi_type",
    "normalize_logical_type",
    "infer_parameter_defaults",
    "field_schema",
    "parameter_schema",
]
