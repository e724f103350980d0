# File: apiwizard/validators.py
"""
APIWizard - Step & Document Validators
========================================
Pydantic handles per-field structural correctness of the models.  This
module adds the **cross-entity rules** the wizard gates on:

- table selection bounds,
- endpoint configuration sanity (rate-limit ranges, parameter naming,
  role lists, body schemas),
- structural checks on a synthesized OpenAPI document ($refs resolve,
  operationIds unique, path templates backed by path parameters).

Every function is pure and returns a ``ValidationResult``; nothing here
raises for invalid input.

Usage:
    from apiwizard.validators import validate_method_configs
    result = validate_method_configs(configs)
    if not result:
        print(result.format_report())
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from apiwizard.models import (
    BODY_VERBS,
    EndpointMethodConfig,
    OpenAPIDocument,
    ParameterLocation,
    RateLimit,
    WizardSettings,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationIssue:
    """Lightweight issue descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationResult:
    """Accumulates ``ValidationIssue`` instances."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationIssue] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationIssue("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationIssue("warning", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_warning]

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def error_count(self) -> int:
        return sum(1 for e in self._items if e.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self._items if e.is_warning)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def messages(self) -> List[str]:
        """Error messages only, in the order they were found."""
        return [e.message for e in self._items if e.is_error]

    def codes(self) -> Set[str]:
        return {e.code for e in self._items}

    def summary(self) -> str:
        return (
            f"Validation: {self.error_count} error(s), "
            f"{self.warning_count} warning(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            prefix: str = "ERROR  " if item.is_error else "WARNING"
            lines.append(f"  {prefix} [{item.code}] {item.message}")
            for k, v in item.context.items():
                lines.append(f"       {k}: {v}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------

_PARAMETER_NAME_RE: re.Pattern[str] = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")
_PATH_TEMPLATE_RE: re.Pattern[str] = re.compile(r"\{([^}/]+)\}")
_REF_PREFIX: str = "#/components/schemas/"

MAX_PARAMETER_NAME_LENGTH: int = 64
MAX_ROLES_PER_ENDPOINT: int = 20
MAX_ROLE_NAME_LENGTH: int = 64

RATE_LIMIT_MAXIMA: Dict[str, int] = {
    "requests_per_minute": 1000,
    "requests_per_hour": 100000,
    "requests_per_day": 1000000,
    "burst_allowance": 100,
}


# ---------------------------------------------------------------------------
# Step validators
# ---------------------------------------------------------------------------


def validate_table_selection(
    selected: Iterable[str],
    settings: Optional[WizardSettings] = None,
) -> ValidationResult:
    """At least one table, at most ``settings.max_tables``."""
    cfg: WizardSettings = settings or WizardSettings()
    result: ValidationResult = ValidationResult()
    count: int = len(set(selected))
    if count == 0:
        result.add_error("NO_TABLES_SELECTED", "Select at least one table.")
    elif count > cfg.max_tables:
        result.add_error(
            "TOO_MANY_TABLES",
            f"At most {cfg.max_tables} tables can be selected ({count} selected).",
            {"selected": count, "max_tables": cfg.max_tables},
        )
    return result


def validate_rate_limit(limit: RateLimit, where: str = "") -> ValidationResult:
    result: ValidationResult = ValidationResult()
    ctx: Dict[str, Any] = {"endpoint": where} if where else {}
    for key, maximum in RATE_LIMIT_MAXIMA.items():
        value: int = getattr(limit, key)
        if value > maximum:
            result.add_error(
                "RATE_LIMIT_OUT_OF_RANGE",
                f"{where + ': ' if where else ''}{key} must be between 0 and "
                f"{maximum} (got {value}).",
                ctx,
            )
    if limit.requests_per_minute > limit.requests_per_hour > 0:
        result.add_warning(
            "RATE_LIMIT_INCONSISTENT",
            f"{where + ': ' if where else ''}per-minute limit exceeds per-hour limit.",
            ctx,
        )
    return result


def validate_method_config(cfg: EndpointMethodConfig) -> ValidationResult:
    """Rules for a single endpoint configuration."""
    where: str = f"{cfg.method.value} {cfg.table}"
    result: ValidationResult = ValidationResult()
    ctx: Dict[str, Any] = {"endpoint": where}

    seen: Set[Tuple[str, str]] = set()
    for param in cfg.parameters:
        key: Tuple[str, str] = (param.name, param.location.value)
        if key in seen:
            result.add_error(
                "DUPLICATE_PARAMETER",
                f"{where}: parameter '{param.name}' is declared twice in "
                f"{param.location.value}.",
                ctx,
            )
        seen.add(key)
        if len(param.name) > MAX_PARAMETER_NAME_LENGTH:
            result.add_error(
                "PARAMETER_NAME_TOO_LONG",
                f"{where}: parameter name '{param.name}' exceeds "
                f"{MAX_PARAMETER_NAME_LENGTH} characters.",
                ctx,
            )
        elif not _PARAMETER_NAME_RE.match(param.name):
            result.add_error(
                "INVALID_PARAMETER_NAME",
                f"{where}: parameter name '{param.name}' must start with a "
                f"letter and contain only letters, digits and underscores.",
                ctx,
            )
        if param.location == ParameterLocation.BODY and not param.schema_ref:
            result.add_error(
                "BODY_WITHOUT_SCHEMA",
                f"{where}: body parameter '{param.name}' has no schema.",
                ctx,
            )

    if cfg.method in BODY_VERBS and not cfg.request_schema:
        result.add_error(
            "MISSING_REQUEST_SCHEMA",
            f"{where}: a request body schema is required.",
            ctx,
        )
    if cfg.is_single_record and cfg.get_parameter("id", ParameterLocation.PATH) is None:
        result.add_error(
            "MISSING_PATH_ID",
            f"{where}: single-record endpoints need a path 'id' parameter.",
            ctx,
        )

    roles: Tuple[str, ...] = cfg.security.required_roles
    if len(roles) > MAX_ROLES_PER_ENDPOINT:
        result.add_error(
            "TOO_MANY_ROLES",
            f"{where}: at most {MAX_ROLES_PER_ENDPOINT} roles per endpoint.",
            ctx,
        )
    for role in roles:
        if not role.strip():
            result.add_error("EMPTY_ROLE_NAME", f"{where}: role names must not be empty.", ctx)
        elif len(role) > MAX_ROLE_NAME_LENGTH:
            result.add_error(
                "ROLE_NAME_TOO_LONG",
                f"{where}: role '{role}' exceeds {MAX_ROLE_NAME_LENGTH} characters.",
                ctx,
            )
    if len(set(roles)) != len(roles):
        result.add_warning("DUPLICATE_ROLE", f"{where}: a role is listed twice.", ctx)
    if not cfg.security.require_auth and roles:
        result.add_warning(
            "ROLES_WITHOUT_AUTH",
            f"{where}: roles are ignored while authentication is disabled.",
            ctx,
        )

    result.merge(validate_rate_limit(cfg.security.rate_limit, where))
    return result


def validate_method_configs(configs: Iterable[EndpointMethodConfig]) -> ValidationResult:
    """Validate every enabled configuration."""
    result: ValidationResult = ValidationResult()
    checked: int = 0
    for cfg in configs:
        if not cfg.enabled:
            continue
        result.merge(validate_method_config(cfg))
        checked += 1
    logger.debug("validate_method_configs: %d configs, %s", checked, result.summary())
    return result


# ---------------------------------------------------------------------------
# Document validator
# ---------------------------------------------------------------------------


def _iter_refs(node: Any) -> Iterator[str]:
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "$ref" and isinstance(value, str):
                yield value
            else:
                yield from _iter_refs(value)
    elif isinstance(node, list):
        for item in node:
            yield from _iter_refs(item)


def validate_document(document: Union[OpenAPIDocument, Dict[str, Any]]) -> ValidationResult:
    """
    Structural checks on a synthesized document:

    - ``openapi`` is a 3.0.x version,
    - every ``$ref`` resolves to a component schema,
    - operationIds are unique,
    - every ``{param}`` in a path is declared as a required path parameter
      on each of its operations, and no undeclared path parameters exist.
    """
    data: Dict[str, Any] = (
        document.to_dict() if isinstance(document, OpenAPIDocument) else document
    )
    result: ValidationResult = ValidationResult()

    version: str = str(data.get("openapi", ""))
    if not version.startswith("3.0."):
        result.add_error("UNSUPPORTED_OPENAPI_VERSION", f"Unsupported OpenAPI version '{version}'.")

    schemas: Dict[str, Any] = data.get("components", {}).get("schemas", {})
    for ref in sorted(set(_iter_refs(data.get("paths", {}))) | set(_iter_refs(schemas))):
        if not ref.startswith(_REF_PREFIX) or ref[len(_REF_PREFIX):] not in schemas:
            result.add_error("UNRESOLVED_REF", f"Reference '{ref}' does not resolve.", {"ref": ref})

    seen_ids: Dict[str, str] = {}
    for path, item in data.get("paths", {}).items():
        template_params: Set[str] = set(_PATH_TEMPLATE_RE.findall(path))
        for verb, operation in item.items():
            where: str = f"{verb.upper()} {path}"
            op_id: Optional[str] = operation.get("operationId")
            if not op_id:
                result.add_error("MISSING_OPERATION_ID", f"{where}: no operationId.")
            elif op_id in seen_ids:
                result.add_error(
                    "DUPLICATE_OPERATION_ID",
                    f"operationId '{op_id}' is used by {seen_ids[op_id]} and {where}.",
                )
            else:
                seen_ids[op_id] = where

            declared: Set[str] = set()
            for param in operation.get("parameters", []):
                if param.get("in") != "path":
                    continue
                declared.add(param.get("name"))
                if not param.get("required"):
                    result.add_error(
                        "OPTIONAL_PATH_PARAMETER",
                        f"{where}: path parameter '{param.get('name')}' must be required.",
                    )
            for missing in sorted(template_params - declared):
                result.add_error(
                    "UNDECLARED_PATH_PARAMETER",
                    f"{where}: path parameter '{missing}' is not declared.",
                )
            for extra in sorted(declared - template_params):
                result.add_error(
                    "UNKNOWN_PATH_PARAMETER",
                    f"{where}: parameter '{extra}' is not part of the path.",
                )
            if not operation.get("responses"):
                result.add_error("MISSING_RESPONSES", f"{where}: no responses defined.")

    logger.debug("validate_document: %s", result.summary())
    return result


__all__: List[str] = [
    "ValidationIssue",
    "ValidationResult",
    "RATE_LIMIT_MAXIMA",
    "MAX_PARAMETER_NAME_LENGTH",
    "MAX_ROLES_PER_ENDPOINT",
    "MAX_ROLE_NAME_LENGTH",
    "validate_table_selection",
    "validate_rate_limit",
    "validate_method_config",
    "validate_method_configs",
    "validate_document",
]
