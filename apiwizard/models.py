# File: apiwizard/models.py
"""
APIWizard - Core Data Models
=============================
Pydantic V2 models describing everything the compiler consumes and produces:

    Schema discovery  → TableDescriptor / FieldDescriptor
    Wizard editing    → EndpointMethodConfig / MethodOverrides / WizardState
    Synthesis output  → OpenAPIDocument
    Role editing      → RoleServiceAccess (persisted) / RoleFormAccess (form)

Descriptor, configuration and state models are frozen: every edit produces a
new instance, which keeps preview documents and drafts consistent with the
snapshot they were computed from.
"""

from __future__ import annotations

import copy
import json
import logging
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, List, Literal, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_serializer,
    field_validator,
    model_validator,
)

from apiwizard.errors import UnsupportedFieldTypeError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.models")

# ---------------------------------------------------------------------------
# Enums: fixed sets used across the entire project
# ---------------------------------------------------------------------------


class LogicalType(str, Enum):
    """Closed enumeration of column types understood by the compiler."""

    STRING = "string"
    INTEGER = "integer"
    BIGINT = "bigint"
    DECIMAL = "decimal"
    FLOAT = "float"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"
    TIME = "time"
    TEXT = "text"
    JSON = "json"
    BINARY = "binary"
    UUID = "uuid"


class HTTPVerb(str, Enum):
    """HTTP methods that can be toggled per table."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class RequestorType(str, Enum):
    """Caller classes allowed to invoke a service component."""

    API = "API"
    SCRIPT = "SCRIPT"


class ParameterLocation(str, Enum):
    """Where a parameter travels in the request."""

    QUERY = "query"
    PATH = "path"
    HEADER = "header"
    BODY = "body"


class WizardStep(str, Enum):
    """Ordered steps of the API generation wizard."""

    TABLE_SELECTION = "table_selection"
    ENDPOINT_CONFIGURATION = "endpoint_configuration"
    GENERATION_PREVIEW = "generation_preview"
    GENERATION_PROGRESS = "generation_progress"
    COMPLETED = "completed"
    ERROR = "error"


class FilterOperator(str, Enum):
    """Operators accepted in role service-access filters."""

    EQUALS = "="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_EQUAL = ">="
    LESS_EQUAL = "<="
    IN = "in"
    NOT_IN = "not in"
    STARTS_WITH = "start with"
    ENDS_WITH = "end with"
    CONTAINS = "contains"
    IS_NULL = "is null"
    IS_NOT_NULL = "is not null"


# Canonical display / emission order.
VERB_ORDER: Tuple[HTTPVerb, ...] = (
    HTTPVerb.GET,
    HTTPVerb.POST,
    HTTPVerb.PUT,
    HTTPVerb.PATCH,
    HTTPVerb.DELETE,
)

# Verbs addressing a single record through a path ``id``.
SINGLE_RECORD_VERBS: FrozenSet[HTTPVerb] = frozenset(
    {HTTPVerb.PUT, HTTPVerb.PATCH, HTTPVerb.DELETE}
)

# Verbs carrying a request body.
BODY_VERBS: FrozenSet[HTTPVerb] = frozenset(
    {HTTPVerb.POST, HTTPVerb.PUT, HTTPVerb.PATCH}
)

TERMINAL_STEPS: FrozenSet[WizardStep] = frozenset(
    {WizardStep.COMPLETED, WizardStep.ERROR}
)

# DreamFactory discovery type names that are not in the closed enumeration
# but map onto it unambiguously.
_DISCOVERY_TYPE_ALIASES: Dict[str, LogicalType] = {
    "id": LogicalType.INTEGER,
    "reference": LogicalType.INTEGER,
    "user_id": LogicalType.INTEGER,
    "user_id_on_create": LogicalType.INTEGER,
    "user_id_on_update": LogicalType.INTEGER,
    "timestamp_on_create": LogicalType.TIMESTAMP,
    "timestamp_on_update": LogicalType.TIMESTAMP,
    "money": LogicalType.DECIMAL,
}


def normalize_logical_type(raw: Any, field_name: Optional[str] = None) -> LogicalType:
    """
    Resolve a discovery type name to a ``LogicalType``.

    Raises:
        UnsupportedFieldTypeError: for anything outside the enumeration
            and the known discovery aliases.
    """
    if isinstance(raw, LogicalType):
        return raw
    if not isinstance(raw, str):
        raise UnsupportedFieldTypeError(raw, field_name)
    key: str = raw.strip().lower()
    if key in _DISCOVERY_TYPE_ALIASES:
        return _DISCOVERY_TYPE_ALIASES[key]
    try:
        return LogicalType(key)
    except ValueError:
        raise UnsupportedFieldTypeError(raw, field_name) from None


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    populate_by_name=True,
    frozen=True,
    extra="forbid",
)

# Discovery and persisted payloads carry keys we do not model.
_PAYLOAD_CONFIG: ConfigDict = ConfigDict(
    populate_by_name=True,
    frozen=True,
    extra="ignore",
)


# ---------------------------------------------------------------------------
# Schema discovery
# ---------------------------------------------------------------------------


class FieldDescriptor(BaseModel):
    """
    One column of a discovered table.

    Accepts the DreamFactory discovery keys directly (``type`` is an alias of
    ``logical_type``); unknown keys such as ``db_type`` are ignored.
    """

    model_config = _PAYLOAD_CONFIG

    name: str = Field(..., min_length=1, description="Column name.")
    logical_type: LogicalType = Field(..., alias="type", description="Logical type.")
    is_primary_key: bool = Field(default=False)
    is_foreign_key: bool = Field(default=False)
    ref_table: Optional[str] = Field(default=None)
    ref_field: Optional[str] = Field(default=None)
    required: bool = Field(default=False)
    allow_null: bool = Field(default=True)
    label: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None)
    length: Optional[int] = Field(default=None, ge=0, description="Declared max length.")
    default: Any = Field(default=None, description="Column default value.")
    auto_increment: bool = Field(default=False)

    @field_validator("logical_type", mode="before")
    @classmethod
    def _normalize_type(cls, v: Any) -> LogicalType:
        return normalize_logical_type(v)

    @model_validator(mode="after")
    def _warn_dangling_reference(self) -> "FieldDescriptor":
        if self.is_foreign_key and not self.ref_table:
            logger.warning(
                "Field '%s' is marked as a foreign key but has no ref_table.",
                self.name,
            )
        return self

    def __repr__(self) -> str:
        pk_flag: str = " PK" if self.is_primary_key else ""
        null_flag: str = " NULL" if self.allow_null else " NOT NULL"
        return f"<Field {self.name} {self.logical_type.value}{pk_flag}{null_flag}>"


class TableDescriptor(BaseModel):
    """
    A discovered table.  Immutable once fetched; identified by ``name``
    within a service.
    """

    model_config = _PAYLOAD_CONFIG

    name: str = Field(..., min_length=1, description="Table name.")
    label: Optional[str] = Field(default=None, description="Display label.")
    fields: Tuple[FieldDescriptor, ...] = Field(
        default_factory=tuple, alias="field", description="Columns."
    )

    @field_validator("fields", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return () if v is None else v

    @model_validator(mode="after")
    def _unique_field_names(self) -> "TableDescriptor":
        names: List[str] = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            dupes: List[str] = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate field names in table '{self.name}': {dupes}")
        return self

    @classmethod
    def from_discovery(cls, payload: Dict[str, Any]) -> "TableDescriptor":
        """
        Build a descriptor from one ``TableInfo`` entry of a discovery
        response.  Field types are normalised up front so an unsupported
        type surfaces as ``UnsupportedFieldTypeError`` rather than a
        generic validation error.
        """
        raw_fields: List[Dict[str, Any]] = list(
            payload.get("field") or payload.get("fields") or []
        )
        fields: List[Dict[str, Any]] = []
        for raw in raw_fields:
            item: Dict[str, Any] = dict(raw)
            raw_type: Any = item.pop("type", item.pop("logical_type", None))
            item["logical_type"] = normalize_logical_type(raw_type, item.get("name"))
            fields.append(item)
        return cls.model_validate(
            {"name": payload.get("name"), "label": payload.get("label"), "fields": fields}
        )

    @computed_field  # type: ignore[misc]
    @property
    def display_label(self) -> str:
        return self.label or self.name

    @property
    def primary_keys(self) -> Tuple[FieldDescriptor, ...]:
        return tuple(f for f in self.fields if f.is_primary_key)

    @property
    def has_primary_key(self) -> bool:
        return any(f.is_primary_key for f in self.fields)

    def get_field(self, name: str) -> Optional[FieldDescriptor]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def __repr__(self) -> str:
        return f"<Table {self.name} ({len(self.fields)} fields)>"


# ---------------------------------------------------------------------------
# Endpoint configuration
# ---------------------------------------------------------------------------


class ParameterSpec(BaseModel):
    """A single request parameter of a generated endpoint."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    location: ParameterLocation = Field(default=ParameterLocation.QUERY)
    type: str = Field(default="string", description="OpenAPI primitive type.")
    format: Optional[str] = Field(default=None, description="OpenAPI format.")
    required: bool = Field(default=False)
    nullable: bool = Field(default=False)
    description: str = Field(default="")
    default: Any = Field(default=None)
    constraints: Dict[str, Any] = Field(
        default_factory=dict,
        description="JSON-schema keywords such as minimum, maxLength, pattern.",
    )
    schema_ref: Optional[str] = Field(
        default=None, description="Component schema name (body parameters)."
    )

    @model_validator(mode="after")
    def _path_params_are_required(self) -> "ParameterSpec":
        if self.location == ParameterLocation.PATH and not self.required:
            raise ValueError(f"Path parameter '{self.name}' must be required.")
        return self

    def __repr__(self) -> str:
        return f"<Parameter {self.location.value}:{self.name} {self.type}>"


class RateLimit(BaseModel):
    """Request throttling attached to an endpoint."""

    model_config = _SHARED_CONFIG

    requests_per_minute: int = Field(default=60, ge=0)
    requests_per_hour: int = Field(default=1000, ge=0)
    requests_per_day: int = Field(default=10000, ge=0)
    burst_allowance: int = Field(default=10, ge=0)


class SecurityConfig(BaseModel):
    """Authentication, role and throttling requirements of an endpoint."""

    model_config = _SHARED_CONFIG

    require_auth: bool = Field(default=True)
    required_roles: Tuple[str, ...] = Field(default_factory=tuple)
    rate_limit: RateLimit = Field(default_factory=RateLimit)


class EndpointMethodConfig(BaseModel):
    """
    One (table, verb) endpoint as configured in the wizard.

    Created when a verb is toggled on, replaced on every parameter or
    security edit, discarded when the verb or table is deselected.
    """

    model_config = _SHARED_CONFIG

    table: str = Field(..., min_length=1)
    method: HTTPVerb
    enabled: bool = Field(default=True)
    description: str = Field(default="")
    parameters: Tuple[ParameterSpec, ...] = Field(default_factory=tuple)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    request_schema: Optional[str] = Field(
        default=None, description="Component name of the request body schema."
    )
    response_schema: str = Field(
        ..., min_length=1, description="Component name of the record schema."
    )

    @property
    def is_single_record(self) -> bool:
        return self.method in SINGLE_RECORD_VERBS

    def get_parameter(
        self, name: str, location: Optional[ParameterLocation] = None
    ) -> Optional[ParameterSpec]:
        for p in self.parameters:
            if p.name == name and (location is None or p.location == location):
                return p
        return None

    def __repr__(self) -> str:
        flag: str = "" if self.enabled else " (disabled)"
        return f"<EndpointConfig {self.method.value} {self.table}{flag}>"


class MethodOverrides(BaseModel):
    """
    Partial user edits merged on top of a verb template.

    ``None`` means "keep the template value".
    """

    model_config = _SHARED_CONFIG

    enabled: Optional[bool] = None
    description: Optional[str] = None
    require_auth: Optional[bool] = None
    required_roles: Optional[Tuple[str, ...]] = None
    rate_limit: Dict[str, int] = Field(default_factory=dict)
    parameters: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Per-parameter partial edits keyed by parameter name.",
    )
    extra_parameters: Tuple[ParameterSpec, ...] = Field(default_factory=tuple)
    removed_parameters: Tuple[str, ...] = Field(default_factory=tuple)

    @field_validator("rate_limit")
    @classmethod
    def _known_rate_limit_keys(cls, v: Dict[str, int]) -> Dict[str, int]:
        unknown: List[str] = sorted(set(v) - set(RateLimit.model_fields))
        if unknown:
            raise ValueError(f"Unknown rate limit settings: {unknown}")
        return v


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class WizardSettings(BaseModel):
    """
    Settings shared by synthesis and the wizard.

    A single instance (usually the defaults) is all the compiler needs.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    title: str = Field(default="Generated Database API", min_length=1)
    api_version: str = Field(default="1.0.0", min_length=1)
    description: str = Field(
        default="Automatically generated REST API for database operations"
    )
    openapi_version: str = Field(default="3.0.3")
    server_url: str = Field(default="/api/v2")
    server_description: str = Field(default="DreamFactory API Server")
    default_page_size: int = Field(default=25, ge=1, le=10000)
    max_page_size: int = Field(default=1000, ge=1, le=100000)
    max_tables: int = Field(default=50, ge=1)
    draft_storage_key: str = Field(default="df-wizard-state", min_length=1)
    draft_ttl_seconds: int = Field(default=86400, ge=0)

    @field_validator("openapi_version")
    @classmethod
    def _openapi_3_0(cls, v: str) -> str:
        if not v.startswith("3.0."):
            raise ValueError(f"Only OpenAPI 3.0.x documents are produced, got '{v}'.")
        return v

    @model_validator(mode="after")
    def _validate_page_sizes(self) -> "WizardSettings":
        if self.default_page_size > self.max_page_size:
            raise ValueError(
                f"default_page_size ({self.default_page_size}) must be "
                f"<= max_page_size ({self.max_page_size})."
            )
        return self


# ---------------------------------------------------------------------------
# Synthesis output
# ---------------------------------------------------------------------------


class OpenAPIDocument(BaseModel):
    """
    A synthesized OpenAPI document.

    Built fresh for every preview; ``to_dict`` hands out deep copies so the
    instance itself is never mutated.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    openapi: str
    info: Dict[str, Any]
    servers: List[Dict[str, Any]]
    paths: Dict[str, Dict[str, Any]]
    components: Dict[str, Dict[str, Any]]
    security: List[Dict[str, List[str]]]

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.model_dump())

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.model_dump(), indent=indent, ensure_ascii=False)

    @property
    def schema_names(self) -> List[str]:
        return list(self.components.get("schemas", {}))

    def operations(self) -> Iterator[Tuple[str, str, Dict[str, Any]]]:
        """Yield ``(path, verb, operation)`` in document order."""
        for path, item in self.paths.items():
            for verb, operation in item.items():
                yield path, verb, operation

    def __repr__(self) -> str:
        return (
            f"<OpenAPIDocument {len(self.paths)} paths, "
            f"{len(self.schema_names)} schemas>"
        )


# ---------------------------------------------------------------------------
# Wizard state
# ---------------------------------------------------------------------------


class WizardState(BaseModel):
    """
    Immutable snapshot of the wizard.

    ``rejected_methods`` lists verbs the user enabled that could not be
    built (missing primary key); while non-empty the configuration step
    cannot be left forwards.
    """

    model_config = _SHARED_CONFIG

    current_step: WizardStep = Field(default=WizardStep.TABLE_SELECTION)
    service_name: str = Field(..., min_length=1)
    selected_tables: FrozenSet[str] = Field(default_factory=frozenset)
    tables: Dict[str, TableDescriptor] = Field(default_factory=dict)
    endpoint_configs: Dict[str, Tuple[EndpointMethodConfig, ...]] = Field(
        default_factory=dict
    )
    rejected_methods: Dict[str, Tuple[HTTPVerb, ...]] = Field(default_factory=dict)
    validation_errors: Dict[WizardStep, Tuple[str, ...]] = Field(default_factory=dict)
    error_message: Optional[str] = Field(default=None)

    @field_serializer("selected_tables")
    def _serialize_selected(self, v: FrozenSet[str], _info: Any) -> List[str]:
        return sorted(v)

    @property
    def is_terminal(self) -> bool:
        return self.current_step in TERMINAL_STEPS

    def errors_for(self, step: WizardStep) -> Tuple[str, ...]:
        return self.validation_errors.get(step, ())

    def configs_for(self, table: str) -> Tuple[EndpointMethodConfig, ...]:
        return self.endpoint_configs.get(table, ())

    def enabled_configs(self) -> List[EndpointMethodConfig]:
        return [
            cfg
            for table in sorted(self.selected_tables)
            for cfg in self.configs_for(table)
            if cfg.enabled
        ]

    def __repr__(self) -> str:
        return (
            f"<WizardState {self.current_step.value} "
            f"{len(self.selected_tables)} tables>"
        )


# ---------------------------------------------------------------------------
# Role service access
# ---------------------------------------------------------------------------


class FilterExpr(BaseModel):
    """A row-level filter attached to a role service-access rule."""

    model_config = _PAYLOAD_CONFIG

    name: str = Field(..., min_length=1, description="Field the filter applies to.")
    operator: FilterOperator
    value: Any = Field(default=None)

    @field_validator("operator", mode="before")
    @classmethod
    def _normalize_operator(cls, v: Any) -> Any:
        if isinstance(v, str):
            return " ".join(v.strip().lower().split())
        return v


def _coerce_filters(v: Any) -> Any:
    # Some backends persist filters as a JSON-encoded string.
    if v is None or v == "":
        return ()
    if isinstance(v, str):
        try:
            return json.loads(v)
        except json.JSONDecodeError as exc:
            raise ValueError(f"filters is not valid JSON: {exc}") from exc
    return v


def _coerce_filter_op(v: Any) -> Any:
    if v is None or v == "":
        return "AND"
    if isinstance(v, str):
        return v.strip().upper()
    return v


class RoleServiceAccess(BaseModel):
    """
    Persisted access rule of a role: which verbs and requestors may reach
    ``component`` of ``service_id``.  Serialised with the camelCase keys the
    role endpoint expects.
    """

    model_config = _PAYLOAD_CONFIG

    id: Optional[int] = Field(default=None)
    role_id: Optional[int] = Field(default=None, alias="roleId")
    service_id: Optional[int] = Field(default=None, alias="serviceId")
    component: str = Field(default="*")
    verb_mask: int = Field(..., alias="verbMask")
    requestor_mask: int = Field(..., alias="requestorMask")
    filters: Tuple[FilterExpr, ...] = Field(default_factory=tuple)
    filter_op: Literal["AND", "OR"] = Field(default="AND", alias="filterOp")

    @field_validator("filters", mode="before")
    @classmethod
    def _decode_filters(cls, v: Any) -> Any:
        return _coerce_filters(v)

    @field_validator("filter_op", mode="before")
    @classmethod
    def _upper_filter_op(cls, v: Any) -> Any:
        return _coerce_filter_op(v)

    def to_payload(self) -> Dict[str, Any]:
        data: Dict[str, Any] = self.model_dump(by_alias=True, mode="json")
        return {k: v for k, v in data.items() if v is not None}


class RoleFormAccess(BaseModel):
    """
    Editing shape of a role access rule: checkbox sets instead of masks.

    ``errors`` is populated when the persisted row could not be decoded;
    such a row still renders so the rest of the role stays editable.
    """

    model_config = _SHARED_CONFIG

    id: Optional[int] = None
    role_id: Optional[int] = None
    service_id: Optional[int] = None
    component: str = Field(default="*")
    verbs: FrozenSet[HTTPVerb] = Field(default_factory=frozenset)
    requestors: FrozenSet[RequestorType] = Field(default_factory=frozenset)
    filters: Tuple[FilterExpr, ...] = Field(default_factory=tuple)
    filter_op: Literal["AND", "OR"] = Field(default="AND")
    errors: Tuple[str, ...] = Field(default_factory=tuple)

    @field_validator("filter_op", mode="before")
    @classmethod
    def _upper_filter_op(cls, v: Any) -> Any:
        return _coerce_filter_op(v)

    @field_serializer("verbs")
    def _serialize_verbs(self, v: FrozenSet[HTTPVerb], _info: Any) -> List[str]:
        return [verb.value for verb in VERB_ORDER if verb in v]

    @field_serializer("requestors")
    def _serialize_requestors(
        self, v: FrozenSet[RequestorType], _info: Any
    ) -> List[str]:
        return [r.value for r in RequestorType if r in v]

    @property
    def is_valid(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "LogicalType",
    "HTTPVerb",
    "RequestorType",
    "ParameterLocation",
    "WizardStep",
    "FilterOperator",
    "VERB_ORDER",
    "SINGLE_RECORD_VERBS",
    "BODY_VERBS",
    "TERMINAL_STEPS",
    "normalize_logical_type",
    "FieldDescriptor",
    "TableDescriptor",
    "ParameterSpec",
    "RateLimit",
    "SecurityConfig",
    "EndpointMethodConfig",
    "MethodOverrides",
    "WizardSettings",
    "OpenAPIDocument",
    "WizardState",
    "FilterExpr",
    "RoleServiceAccess",
    "RoleFormAccess",
]

logger.debug("apiwizard.models loaded: %d public symbols.", len(__all__))
