# File: apiwizard/openapi.py
"""
APIWizard - OpenAPI Synthesizer
================================
Assembles an OpenAPI 3.0.3 document from table descriptors and the endpoint
configurations built for them.

Pipeline (all pure, O(tables × verbs)):

    1. index tables, reject duplicates
    2. plan paths + component names, reject case-insensitive collisions
    3. emit schema components once per (table, variant)
    4. emit one operation per enabled config, in canonical verb order

Nothing is emitted until step 2 has passed, so a collision never leaves a
half-built document behind.  Output is deterministic: tables are sorted by
name and every mapping is filled in a fixed order, which makes ``to_json()``
byte-identical for identical input.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from apiwizard.endpoints import build_table_schemas, schema_variants_for
from apiwizard.errors import DuplicatePathError, SynthesisError
from apiwizard.field_types import parameter_schema
from apiwizard.models import (
    VERB_ORDER,
    EndpointMethodConfig,
    HTTPVerb,
    OpenAPIDocument,
    ParameterLocation,
    ParameterSpec,
    TableDescriptor,
    WizardSettings,
)
from apiwizard.templates import METHOD_TEMPLATES, MethodTemplate
from apiwizard.utils import Timer, to_identifier
from apiwizard.validators import validate_document

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.openapi")

# ---------------------------------------------------------------------------
# Fixed document fragments
# ---------------------------------------------------------------------------

SECURITY_SCHEMES: Dict[str, Dict[str, str]] = {
    "session_token": {
        "type": "apiKey",
        "in": "header",
        "name": "X-DreamFactory-Session-Token",
        "description": "Session token obtained from login",
    },
    "api_key": {
        "type": "apiKey",
        "in": "header",
        "name": "X-DreamFactory-API-Key",
        "description": "API key for application access",
    },
}

# Either scheme satisfies the requirement.
DEFAULT_SECURITY: Tuple[Tuple[str, ...], ...] = (("session_token",), ("api_key",))

_ERROR_RESPONSES: Tuple[Tuple[str, str], ...] = (
    ("400", "Bad request - invalid parameters or payload"),
    ("401", "Unauthorized - missing or invalid credentials"),
    ("403", "Forbidden - insufficient permissions"),
    ("404", "Record not found"),
    ("429", "Too many requests - rate limit exceeded"),
    ("500", "Internal server error"),
)
_AUTH_ONLY_STATUSES: frozenset = frozenset({"401", "403"})


def _security_requirements() -> List[Dict[str, List[str]]]:
    return [{name: [] for name in group} for group in DEFAULT_SECURITY]


def _schema_ref(name: str) -> Dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


# ---------------------------------------------------------------------------
# Preview result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PreviewResult:
    """Outcome of a preview synthesis: a document, or the reasons there is none."""

    document: Optional[OpenAPIDocument]
    errors: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.document is not None and not self.errors


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def _service_prefix(service_name: str) -> str:
    service: str = service_name.strip().strip("/")
    if not service:
        raise SynthesisError("Service name must not be empty.")
    return f"/{service}"


def collection_path(service_name: str, table_name: str) -> str:
    return f"{_service_prefix(service_name)}/{table_name}"


def record_path(service_name: str, table_name: str) -> str:
    return f"{collection_path(service_name, table_name)}/{{id}}"


def operation_id(verb: HTTPVerb, table_name: str) -> str:
    """``get`` + ``UserRoles`` → ``getUserRoles``."""
    return f"{METHOD_TEMPLATES[verb].operation_prefix}{to_identifier(table_name)}"


def _index_tables(tables: Iterable[TableDescriptor]) -> Dict[str, TableDescriptor]:
    by_name: Dict[str, TableDescriptor] = {}
    for table in tables:
        if table.name in by_name:
            raise DuplicatePathError(table.name, [table.name, table.name])
        by_name[table.name] = table
    return by_name


def _enabled_by_verb(
    table_name: str, configs: Iterable[EndpointMethodConfig]
) -> Dict[HTTPVerb, EndpointMethodConfig]:
    enabled: Dict[HTTPVerb, EndpointMethodConfig] = {}
    for cfg in configs:
        if cfg.table != table_name:
            raise SynthesisError(
                f"Config for table '{cfg.table}' listed under '{table_name}'."
            )
        if not cfg.enabled:
            continue
        if cfg.method in enabled:
            raise DuplicatePathError(f"{cfg.method.value} {table_name}", [table_name])
        enabled[cfg.method] = cfg
    return enabled


def _claim(registry: Dict[str, str], key: str, table_name: str) -> None:
    folded: str = key.lower()
    owner: Optional[str] = registry.get(folded)
    if owner is not None and owner != table_name:
        raise DuplicatePathError(key, sorted([owner, table_name]))
    registry[folded] = table_name


# ---------------------------------------------------------------------------
# Operation emission
# ---------------------------------------------------------------------------


def _parameter_object(param: ParameterSpec) -> Dict[str, Any]:
    obj: Dict[str, Any] = {
        "name": param.name,
        "in": param.location.value,
        "required": param.required,
    }
    if param.description:
        obj["description"] = param.description
    obj["schema"] = parameter_schema(param)
    return obj


def _request_body(cfg: EndpointMethodConfig) -> Dict[str, Any]:
    body: Optional[ParameterSpec] = cfg.get_parameter("body", ParameterLocation.BODY)
    ref: str = (body.schema_ref if body and body.schema_ref else cfg.request_schema) or ""
    request: Dict[str, Any] = {}
    if body is not None and body.description:
        request["description"] = body.description
    request["required"] = True if body is None else body.required
    request["content"] = {"application/json": {"schema": _schema_ref(ref)}}
    return request


def _success_schema(template: MethodTemplate, cfg: EndpointMethodConfig) -> Dict[str, Any]:
    if not template.returns_collection:
        return _schema_ref(cfg.response_schema)
    return {
        "type": "object",
        "properties": {
            "resource": {"type": "array", "items": _schema_ref(cfg.response_schema)},
            "meta": {
                "type": "object",
                "properties": {"count": {"type": "integer"}},
            },
        },
    }


def _responses(template: MethodTemplate, cfg: EndpointMethodConfig) -> Dict[str, Any]:
    responses: Dict[str, Any] = {
        template.success_status: {
            "description": template.success_description,
            "content": {"application/json": {"schema": _success_schema(template, cfg)}},
        }
    }
    for status, description in _ERROR_RESPONSES:
        if status in _AUTH_ONLY_STATUSES and not cfg.security.require_auth:
            continue
        if status == "404" and not cfg.is_single_record:
            continue
        responses[status] = {"description": description}
    return responses


def build_operation(cfg: EndpointMethodConfig, table: TableDescriptor) -> Dict[str, Any]:
    """Render one enabled endpoint configuration as an OpenAPI operation."""
    template: MethodTemplate = METHOD_TEMPLATES[cfg.method]
    operation: Dict[str, Any] = {
        "operationId": operation_id(cfg.method, table.name),
        "summary": cfg.description or template.description,
        "tags": [table.name],
    }
    params: List[Dict[str, Any]] = [
        _parameter_object(p)
        for p in cfg.parameters
        if p.location != ParameterLocation.BODY
    ]
    if params:
        operation["parameters"] = params
    if cfg.request_schema is not None:
        operation["requestBody"] = _request_body(cfg)
    operation["responses"] = _responses(template, cfg)
    operation["security"] = (
        _security_requirements() if cfg.security.require_auth else []
    )
    if cfg.security.required_roles:
        operation["x-required-roles"] = list(cfg.security.required_roles)
    operation["x-rate-limit"] = cfg.security.rate_limit.model_dump()
    return operation


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def synthesize(
    tables: Iterable[TableDescriptor],
    configs_by_table: Mapping[str, Iterable[EndpointMethodConfig]],
    service_name: str,
    settings: Optional[WizardSettings] = None,
) -> OpenAPIDocument:
    """
    Build the OpenAPI document for *service_name*.

    Tables without an enabled config contribute nothing.  Schema components
    are built once per table and shared by every operation through ``$ref``.

    Raises:
        DuplicatePathError: duplicate tables, or two tables whose paths or
            component names differ only by case.
        SynthesisError: configs for a table that was not supplied.
    """
    cfg_settings: WizardSettings = settings or WizardSettings()
    by_name: Dict[str, TableDescriptor] = _index_tables(tables)

    unknown: List[str] = sorted(set(configs_by_table) - set(by_name))
    if unknown:
        raise SynthesisError(f"Configs supplied for unknown tables: {unknown}")

    # -- Plan ---------------------------------------------------------------
    plan: List[Tuple[TableDescriptor, Dict[HTTPVerb, EndpointMethodConfig]]] = []
    path_owners: Dict[str, str] = {}
    component_owners: Dict[str, str] = {}
    for name in sorted(by_name):
        table: TableDescriptor = by_name[name]
        enabled = _enabled_by_verb(name, configs_by_table.get(name, ()))
        if not enabled:
            continue
        _claim(path_owners, collection_path(service_name, name), name)
        for variant in schema_variants_for(enabled.values()):
            _claim(component_owners, f"{to_identifier(name)}{variant}", name)
        plan.append((table, enabled))

    # -- Emit ---------------------------------------------------------------
    with Timer("synthesize"):
        schemas: Dict[str, Any] = {}
        paths: Dict[str, Dict[str, Any]] = {}
        for table, enabled in plan:
            schemas.update(
                build_table_schemas(table, schema_variants_for(enabled.values()))
            )
            for verb in VERB_ORDER:
                cfg: Optional[EndpointMethodConfig] = enabled.get(verb)
                if cfg is None:
                    continue
                path: str = (
                    record_path(service_name, table.name)
                    if cfg.is_single_record
                    else collection_path(service_name, table.name)
                )
                paths.setdefault(path, {})[verb.value.lower()] = build_operation(
                    cfg, table
                )

    document: OpenAPIDocument = OpenAPIDocument(
        openapi=cfg_settings.openapi_version,
        info={
            "title": cfg_settings.title,
            "version": cfg_settings.api_version,
            "description": cfg_settings.description,
        },
        servers=[
            {
                "url": cfg_settings.server_url,
                "description": cfg_settings.server_description,
            }
        ],
        paths=paths,
        components={
            "schemas": schemas,
            "securitySchemes": {k: dict(v) for k, v in SECURITY_SCHEMES.items()},
        },
        security=_security_requirements(),
    )
    logger.info(
        "Synthesized %s: %d tables, %d paths, %d schemas.",
        service_name,
        len(plan),
        len(paths),
        len(schemas),
    )
    return document


def synthesize_preview(
    tables: Iterable[TableDescriptor],
    configs_by_table: Mapping[str, Iterable[EndpointMethodConfig]],
    service_name: str,
    settings: Optional[WizardSettings] = None,
) -> PreviewResult:
    """
    Synthesize for the preview step: synthesis failures and structural
    problems in the result come back as messages instead of exceptions.
    """
    try:
        document: OpenAPIDocument = synthesize(
            tables, configs_by_table, service_name, settings
        )
    except SynthesisError as exc:
        logger.warning("Preview synthesis failed: %s", exc)
        return PreviewResult(document=None, errors=(str(exc),))

    result = validate_document(document)
    if result.has_errors:
        for item in result.errors:
            logger.warning("Preview document invalid: %s", item)
        return PreviewResult(document=document, errors=tuple(result.messages()))
    return PreviewResult(document=document)


__all__: List[str] = [
    "SECURITY_SCHEMES",
    "PreviewResult",
    "collection_path",
    "record_path",
    "operation_id",
    "build_operation",
    "synthesize",
    "synthesize_preview",
]
