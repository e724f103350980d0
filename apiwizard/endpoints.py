# File: apiwizard/endpoints.py
"""
APIWizard - Endpoint Configuration Builder
============================================
Turns a table plus a set of enabled verbs into ``EndpointMethodConfig``
records, one per verb:

    template (templates.py) → concrete parameter types (field_types.py)
                            → user overrides (MethodOverrides)

It also owns the per-table schema components (``{Table}``,
``{Table}Create``, ``{Table}Update``, ``{Table}Patch``) that configs refer to
by name; the synthesizer builds each of them once.

Error handling strategy:
    - ``build_method_config`` raises ``MissingPrimaryKeyError`` when a verb
      needing a path ``id`` is requested for a table without a primary key.
    - ``build_all_configs`` never raises it: failures are collected per verb
      so the remaining verbs of the table still build.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from apiwizard.bitmask import coerce_verb
from apiwizard.errors import MissingPrimaryKeyError
from apiwizard.field_types import field_schema, map_to_openapi_type
from apiwizard.models import (
    VERB_ORDER,
    EndpointMethodConfig,
    FieldDescriptor,
    HTTPVerb,
    MethodOverrides,
    ParameterLocation,
    ParameterSpec,
    RateLimit,
    SecurityConfig,
    TableDescriptor,
    WizardSettings,
)
from apiwizard.templates import (
    DEFAULT_ENABLED_VERBS,
    METHOD_TEMPLATES,
    MethodTemplate,
    standard_query_parameters,
)
from apiwizard.utils import to_identifier

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.endpoints")

# Schema variants in emission order; "" is the record schema itself.
SCHEMA_VARIANTS: Tuple[str, ...] = ("", "Create", "Update", "Patch")


# ---------------------------------------------------------------------------
# Build result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfigBuildResult:
    """Configs that built for a table, and the verbs that did not."""

    table: str
    configs: Tuple[EndpointMethodConfig, ...] = ()
    errors: Dict[HTTPVerb, MissingPrimaryKeyError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def built_verbs(self) -> Tuple[HTTPVerb, ...]:
        return tuple(cfg.method for cfg in self.configs)

    @property
    def rejected_verbs(self) -> Tuple[HTTPVerb, ...]:
        return tuple(v for v in VERB_ORDER if v in self.errors)

    def get(self, verb: HTTPVerb) -> Optional[EndpointMethodConfig]:
        for cfg in self.configs:
            if cfg.method == verb:
                return cfg
        return None

    def messages(self) -> List[str]:
        return [str(self.errors[v]) for v in self.rejected_verbs]


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------


def schema_name(table_name: str, variant: str = "") -> str:
    """Component name of a table schema variant, e.g. ``UserRolesCreate``."""
    return f"{to_identifier(table_name)}{variant}"


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


def _path_id_parameter(table: TableDescriptor, template: MethodTemplate) -> ParameterSpec:
    pks: Tuple[FieldDescriptor, ...] = table.primary_keys
    if len(pks) == 1:
        mapped = map_to_openapi_type(pks[0].logical_type)
        return ParameterSpec(
            name="id",
            location=ParameterLocation.PATH,
            type=mapped.type,
            format=mapped.format,
            required=True,
            description=template.path_id_description,
        )
    # Composite keys travel as a comma-separated string.
    return ParameterSpec(
        name="id",
        location=ParameterLocation.PATH,
        type="string",
        required=True,
        description=(
            f"{template.path_id_description} "
            f"(comma-separated {', '.join(f.name for f in pks)})"
        ),
    )


def _merge_parameters(
    base: List[ParameterSpec], overrides: MethodOverrides
) -> List[ParameterSpec]:
    params: List[ParameterSpec] = []
    for param in base:
        if param.name in overrides.removed_parameters:
            if param.location == ParameterLocation.PATH:
                logger.warning("Path parameter '%s' cannot be removed.", param.name)
            else:
                continue
        edits: Optional[Dict[str, Any]] = overrides.parameters.get(param.name)
        if edits:
            param = ParameterSpec.model_validate({**param.model_dump(), **edits})
        params.append(param)

    known: set = {p.name for p in base}
    for name in overrides.parameters:
        if name not in known:
            logger.warning("Ignoring edits for unknown parameter '%s'.", name)

    for extra in overrides.extra_parameters:
        replaced: bool = False
        for idx, existing in enumerate(params):
            if existing.name == extra.name and existing.location == extra.location:
                params[idx] = extra
                replaced = True
                break
        if not replaced:
            params.append(extra)
    return params


def apply_overrides(
    config: EndpointMethodConfig, overrides: Optional[MethodOverrides]
) -> EndpointMethodConfig:
    """Return *config* with the user's *overrides* merged in."""
    if overrides is None:
        return config

    security: SecurityConfig = config.security
    rate_limit: RateLimit = security.rate_limit
    if overrides.rate_limit:
        rate_limit = RateLimit.model_validate(
            {**rate_limit.model_dump(), **overrides.rate_limit}
        )
    security = SecurityConfig(
        require_auth=(
            security.require_auth
            if overrides.require_auth is None
            else overrides.require_auth
        ),
        required_roles=(
            security.required_roles
            if overrides.required_roles is None
            else overrides.required_roles
        ),
        rate_limit=rate_limit,
    )

    return EndpointMethodConfig(
        table=config.table,
        method=config.method,
        enabled=config.enabled if overrides.enabled is None else overrides.enabled,
        description=(
            config.description if overrides.description is None else overrides.description
        ),
        parameters=tuple(_merge_parameters(list(config.parameters), overrides)),
        security=security,
        request_schema=config.request_schema,
        response_schema=config.response_schema,
    )


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_method_config(
    table: TableDescriptor,
    verb: Any,
    overrides: Optional[MethodOverrides] = None,
    settings: Optional[WizardSettings] = None,
) -> EndpointMethodConfig:
    """
    Build the configuration of one (table, verb) endpoint.

    Raises:
        InvalidVerbError: when *verb* is not one of the five HTTP verbs.
        MissingPrimaryKeyError: when *verb* needs a path ``id`` and the
            table has no primary key.
    """
    member: HTTPVerb = coerce_verb(verb)
    template: MethodTemplate = METHOD_TEMPLATES[member]

    if template.path_id and not table.has_primary_key:
        raise MissingPrimaryKeyError(table.name, member.value)

    catalogue: Dict[str, ParameterSpec] = standard_query_parameters(settings)
    params: List[ParameterSpec] = []
    if template.path_id:
        params.append(_path_id_parameter(table, template))
    params.extend(catalogue[name] for name in template.query_parameters)

    request_schema: Optional[str] = None
    if template.body_variant is not None:
        request_schema = schema_name(table.name, template.body_variant)
        params.append(
            ParameterSpec(
                name="body",
                location=ParameterLocation.BODY,
                type="object",
                required=True,
                description=template.body_description,
                schema_ref=request_schema,
            )
        )

    config: EndpointMethodConfig = EndpointMethodConfig(
        table=table.name,
        method=member,
        enabled=True,
        description=f"{template.description}: {table.display_label}",
        parameters=tuple(params),
        security=template.security,
        request_schema=request_schema,
        response_schema=schema_name(table.name),
    )
    return apply_overrides(config, overrides)


def _normalize_overrides(
    overrides_by_verb: Optional[Mapping[Any, MethodOverrides]],
) -> Dict[HTTPVerb, MethodOverrides]:
    if not overrides_by_verb:
        return {}
    return {coerce_verb(k): v for k, v in overrides_by_verb.items()}


def build_all_configs(
    table: TableDescriptor,
    enabled_verbs: Optional[Iterable[Any]] = None,
    overrides_by_verb: Optional[Mapping[Any, MethodOverrides]] = None,
    settings: Optional[WizardSettings] = None,
) -> ConfigBuildResult:
    """
    Build one config per enabled verb, in canonical verb order.

    Without *enabled_verbs* the defaults table decides (DELETE off).  An
    override's ``enabled`` flag adds or removes a verb on top of that.
    Verbs that fail with ``MissingPrimaryKeyError`` are reported in the
    result instead of aborting the table.
    """
    overrides: Dict[HTTPVerb, MethodOverrides] = _normalize_overrides(overrides_by_verb)
    verbs: set = (
        set(DEFAULT_ENABLED_VERBS)
        if enabled_verbs is None
        else {coerce_verb(v) for v in enabled_verbs}
    )
    for verb, ov in overrides.items():
        if ov.enabled is True:
            verbs.add(verb)
        elif ov.enabled is False:
            verbs.discard(verb)

    configs: List[EndpointMethodConfig] = []
    errors: Dict[HTTPVerb, MissingPrimaryKeyError] = {}
    for verb in VERB_ORDER:
        if verb not in verbs:
            continue
        try:
            configs.append(
                build_method_config(table, verb, overrides.get(verb), settings)
            )
        except MissingPrimaryKeyError as exc:
            logger.info("Skipping %s for table '%s': %s", verb.value, table.name, exc)
            errors[verb] = exc

    logger.debug(
        "build_all_configs: table=%s built=%s rejected=%s",
        table.name,
        [c.method.value for c in configs],
        [v.value for v in errors],
    )
    return ConfigBuildResult(table=table.name, configs=tuple(configs), errors=errors)


# ---------------------------------------------------------------------------
# Schema components
# ---------------------------------------------------------------------------


def _object_schema(
    fields: Iterable[FieldDescriptor],
    required: Iterable[str],
    description: Optional[str] = None,
) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object"}
    if description:
        schema["description"] = description
    schema["properties"] = {f.name: field_schema(f) for f in fields}
    required_list: List[str] = list(required)
    # OpenAPI 3.0 forbids an empty "required" array.
    if required_list:
        schema["required"] = required_list
    return schema


def build_table_schema(table: TableDescriptor, variant: str = "") -> Dict[str, Any]:
    """
    Build one schema component for *table*.

    - ``""``       full record; primary keys required
    - ``Create``   writable fields; declared-required fields required
    - ``Update``   full replacement body; Create's properties, with primary
                   keys never required since the path carries them
    - ``Patch``    any non-key field, nothing required; at least one
                   property when the table has a non-key field
    """
    writable: List[FieldDescriptor] = [f for f in table.fields if not f.auto_increment]
    if variant == "":
        return _object_schema(
            table.fields,
            [f.name for f in table.fields if f.is_primary_key],
            table.display_label,
        )
    if variant == "Create":
        return _object_schema(
            writable,
            [f.name for f in writable if f.required],
            f"Payload for creating {table.display_label} records",
        )
    if variant == "Update":
        return _object_schema(
            writable,
            [f.name for f in writable if f.required and not f.is_primary_key],
            f"Payload for replacing a {table.display_label} record",
        )
    if variant == "Patch":
        schema: Dict[str, Any] = _object_schema(
            [f for f in table.fields if not f.is_primary_key],
            [],
            f"Partial update of a {table.display_label} record",
        )
        if schema["properties"]:
            schema["minProperties"] = 1
        return schema
    raise ValueError(f"Unknown schema variant '{variant}'.")


def build_table_schemas(
    table: TableDescriptor, variants: Iterable[str]
) -> Dict[str, Dict[str, Any]]:
    """Build the requested variants once each, in canonical order."""
    wanted: set = set(variants)
    return {
        schema_name(table.name, variant): build_table_schema(table, variant)
        for variant in SCHEMA_VARIANTS
        if variant in wanted
    }


def schema_variants_for(configs: Iterable[EndpointMethodConfig]) -> List[str]:
    """Schema variants referenced by the enabled *configs*."""
    wanted: set = set()
    for cfg in configs:
        if not cfg.enabled:
            continue
        wanted.add("")
        template: MethodTemplate = METHOD_TEMPLATES[cfg.method]
        if template.body_variant is not None:
            wanted.add(template.body_variant)
    return [v for v in SCHEMA_VARIANTS if v in wanted]


__all__: List[str] = [
    "SCHEMA_VARIANTS",
    "ConfigBuildResult",
    "schema_name",
    "apply_overrides",
    "build_method_config",
    "build_all_configs",
    "build_table_schema",
    "build_table_schemas",
    "schema_variants_for",
]
