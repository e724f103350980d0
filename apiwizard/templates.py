# File: apiwizard/templates.py
"""
APIWizard - Per-Verb Endpoint Templates
========================================
The defaults table every endpoint configuration starts from.  One
``MethodTemplate`` per HTTP verb records:

- whether the verb is switched on when a table is first selected,
- the standard query parameters it accepts,
- which schema variant its request body uses,
- whether it addresses a single record through a path ``id``,
- its success status and default security / rate limits.

DELETE is the only verb off by default.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from apiwizard.models import (
    HTTPVerb,
    ParameterLocation,
    ParameterSpec,
    RateLimit,
    SecurityConfig,
    VERB_ORDER,
    WizardSettings,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.templates")


@dataclass(frozen=True)
class MethodTemplate:
    """Static defaults for one HTTP verb."""

    verb: HTTPVerb
    enabled_by_default: bool
    description: str
    operation_prefix: str
    success_status: str
    success_description: str
    query_parameters: Tuple[str, ...] = ()
    body_variant: Optional[str] = None
    body_description: str = ""
    path_id: bool = False
    path_id_description: str = ""
    security: SecurityConfig = field(default_factory=SecurityConfig)

    @property
    def returns_collection(self) -> bool:
        return self.verb in (HTTPVerb.GET, HTTPVerb.POST)


# ---------------------------------------------------------------------------
# Standard query parameters
# ---------------------------------------------------------------------------


def standard_query_parameters(
    settings: Optional[WizardSettings] = None,
) -> Dict[str, ParameterSpec]:
    """
    The shared query parameter catalogue.  ``limit`` picks up the page size
    bounds from *settings*.
    """
    cfg: WizardSettings = settings or WizardSettings()
    return {
        "limit": ParameterSpec(
            name="limit",
            type="integer",
            description="Maximum number of records to return",
            default=cfg.default_page_size,
            constraints={"minimum": 1, "maximum": cfg.max_page_size},
        ),
        "offset": ParameterSpec(
            name="offset",
            type="integer",
            description="Number of records to skip for pagination",
            default=0,
            constraints={"minimum": 0},
        ),
        "filter": ParameterSpec(
            name="filter",
            description="SQL WHERE clause filter conditions",
        ),
        "order": ParameterSpec(
            name="order",
            description="SQL ORDER BY clause for sorting",
        ),
        "fields": ParameterSpec(
            name="fields",
            description="Comma-separated list of fields to return",
        ),
        "include_count": ParameterSpec(
            name="include_count",
            type="boolean",
            description="Include total record count in response",
            default=False,
        ),
        "continue": ParameterSpec(
            name="continue",
            type="boolean",
            description="Continue processing on validation errors",
            default=False,
        ),
        "force": ParameterSpec(
            name="force",
            type="boolean",
            description="Force deletion ignoring referential constraints",
            default=False,
        ),
    }


_READ_LIMITS: RateLimit = RateLimit(
    requests_per_minute=60,
    requests_per_hour=1000,
    requests_per_day=10000,
    burst_allowance=10,
)
_WRITE_LIMITS: RateLimit = RateLimit(
    requests_per_minute=30,
    requests_per_hour=500,
    requests_per_day=2000,
    burst_allowance=5,
)
_DELETE_LIMITS: RateLimit = RateLimit(
    requests_per_minute=10,
    requests_per_hour=100,
    requests_per_day=500,
    burst_allowance=2,
)

# ---------------------------------------------------------------------------
# Defaults table
# ---------------------------------------------------------------------------

METHOD_TEMPLATES: Dict[HTTPVerb, MethodTemplate] = {
    HTTPVerb.GET: MethodTemplate(
        verb=HTTPVerb.GET,
        enabled_by_default=True,
        description="Retrieve records from the table",
        operation_prefix="get",
        success_status="200",
        success_description="Successful response with records",
        query_parameters=("limit", "offset", "filter", "order", "fields", "include_count"),
        security=SecurityConfig(required_roles=("read",), rate_limit=_READ_LIMITS),
    ),
    HTTPVerb.POST: MethodTemplate(
        verb=HTTPVerb.POST,
        enabled_by_default=True,
        description="Create new records in the table",
        operation_prefix="create",
        success_status="201",
        success_description="Record created successfully",
        query_parameters=("fields", "continue"),
        body_variant="Create",
        body_description="Record data to create",
        security=SecurityConfig(required_roles=("create",), rate_limit=_WRITE_LIMITS),
    ),
    HTTPVerb.PUT: MethodTemplate(
        verb=HTTPVerb.PUT,
        enabled_by_default=True,
        description="Update or replace records in the table",
        operation_prefix="update",
        success_status="200",
        success_description="Record updated successfully",
        query_parameters=("fields",),
        body_variant="Update",
        body_description="Complete record data for replacement",
        path_id=True,
        path_id_description="Record identifier for update",
        security=SecurityConfig(required_roles=("update",), rate_limit=_WRITE_LIMITS),
    ),
    HTTPVerb.PATCH: MethodTemplate(
        verb=HTTPVerb.PATCH,
        enabled_by_default=True,
        description="Partially update records in the table",
        operation_prefix="patch",
        success_status="200",
        success_description="Record patched successfully",
        query_parameters=("fields",),
        body_variant="Patch",
        body_description="Partial record data for update",
        path_id=True,
        path_id_description="Record identifier for partial update",
        security=SecurityConfig(required_roles=("update",), rate_limit=_WRITE_LIMITS),
    ),
    HTTPVerb.DELETE: MethodTemplate(
        verb=HTTPVerb.DELETE,
        enabled_by_default=False,
        description="Delete records from the table",
        operation_prefix="delete",
        success_status="200",
        success_description="Record deleted successfully",
        query_parameters=("force",),
        path_id=True,
        path_id_description="Record identifier for deletion",
        security=SecurityConfig(
            required_roles=("delete", "admin"), rate_limit=_DELETE_LIMITS
        ),
    ),
}

DEFAULT_ENABLED_VERBS: Tuple[HTTPVerb, ...] = tuple(
    v for v in VERB_ORDER if METHOD_TEMPLATES[v].enabled_by_default
)


def get_template(verb: HTTPVerb) -> MethodTemplate:
    return METHOD_TEMPLATES[verb]


__all__: List[str] = [
    "MethodTemplate",
    "METHOD_TEMPLATES",
    "DEFAULT_ENABLED_VERBS",
    "standard_query_parameters",
    "get_template",
]

logger.debug(
    "apiwizard.templates loaded, default verbs: %s.",
    [v.value for v in DEFAULT_ENABLED_VERBS],
)
