# File: apiwizard/__init__.py
"""
APIWizard - Endpoint & Permission Configuration Compiler
==========================================================

Compiles database schema discovery results and per-endpoint choices into an
OpenAPI 3.0.3 document, drives the multi-step generation wizard, and converts
role service-access rules between their editing and persisted shapes.

Architecture overview::

    ┌──────────────┐     ┌──────────────────┐     ┌──────────────┐
    │  CLI / Entry │────▶│ GenerationSession │────▶│  Submitter   │
    │   (cli.py)   │     │  (generator.py)   │     │  (callable)  │
    └──────────────┘     └────────┬─────────┘     └──────────────┘
                                  │
               ┌──────────────────┼──────────────────┐
               ▼                  ▼                  ▼
        ┌────────────┐     ┌────────────┐     ┌────────────┐
        │   wizard   │────▶│  openapi   │────▶│ exporters  │
        │  + drafts  │     │ synthesizer│     │            │
        └─────┬──────┘     └─────┬──────┘     └────────────┘
              ▼                  ▼
        ┌────────────┐     ┌────────────┐     ┌────────────┐
        │ endpoints  │────▶│field_types │     │   roles    │
        │ + templates│     │            │     │ + bitmask  │
        └────────────┘     └────────────┘     └────────────┘

Usage::

    # As a library
    from apiwizard import WizardStateMachine, parse_schema_response
    machine = WizardStateMachine("db")
    machine.select_table(parse_schema_response(payload)[0])
    machine.advance()

    # From the command line
    python -m apiwizard -s schema.json --service db -o openapi.json

Public API:
    - WizardStateMachine  - Wizard controller
    - GenerationSession   - Final synthesis + submission step
    - synthesize          - OpenAPI document synthesis
    - compile_access      - Role form rows to persisted records
    - decompile_access    - Persisted records to role form rows
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from apiwizard.bitmask import (
    decode_requestor_mask,
    decode_verb_mask,
    encode_requestor_mask,
    encode_verb_mask,
)
from apiwizard.drafts import DraftManager, FileDraftStore, MemoryDraftStore
from apiwizard.endpoints import ConfigBuildResult, build_all_configs, build_method_config
from apiwizard.errors import (
    APIWizardError,
    DraftStoreError,
    DuplicatePathError,
    InvalidRequestorError,
    InvalidTransitionError,
    InvalidVerbError,
    MalformedMaskError,
    MissingPrimaryKeyError,
    PermissionCodecError,
    SynthesisError,
    UnsupportedFieldTypeError,
)
from apiwizard.exporters import ExportResult, export_document, render_document
from apiwizard.field_types import infer_parameter_defaults, map_to_openapi_type
from apiwizard.generator import (
    GenerationReport,
    GenerationSession,
    load_schema_file,
    parse_schema_response,
)
from apiwizard.models import (
    EndpointMethodConfig,
    FieldDescriptor,
    HTTPVerb,
    LogicalType,
    MethodOverrides,
    OpenAPIDocument,
    RequestorType,
    RoleFormAccess,
    RoleServiceAccess,
    TableDescriptor,
    WizardSettings,
    WizardState,
    WizardStep,
)
from apiwizard.openapi import PreviewResult, synthesize, synthesize_preview
from apiwizard.roles import (
    build_role_payload,
    compile_access,
    decompile_access,
    parse_role_payload,
)
from apiwizard.validators import ValidationResult
from apiwizard.wizard import WizardStateMachine

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__license__",
    # Codec
    "encode_verb_mask",
    "decode_verb_mask",
    "encode_requestor_mask",
    "decode_requestor_mask",
    # Models
    "LogicalType",
    "HTTPVerb",
    "RequestorType",
    "WizardStep",
    "FieldDescriptor",
    "TableDescriptor",
    "EndpointMethodConfig",
    "MethodOverrides",
    "WizardSettings",
    "WizardState",
    "OpenAPIDocument",
    "RoleServiceAccess",
    "RoleFormAccess",
    # Building blocks
    "map_to_openapi_type",
    "infer_parameter_defaults",
    "ConfigBuildResult",
    "build_method_config",
    "build_all_configs",
    "synthesize",
    "synthesize_preview",
    "PreviewResult",
    "ValidationResult",
    # Wizard
    "WizardStateMachine",
    "DraftManager",
    "MemoryDraftStore",
    "FileDraftStore",
    "GenerationSession",
    "GenerationReport",
    "load_schema_file",
    "parse_schema_response",
    # Roles
    "compile_access",
    "decompile_access",
    "parse_role_payload",
    "build_role_payload",
    # Export
    "ExportResult",
    "render_document",
    "export_document",
    # Errors
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
