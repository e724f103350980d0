"""
tests/test_validators.py
Unit tests for apiwizard.validators.

Tests cover:
- ValidationResult accumulation and reporting
- Table selection bounds
- Endpoint configuration rules (rate limits, parameter names, roles)
- Structural document checks
"""

from __future__ import annotations

import copy
from typing import Any, Dict

import pytest

from apiwizard.endpoints import build_all_configs, build_method_config
from apiwizard.models import (
    HTTPVerb,
    MethodOverrides,
    ParameterSpec,
    RateLimit,
    TableDescriptor,
    WizardSettings,
)
from apiwizard.openapi import synthesize
from apiwizard.validators import (
    ValidationResult,
    validate_document,
    validate_method_config,
    validate_method_configs,
    validate_rate_limit,
    validate_table_selection,
)


# ===========================================================================
# ValidationResult
# ===========================================================================


class TestValidationResult:
    """Accumulator behaviour."""

    def test_empty_is_valid(self) -> None:
        result = ValidationResult()
        assert result.is_valid
        assert bool(result) is True
        assert len(result) == 0

    def test_errors_and_warnings(self) -> None:
        result = ValidationResult()
        result.add_error("E1", "broken", {"table": "users"})
        result.add_warning("W1", "odd")
        assert not result
        assert result.error_count == 1
        assert result.warning_count == 1
        assert result.messages() == ["broken"]
        assert result.codes() == {"E1", "W1"}
        assert "table: users" in result.format_report()

    def test_merge(self) -> None:
        first, second = ValidationResult(), ValidationResult()
        second.add_error("E", "x")
        first.merge(second)
        assert first.has_errors


# ===========================================================================
# Table selection
# ===========================================================================


class TestValidateTableSelection:
    """Selection bounds."""

    def test_none_selected(self) -> None:
        result = validate_table_selection([])
        assert "NO_TABLES_SELECTED" in result.codes()

    def test_within_bounds(self) -> None:
        assert validate_table_selection(["users"]).is_valid

    def test_too_many(self) -> None:
        result = validate_table_selection(["a", "b", "c"], WizardSettings(max_tables=2))
        assert "TOO_MANY_TABLES" in result.codes()


# ===========================================================================
# Method configuration
# ===========================================================================


class TestValidateMethodConfig:
    """Per-endpoint rules."""

    def test_defaults_are_valid(self, users_table: TableDescriptor) -> None:
        result = validate_method_configs(build_all_configs(users_table, list(HTTPVerb)).configs)
        assert result.is_valid, result.format_report()

    def test_rate_limit_out_of_range(self) -> None:
        result = validate_rate_limit(RateLimit(requests_per_minute=5000, burst_allowance=101))
        assert result.error_count == 2

    def test_rate_limit_inconsistent_is_warning(self) -> None:
        result = validate_rate_limit(RateLimit(requests_per_minute=500, requests_per_hour=100))
        assert result.is_valid
        assert "RATE_LIMIT_INCONSISTENT" in result.codes()

    @pytest.mark.parametrize("name", ["1abc", "has-dash", "x" * 65])
    def test_bad_parameter_names(self, users_table: TableDescriptor, name: str) -> None:
        cfg = build_method_config(
            users_table,
            HTTPVerb.GET,
            MethodOverrides(extra_parameters=(ParameterSpec(name=name),)),
        )
        assert not validate_method_config(cfg).is_valid

    def test_too_many_roles(self, users_table: TableDescriptor) -> None:
        roles = tuple(f"role_{i}" for i in range(21))
        cfg = build_method_config(
            users_table, HTTPVerb.GET, MethodOverrides(required_roles=roles)
        )
        assert "TOO_MANY_ROLES" in validate_method_config(cfg).codes()

    def test_role_name_rules(self, users_table: TableDescriptor) -> None:
        cfg = build_method_config(
            users_table, HTTPVerb.GET, MethodOverrides(required_roles=(" ", "r" * 65))
        )
        codes = validate_method_config(cfg).codes()
        assert {"EMPTY_ROLE_NAME", "ROLE_NAME_TOO_LONG"} <= codes

    def test_removed_body_keeps_request_schema(self, users_table: TableDescriptor) -> None:
        cfg = build_method_config(
            users_table, HTTPVerb.POST, MethodOverrides(removed_parameters=("body",))
        )
        assert validate_method_config(cfg).is_valid
        assert cfg.request_schema == "UsersCreate"

    def test_duplicate_role_is_warning(self, users_table: TableDescriptor) -> None:
        cfg = build_method_config(
            users_table, HTTPVerb.GET, MethodOverrides(required_roles=("read", "read"))
        )
        result = validate_method_config(cfg)
        assert result.is_valid
        assert "DUPLICATE_ROLE" in result.codes()

    def test_disabled_configs_ignored(self, users_table: TableDescriptor) -> None:
        cfg = build_method_config(
            users_table,
            HTTPVerb.GET,
            MethodOverrides(enabled=False, rate_limit={"requests_per_minute": 999999}),
        )
        assert validate_method_configs([cfg]).is_valid


# ===========================================================================
# Document
# ===========================================================================


class TestValidateDocument:
    """Structural checks on synthesized output."""

    @pytest.fixture()
    def document(self, users_table: TableDescriptor) -> Dict[str, Any]:
        configs = build_all_configs(users_table).configs
        return synthesize([users_table], {"users": configs}, "db").to_dict()

    def test_synthesized_document_valid(self, document: Dict[str, Any]) -> None:
        assert validate_document(document).is_valid

    def test_unresolved_ref(self, document: Dict[str, Any]) -> None:
        broken = copy.deepcopy(document)
        del broken["components"]["schemas"]["UsersPatch"]
        assert "UNRESOLVED_REF" in validate_document(broken).codes()

    def test_duplicate_operation_id(self, document: Dict[str, Any]) -> None:
        broken = copy.deepcopy(document)
        broken["paths"]["/db/users/{id}"]["put"]["operationId"] = "getUsers"
        assert "DUPLICATE_OPERATION_ID" in validate_document(broken).codes()

    def test_undeclared_path_parameter(self, document: Dict[str, Any]) -> None:
        broken = copy.deepcopy(document)
        broken["paths"]["/db/users/{id}"]["put"]["parameters"] = []
        assert "UNDECLARED_PATH_PARAMETER" in validate_document(broken).codes()

    def test_wrong_version(self, document: Dict[str, Any]) -> None:
        broken = copy.deepcopy(document)
        broken["openapi"] = "3.1.0"
        assert "UNSUPPORTED_OPENAPI_VERSION" in validate_document(broken).codes()
