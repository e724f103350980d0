"""
tests/test_endpoints.py
Unit tests for apiwizard.endpoints (configuration builder and schema
components).
"""

from __future__ import annotations

import re

import pytest

from apiwizard.endpoints import (
    apply_overrides,
    build_all_configs,
    build_method_config,
    build_table_schema,
    build_table_schemas,
    schema_name,
    schema_variants_for,
)
from apiwizard.errors import InvalidVerbError, MissingPrimaryKeyError
from apiwizard.models import (
    HTTPVerb,
    MethodOverrides,
    ParameterLocation,
    ParameterSpec,
    TableDescriptor,
    WizardSettings,
)


def _names(cfg) -> list:
    return [p.name for p in cfg.parameters]


class TestBuildMethodConfig:
    """Per-verb templates."""

    def test_get_query_parameters(self, users_table: TableDescriptor) -> None:
        cfg = build_method_config(users_table, HTTPVerb.GET)
        assert _names(cfg) == ["limit", "offset", "filter", "order", "fields", "include_count"]
        assert cfg.request_schema is None
        assert cfg.response_schema == "Users"
        assert cfg.security.required_roles == ("read",)
        assert cfg.security.rate_limit.requests_per_minute == 60

    def test_limit_follows_settings(self, users_table: TableDescriptor) -> None:
        settings = WizardSettings(default_page_size=10, max_page_size=200)
        limit = build_method_config(users_table, "GET", settings=settings).get_parameter("limit")
        assert limit.default == 10
        assert limit.constraints == {"minimum": 1, "maximum": 200}

    def test_post_has_body(self, users_table: TableDescriptor) -> None:
        cfg = build_method_config(users_table, HTTPVerb.POST)
        body = cfg.get_parameter("body", ParameterLocation.BODY)
        assert body is not None
        assert body.schema_ref == "UsersCreate"
        assert cfg.request_schema == "UsersCreate"
        assert cfg.security.rate_limit.requests_per_minute == 30

    @pytest.mark.parametrize(
        "verb, variant", [(HTTPVerb.PUT, "UsersUpdate"), (HTTPVerb.PATCH, "UsersPatch")]
    )
    def test_single_record_verbs(
        self, users_table: TableDescriptor, verb: HTTPVerb, variant: str
    ) -> None:
        cfg = build_method_config(users_table, verb)
        path_id = cfg.get_parameter("id", ParameterLocation.PATH)
        assert path_id is not None and path_id.required
        assert path_id.type == "integer"
        assert path_id.format == "int32"
        assert cfg.request_schema == variant
        assert cfg.is_single_record

    def test_delete_defaults(self, users_table: TableDescriptor) -> None:
        cfg = build_method_config(users_table, "delete")
        assert _names(cfg) == ["id", "force"]
        assert cfg.security.required_roles == ("delete", "admin")
        assert cfg.security.rate_limit.burst_allowance == 2

    def test_composite_key_id_is_string(self, composite_pk_table: TableDescriptor) -> None:
        path_id = build_method_config(composite_pk_table, HTTPVerb.PUT).get_parameter("id")
        assert path_id.type == "string"
        assert "order_id, line_no" in path_id.description

    def test_missing_primary_key(self, no_pk_table: TableDescriptor) -> None:
        with pytest.raises(MissingPrimaryKeyError) as exc_info:
            build_method_config(no_pk_table, HTTPVerb.PATCH)
        assert exc_info.value.table == "audit_log"
        assert exc_info.value.verb == "PATCH"

    def test_unknown_verb(self, users_table: TableDescriptor) -> None:
        with pytest.raises(InvalidVerbError):
            build_method_config(users_table, "TRACE")


class TestOverrides:
    """MethodOverrides merging."""

    def test_rate_limit_partial(self, users_table: TableDescriptor) -> None:
        cfg = build_method_config(
            users_table,
            HTTPVerb.GET,
            MethodOverrides(rate_limit={"requests_per_minute": 5}),
        )
        assert cfg.security.rate_limit.requests_per_minute == 5
        assert cfg.security.rate_limit.requests_per_hour == 1000

    def test_unknown_rate_limit_key_rejected(self) -> None:
        with pytest.raises(ValueError):
            MethodOverrides(rate_limit={"per_second": 1})

    def test_security_and_description(self, users_table: TableDescriptor) -> None:
        cfg = build_method_config(
            users_table,
            HTTPVerb.GET,
            MethodOverrides(description="List users", require_auth=False, required_roles=()),
        )
        assert cfg.description == "List users"
        assert cfg.security.require_auth is False
        assert cfg.security.required_roles == ()

    def test_parameter_edits_and_extras(self, users_table: TableDescriptor) -> None:
        overrides = MethodOverrides(
            parameters={"limit": {"default": 50}},
            removed_parameters=("include_count",),
            extra_parameters=(ParameterSpec(name="active_only", type="boolean"),),
        )
        cfg = build_method_config(users_table, HTTPVerb.GET, overrides)
        assert cfg.get_parameter("limit").default == 50
        assert cfg.get_parameter("include_count") is None
        assert _names(cfg)[-1] == "active_only"

    def test_path_parameter_cannot_be_removed(self, users_table: TableDescriptor) -> None:
        cfg = build_method_config(
            users_table, HTTPVerb.PUT, MethodOverrides(removed_parameters=("id",))
        )
        assert cfg.get_parameter("id", ParameterLocation.PATH) is not None

    def test_none_is_identity(self, users_table: TableDescriptor) -> None:
        cfg = build_method_config(users_table, HTTPVerb.GET)
        assert apply_overrides(cfg, None) is cfg


class TestBuildAllConfigs:
    """Defaults table and the primary-key gate."""

    def test_defaults_exclude_delete(self, users_table: TableDescriptor) -> None:
        result = build_all_configs(users_table)
        assert result.ok
        assert result.built_verbs == (HTTPVerb.GET, HTTPVerb.POST, HTTPVerb.PUT, HTTPVerb.PATCH)

    def test_delete_explicitly_enabled(self, users_table: TableDescriptor) -> None:
        result = build_all_configs(users_table, ["DELETE", "GET"])
        assert result.built_verbs == (HTTPVerb.GET, HTTPVerb.DELETE)

    def test_override_toggles_verbs(self, users_table: TableDescriptor) -> None:
        result = build_all_configs(
            users_table,
            overrides_by_verb={
                "DELETE": MethodOverrides(enabled=True),
                HTTPVerb.PUT: MethodOverrides(enabled=False),
            },
        )
        assert HTTPVerb.DELETE in result.built_verbs
        assert HTTPVerb.PUT not in result.built_verbs

    def test_primary_key_gate(self, no_pk_table: TableDescriptor) -> None:
        result = build_all_configs(no_pk_table, [HTTPVerb.GET, HTTPVerb.PATCH])
        assert result.built_verbs == (HTTPVerb.GET,)
        assert result.rejected_verbs == (HTTPVerb.PATCH,)
        assert isinstance(result.errors[HTTPVerb.PATCH], MissingPrimaryKeyError)
        assert not result.ok
        assert "no primary key" in result.messages()[0]


class TestSchemas:
    """Schema components per table."""

    def test_names(self) -> None:
        assert schema_name("user_roles") == "UserRoles"
        assert schema_name("user_roles", "Patch") == "UserRolesPatch"

    def test_accented_names_fold_to_ascii(self) -> None:
        assert schema_name("données") == "Donnees"
        assert schema_name("café_items", "Create") == "CafeItemsCreate"

    def test_names_without_ascii_form(self) -> None:
        table = TableDescriptor.from_discovery(
            {"name": "用户", "field": [{"name": "id", "type": "id", "is_primary_key": True}]}
        )
        result = build_all_configs(table)
        assert result.ok
        name = result.configs[0].response_schema
        assert re.fullmatch(r"Table[0-9a-f]{8}", name)
        assert name == schema_name("用户")
        assert schema_name("订单") != name

    def test_record_schema(self, users_table: TableDescriptor) -> None:
        schema = build_table_schema(users_table)
        assert list(schema["properties"]) == [
            "id", "email", "display_name", "is_active", "created_at",
        ]
        assert schema["required"] == ["id"]

    def test_create_schema(self, users_table: TableDescriptor) -> None:
        schema = build_table_schema(users_table, "Create")
        assert "id" not in schema["properties"]
        assert schema["required"] == ["email"]

    def test_patch_schema(self, orders_table: TableDescriptor) -> None:
        schema = build_table_schema(orders_table, "Patch")
        assert "required" not in schema
        assert schema["minProperties"] == 1
        assert "id" not in schema["properties"]

    def test_patch_schema_of_key_only_table(self, composite_pk_table: TableDescriptor) -> None:
        keys_only = TableDescriptor.from_discovery(
            {
                "name": "tags",
                "field": [{"name": "label", "type": "string", "is_primary_key": True}],
            }
        )
        schema = build_table_schema(keys_only, "Patch")
        assert schema["properties"] == {}
        assert "minProperties" not in schema
        assert build_table_schema(composite_pk_table, "Patch")["minProperties"] == 1

    def test_update_schema_keeps_keys_optional(
        self, composite_pk_table: TableDescriptor
    ) -> None:
        schema = build_table_schema(composite_pk_table, "Update")
        assert "order_id" in schema["properties"]
        assert schema["required"] == ["quantity"]

    def test_variants_follow_enabled_configs(self, users_table: TableDescriptor) -> None:
        result = build_all_configs(users_table)
        variants = schema_variants_for(result.configs)
        assert variants == ["", "Create", "Update", "Patch"]
        assert list(build_table_schemas(users_table, variants)) == [
            "Users", "UsersCreate", "UsersUpdate", "UsersPatch",
        ]

    def test_get_only_needs_record_schema(self, users_table: TableDescriptor) -> None:
        result = build_all_configs(users_table, ["GET"])
        assert schema_variants_for(result.configs) == [""]

    def test_unknown_variant(self, users_table: TableDescriptor) -> None:
        with pytest.raises(ValueError):
            build_table_schema(users_table, "Upsert")
