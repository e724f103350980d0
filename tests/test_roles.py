"""
tests/test_roles.py
Unit tests for apiwizard.roles (role service-access compiler).
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest

from apiwizard.errors import InvalidVerbError, PermissionCodecError
from apiwizard.models import (
    FilterExpr,
    FilterOperator,
    HTTPVerb,
    RequestorType,
    RoleFormAccess,
    RoleServiceAccess,
)
from apiwizard.roles import (
    ACCESS_KEY,
    build_role_payload,
    compile_access,
    decompile_access,
    decompile_payload,
    parse_role_payload,
)


@pytest.fixture()
def role_payload() -> Dict[str, Any]:
    """A role as returned by the system role endpoint."""
    return {
        "id": 7,
        "name": "reporting",
        ACCESS_KEY: [
            {
                "id": 1,
                "roleId": 7,
                "serviceId": 3,
                "component": "_table/orders/*",
                "verbMask": 17,
                "requestorMask": 3,
                "filters": json.dumps(
                    [{"name": "status", "operator": "=", "value": "open"}]
                ),
                "filterOp": "and",
            },
            {
                "id": 2,
                "roleId": 7,
                "serviceId": 3,
                "component": "_table/users/*",
                "verbMask": 1,
                "requestorMask": 1,
                "filters": [],
                "filterOp": "OR",
            },
        ],
    }


class TestCompileAccess:
    """Form rows to persisted records."""

    def test_masks(self) -> None:
        row = RoleFormAccess(
            component="_table/orders/*",
            verbs=frozenset({HTTPVerb.GET, HTTPVerb.DELETE}),
            requestors=frozenset({RequestorType.API, RequestorType.SCRIPT}),
        )
        (record,) = compile_access([row])
        assert record.verb_mask == 17
        assert record.requestor_mask == 3

    def test_accepts_plain_dicts(self) -> None:
        (record,) = compile_access(
            [{"component": "*", "verbs": ["GET", "POST"], "requestors": ["API"]}]
        )
        assert record.verb_mask == 3
        assert record.requestor_mask == 1

    def test_empty_sets_are_zero(self) -> None:
        (record,) = compile_access([RoleFormAccess()])
        assert record.verb_mask == 0
        assert record.requestor_mask == 0

    def test_rows_with_errors_rejected(self) -> None:
        with pytest.raises(PermissionCodecError):
            compile_access([RoleFormAccess(id=4, errors=("Malformed verb mask 99.",))])

    def test_unknown_verb_rejected(self) -> None:
        with pytest.raises((InvalidVerbError, ValueError)):
            compile_access([{"verbs": ["TRACE"]}])


class TestDecompileAccess:
    """Persisted records to form rows."""

    def test_round_trip(self, role_payload: Dict[str, Any]) -> None:
        records: List[RoleServiceAccess] = parse_role_payload(role_payload)
        rows = decompile_access(records)
        assert rows[0].verbs == {HTTPVerb.GET, HTTPVerb.DELETE}
        assert rows[0].requestors == {RequestorType.API, RequestorType.SCRIPT}
        recompiled = compile_access(rows)
        assert [r.verb_mask for r in recompiled] == [17, 1]
        assert [r.requestor_mask for r in recompiled] == [3, 1]
        assert recompiled[0].filters == records[0].filters
        assert recompiled[1].filter_op == "OR"

    def test_malformed_mask_isolated_to_its_row(self) -> None:
        records = [
            RoleServiceAccess(id=1, verb_mask=99, requestor_mask=1),
            RoleServiceAccess(id=2, verb_mask=3, requestor_mask=9),
            RoleServiceAccess(id=3, verb_mask=2, requestor_mask=2),
        ]
        rows = decompile_access(records)
        assert len(rows) == 3
        assert not rows[0].is_valid and "verb" in rows[0].errors[0]
        assert not rows[1].is_valid and "requestor" in rows[1].errors[0]
        assert rows[1].verbs == {HTTPVerb.GET, HTTPVerb.POST}
        assert rows[2].is_valid
        assert rows[2].verbs == {HTTPVerb.POST}


class TestParseRolePayload:
    """Raw payload parsing."""

    def test_json_string_filters(self, role_payload: Dict[str, Any]) -> None:
        first = parse_role_payload(role_payload)[0]
        assert first.filters == (
            FilterExpr(name="status", operator=FilterOperator.EQUALS, value="open"),
        )
        assert first.filter_op == "AND"

    def test_missing_access_list(self) -> None:
        assert parse_role_payload({"id": 1}) == []

    def test_invalid_row_named(self) -> None:
        with pytest.raises(ValueError, match="Invalid access row 0"):
            parse_role_payload({ACCESS_KEY: [{"component": "*"}]})

    def test_bad_filter_json(self) -> None:
        with pytest.raises(ValueError):
            parse_role_payload(
                {ACCESS_KEY: [{"verbMask": 1, "requestorMask": 1, "filters": "{oops"}]}
            )

    def test_decompile_payload_keeps_good_rows(self, role_payload: Dict[str, Any]) -> None:
        role_payload[ACCESS_KEY].append({"id": 9, "component": "_proc/*"})
        rows = decompile_payload(role_payload)
        assert len(rows) == 3
        assert rows[0].is_valid and rows[1].is_valid
        assert rows[2].id == 9
        assert rows[2].component == "_proc/*"
        assert rows[2].errors[0].startswith("Row 2 could not be parsed")


class TestBuildRolePayload:
    """Role create/update bodies."""

    def test_payload_shape(self) -> None:
        payload = build_role_payload(
            7,
            [
                RoleFormAccess(
                    service_id=3,
                    component="_table/orders/*",
                    verbs=frozenset({HTTPVerb.GET}),
                    requestors=frozenset({RequestorType.API}),
                )
            ],
            name="reporting",
            is_active=True,
        )
        assert payload["id"] == 7
        assert payload["name"] == "reporting"
        assert payload["isActive"] is True
        assert "description" not in payload
        (row,) = payload[ACCESS_KEY]
        assert row == {
            "roleId": 7,
            "serviceId": 3,
            "component": "_table/orders/*",
            "verbMask": 1,
            "requestorMask": 1,
            "filters": [],
            "filterOp": "AND",
        }

    def test_new_role_has_no_ids(self) -> None:
        payload = build_role_payload(None, [RoleFormAccess()])
        assert "id" not in payload
        assert "roleId" not in payload[ACCESS_KEY][0]
