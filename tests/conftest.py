"""
tests/conftest.py
Shared fixtures for the apiwizard test suite.

No external mocking libraries are used; file I/O happens inside temporary
directories managed by pytest's tmp_path fixture.
"""

from __future__ import annotations

import copy
import json
import pathlib
from typing import Any, Dict, List

import pytest
import yaml

from apiwizard.generator import parse_schema_response
from apiwizard.models import TableDescriptor, WizardSettings
from apiwizard.wizard import WizardStateMachine


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
SCHEMA_EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "schema_example.yaml"


# ---------------------------------------------------------------------------
# Raw payload fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_discovery_payload() -> Dict[str, Any]:
    """Load the reference schema_example.yaml once per session."""
    assert SCHEMA_EXAMPLE_PATH.exists(), (
        f"Reference schema not found at {SCHEMA_EXAMPLE_PATH}."
    )
    with open(SCHEMA_EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def discovery_payload(raw_discovery_payload: Dict[str, Any]) -> Dict[str, Any]:
    """Deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_discovery_payload)


@pytest.fixture()
def schema_json_path(discovery_payload: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "schema.json"
    path.write_text(json.dumps(discovery_payload), encoding="utf-8")
    return path


@pytest.fixture()
def schema_yaml_path(discovery_payload: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "schema.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(discovery_payload, fh, default_flow_style=False, allow_unicode=True)
    return path


# ---------------------------------------------------------------------------
# Parsed model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def tables(discovery_payload: Dict[str, Any]) -> List[TableDescriptor]:
    return parse_schema_response(discovery_payload)


@pytest.fixture()
def tables_by_name(tables: List[TableDescriptor]) -> Dict[str, TableDescriptor]:
    return {t.name: t for t in tables}


@pytest.fixture()
def users_table(tables_by_name: Dict[str, TableDescriptor]) -> TableDescriptor:
    return tables_by_name["users"]


@pytest.fixture()
def orders_table(tables_by_name: Dict[str, TableDescriptor]) -> TableDescriptor:
    return tables_by_name["orders"]


@pytest.fixture()
def no_pk_table(tables_by_name: Dict[str, TableDescriptor]) -> TableDescriptor:
    """``audit_log`` has no primary key."""
    return tables_by_name["audit_log"]


@pytest.fixture()
def composite_pk_table() -> TableDescriptor:
    return TableDescriptor.from_discovery(
        {
            "name": "order_items",
            "field": [
                {"name": "order_id", "type": "integer", "is_primary_key": True},
                {"name": "line_no", "type": "integer", "is_primary_key": True},
                {"name": "quantity", "type": "integer", "required": True, "allow_null": False},
            ],
        }
    )


@pytest.fixture()
def settings() -> WizardSettings:
    return WizardSettings()


@pytest.fixture()
def machine(settings: WizardSettings) -> WizardStateMachine:
    return WizardStateMachine("db", settings)
