"""
tests/test_exporters.py
Unit tests for apiwizard.exporters.
"""

from __future__ import annotations

import json
import pathlib

import pytest
import yaml

from apiwizard.endpoints import build_all_configs
from apiwizard.exporters import (
    ExportResult,
    export_document,
    format_for_path,
    render_document,
)
from apiwizard.models import OpenAPIDocument, TableDescriptor
from apiwizard.openapi import synthesize


@pytest.fixture()
def document(users_table: TableDescriptor) -> OpenAPIDocument:
    return synthesize(
        [users_table], {"users": build_all_configs(users_table).configs}, "db"
    )


class TestRenderDocument:
    """render_document."""

    def test_json(self, document: OpenAPIDocument) -> None:
        text = render_document(document, "json")
        assert text.endswith("\n")
        assert json.loads(text) == document.to_dict()

    def test_yaml_keeps_key_order(self, document: OpenAPIDocument) -> None:
        text = render_document(document, "YAML")
        assert text.startswith("openapi:")
        assert yaml.safe_load(text) == document.to_dict()

    def test_unknown_format(self, document: OpenAPIDocument) -> None:
        with pytest.raises(ValueError, match="Unsupported export format"):
            render_document(document, "xml")


class TestExportDocument:
    """export_document."""

    @pytest.mark.parametrize(
        "name, expected", [("api.json", "json"), ("api.yml", "yaml"), ("api.out", "json")]
    )
    def test_format_for_path(self, name: str, expected: str) -> None:
        assert format_for_path(pathlib.Path(name)) == expected

    def test_writes_file(self, document: OpenAPIDocument, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "out" / "openapi.yaml"
        result = export_document(document, target)
        assert isinstance(result, ExportResult)
        assert result.format == "yaml"
        assert target.exists()
        assert result.size_bytes == len(target.read_bytes())

    def test_explicit_format_wins(
        self, document: OpenAPIDocument, tmp_path: pathlib.Path
    ) -> None:
        result = export_document(document, tmp_path / "openapi.txt", "json")
        assert result.format == "json"
        assert json.loads((tmp_path / "openapi.txt").read_text(encoding="utf-8"))

    def test_idempotent(self, document: OpenAPIDocument, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "openapi.json"
        first = export_document(document, target)
        second = export_document(document, target)
        assert first.sha256 == second.sha256
        assert first == second
