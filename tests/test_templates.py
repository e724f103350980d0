"""
tests/test_templates.py
Unit tests for apiwizard.templates (the per-verb defaults table).
"""

from __future__ import annotations

import pytest

from apiwizard.models import HTTPVerb, VERB_ORDER, WizardSettings
from apiwizard.templates import (
    DEFAULT_ENABLED_VERBS,
    METHOD_TEMPLATES,
    get_template,
    standard_query_parameters,
)


class TestMethodTemplates:
    """Template table contents."""

    def test_every_verb_has_a_template(self) -> None:
        assert set(METHOD_TEMPLATES) == set(VERB_ORDER)

    def test_delete_off_by_default(self) -> None:
        assert DEFAULT_ENABLED_VERBS == (
            HTTPVerb.GET, HTTPVerb.POST, HTTPVerb.PUT, HTTPVerb.PATCH,
        )

    @pytest.mark.parametrize(
        "verb, variant",
        [
            (HTTPVerb.GET, None),
            (HTTPVerb.POST, "Create"),
            (HTTPVerb.PUT, "Update"),
            (HTTPVerb.PATCH, "Patch"),
            (HTTPVerb.DELETE, None),
        ],
    )
    def test_body_variants(self, verb: HTTPVerb, variant: str) -> None:
        assert get_template(verb).body_variant == variant

    def test_single_record_verbs_need_path_id(self) -> None:
        needs_id = {v for v, t in METHOD_TEMPLATES.items() if t.path_id}
        assert needs_id == {HTTPVerb.PUT, HTTPVerb.PATCH, HTTPVerb.DELETE}

    def test_success_status(self) -> None:
        assert get_template(HTTPVerb.POST).success_status == "201"
        assert get_template(HTTPVerb.GET).returns_collection
        assert not get_template(HTTPVerb.PATCH).returns_collection

    def test_query_parameters_exist_in_catalogue(self) -> None:
        catalogue = standard_query_parameters()
        for template in METHOD_TEMPLATES.values():
            assert set(template.query_parameters) <= set(catalogue)


class TestStandardQueryParameters:
    """The shared query parameter catalogue."""

    def test_limit_defaults(self) -> None:
        limit = standard_query_parameters()["limit"]
        assert limit.default == 25
        assert limit.constraints == {"minimum": 1, "maximum": 1000}

    def test_limit_follows_settings(self) -> None:
        limit = standard_query_parameters(
            WizardSettings(default_page_size=5, max_page_size=50)
        )["limit"]
        assert limit.default == 5
        assert limit.constraints["maximum"] == 50

    def test_offset_non_negative(self) -> None:
        assert standard_query_parameters()["offset"].constraints == {"minimum": 0}
