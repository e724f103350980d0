"""
tests/test_bitmask.py
Unit tests for apiwizard.bitmask.

Tests cover:
- Verb mask encode / decode over the whole [0, 31] range
- Rejection of out-of-range and non-integer masks
- Requestor mask encode / decode, including the empty mask
- has_verb / toggle_verb helpers
"""

from __future__ import annotations

from itertools import combinations

import pytest

from apiwizard.bitmask import (
    MAX_REQUESTOR_MASK,
    MAX_VERB_MASK,
    VERB_BITS,
    coerce_verb,
    decode_requestor_mask,
    decode_verb_mask,
    encode_requestor_mask,
    encode_verb_mask,
    has_verb,
    sorted_verbs,
    toggle_verb,
)
from apiwizard.errors import (
    InvalidRequestorError,
    InvalidVerbError,
    MalformedMaskError,
    PermissionCodecError,
)
from apiwizard.models import HTTPVerb, RequestorType


# ===========================================================================
# Verb mask
# ===========================================================================


class TestVerbMask:
    """encode_verb_mask / decode_verb_mask."""

    def test_concrete_example(self) -> None:
        verbs = {HTTPVerb.GET, HTTPVerb.POST, HTTPVerb.PATCH}
        assert encode_verb_mask(verbs) == 11
        assert decode_verb_mask(11) == frozenset(verbs)

    def test_bit_values(self) -> None:
        assert [VERB_BITS[v] for v in sorted_verbs(VERB_BITS)] == [1, 2, 4, 8, 16]
        assert MAX_VERB_MASK == 31

    def test_every_mask_in_range_decodes_and_reencodes(self) -> None:
        for mask in range(0, 32):
            assert encode_verb_mask(decode_verb_mask(mask)) == mask

    def test_every_subset_round_trips(self) -> None:
        verbs = list(HTTPVerb)
        for size in range(len(verbs) + 1):
            for subset in combinations(verbs, size):
                assert decode_verb_mask(encode_verb_mask(subset)) == frozenset(subset)

    def test_empty_set_is_zero(self) -> None:
        assert encode_verb_mask([]) == 0
        assert decode_verb_mask(0) == frozenset()

    @pytest.mark.parametrize("mask", [32, -1, 64, 1000])
    def test_out_of_range_rejected(self, mask: int) -> None:
        with pytest.raises(MalformedMaskError):
            decode_verb_mask(mask)

    @pytest.mark.parametrize("mask", ["3", 3.0, None, True])
    def test_non_integer_rejected(self, mask: object) -> None:
        with pytest.raises(MalformedMaskError):
            decode_verb_mask(mask)

    def test_string_names_accepted(self) -> None:
        assert encode_verb_mask(["get", "Delete"]) == 17

    def test_duplicates_counted_once(self) -> None:
        assert encode_verb_mask(["GET", HTTPVerb.GET]) == 1

    def test_unknown_verb_rejected(self) -> None:
        with pytest.raises(InvalidVerbError) as exc_info:
            encode_verb_mask(["GET", "OPTIONS"])
        assert exc_info.value.verb == "OPTIONS"

    def test_errors_share_codec_base(self) -> None:
        with pytest.raises(PermissionCodecError):
            decode_verb_mask(99)
        with pytest.raises(ValueError):
            encode_verb_mask(["HEAD"])

    def test_coerce_verb(self) -> None:
        assert coerce_verb(" patch ") is HTTPVerb.PATCH
        with pytest.raises(InvalidVerbError):
            coerce_verb(5)


class TestVerbHelpers:
    """has_verb / toggle_verb."""

    def test_has_verb(self) -> None:
        assert has_verb(11, HTTPVerb.PATCH)
        assert not has_verb(11, "PUT")

    def test_toggle_sets_and_clears(self) -> None:
        mask = toggle_verb(0, HTTPVerb.DELETE)
        assert mask == 16
        assert toggle_verb(mask, "delete") == 0

    def test_helpers_validate_mask(self) -> None:
        with pytest.raises(MalformedMaskError):
            has_verb(40, HTTPVerb.GET)
        with pytest.raises(MalformedMaskError):
            toggle_verb(-2, HTTPVerb.GET)


# ===========================================================================
# Requestor mask
# ===========================================================================


class TestRequestorMask:
    """encode_requestor_mask / decode_requestor_mask."""

    def test_both_is_three(self) -> None:
        assert encode_requestor_mask({RequestorType.API, RequestorType.SCRIPT}) == 3
        assert decode_requestor_mask(3) == {RequestorType.API, RequestorType.SCRIPT}
        assert MAX_REQUESTOR_MASK == 3

    def test_single_kinds(self) -> None:
        assert decode_requestor_mask(1) == {RequestorType.API}
        assert decode_requestor_mask(2) == {RequestorType.SCRIPT}
        assert encode_requestor_mask(["script"]) == 2

    def test_zero_is_empty(self) -> None:
        assert decode_requestor_mask(0) == frozenset()
        assert encode_requestor_mask([]) == 0

    @pytest.mark.parametrize("mask", [4, 7, -1, 255])
    def test_out_of_range_rejected(self, mask: int) -> None:
        with pytest.raises(MalformedMaskError) as exc_info:
            decode_requestor_mask(mask)
        assert exc_info.value.kind == "requestor"

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(InvalidRequestorError):
            encode_requestor_mask(["API", "WEBHOOK"])

    def test_round_trip(self) -> None:
        for mask in range(0, 4):
            assert encode_requestor_mask(decode_requestor_mask(mask)) == mask
