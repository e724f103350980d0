# File: apiwizard/bitmask.py
"""
APIWizard - Permission Bitmask Codec
=====================================
The single place where HTTP verbs and requestor kinds are converted to and
from the integer masks stored by the backend authorization layer.

    Verb mask       GET=1  POST=2  PUT=4  PATCH=8  DELETE=16   range [0, 31]
    Requestor mask  API=1  SCRIPT=2                             range [0, 3]

All functions are pure.  Bad input is reported with ``InvalidVerbError`` /
``InvalidRequestorError`` and corrupt masks with ``MalformedMaskError``;
nothing is ever clamped.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Set, Tuple, Type, TypeVar

from apiwizard.errors import InvalidRequestorError, InvalidVerbError, MalformedMaskError
from apiwizard.models import HTTPVerb, RequestorType

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.bitmask")

# ---------------------------------------------------------------------------
# Bit tables
# ---------------------------------------------------------------------------

VERB_BITS: Dict[HTTPVerb, int] = {
    HTTPVerb.GET: 1,
    HTTPVerb.POST: 2,
    HTTPVerb.PUT: 4,
    HTTPVerb.PATCH: 8,
    HTTPVerb.DELETE: 16,
}

REQUESTOR_BITS: Dict[RequestorType, int] = {
    RequestorType.API: 1,
    RequestorType.SCRIPT: 2,
}

MAX_VERB_MASK: int = sum(VERB_BITS.values())  # 31
MAX_REQUESTOR_MASK: int = sum(REQUESTOR_BITS.values())  # 3

# Largest bit first: the greedy decomposition walks this order.
_VERBS_DESCENDING: Tuple[Tuple[HTTPVerb, int], ...] = tuple(
    sorted(VERB_BITS.items(), key=lambda item: item[1], reverse=True)
)

_E = TypeVar("_E", HTTPVerb, RequestorType)


def _coerce_member(value: Any, enum_cls: Type[_E], error: Type[Exception]) -> _E:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            pass
    raise error(value)


def _check_mask(mask: Any, upper: int, kind: str) -> int:
    # bool is an int subclass but never a valid mask.
    if isinstance(mask, bool) or not isinstance(mask, int):
        raise MalformedMaskError(mask, kind, "not an integer")
    if mask < 0 or mask > upper:
        raise MalformedMaskError(mask, kind, f"outside [0, {upper}]")
    return mask


# ---------------------------------------------------------------------------
# Verb mask
# ---------------------------------------------------------------------------


def encode_verb_mask(verbs: Iterable[Any]) -> int:
    """
    Sum the bit value of every verb present.

    Examples:
        >>> encode_verb_mask({HTTPVerb.GET, HTTPVerb.POST, HTTPVerb.PATCH})
        11
        >>> encode_verb_mask(["get", "delete"])
        17

    Raises:
        InvalidVerbError: for anything outside the five supported verbs.
    """
    members: Set[HTTPVerb] = {_coerce_member(v, HTTPVerb, InvalidVerbError) for v in verbs}
    return sum(VERB_BITS[v] for v in members)


def decode_verb_mask(mask: Any) -> FrozenSet[HTTPVerb]:
    """
    Decompose *mask* into its verbs, largest bit first.

    Raises:
        MalformedMaskError: when *mask* is not an int in [0, 31] or leaves a
            remainder after all five bits are consumed.
    """
    remaining: int = _check_mask(mask, MAX_VERB_MASK, "verb")
    verbs: Set[HTTPVerb] = set()
    for verb, bit in _VERBS_DESCENDING:
        if remaining >= bit:
            verbs.add(verb)
            remaining -= bit
    if remaining:
        raise MalformedMaskError(mask, "verb", f"remainder {remaining}")
    return frozenset(verbs)


def has_verb(mask: int, verb: Any) -> bool:
    """True when *verb* is set in *mask*."""
    member: HTTPVerb = _coerce_member(verb, HTTPVerb, InvalidVerbError)
    return bool(_check_mask(mask, MAX_VERB_MASK, "verb") & VERB_BITS[member])


def toggle_verb(mask: int, verb: Any) -> int:
    """Return *mask* with *verb* flipped."""
    member: HTTPVerb = _coerce_member(verb, HTTPVerb, InvalidVerbError)
    return _check_mask(mask, MAX_VERB_MASK, "verb") ^ VERB_BITS[member]


def coerce_verb(value: Any) -> HTTPVerb:
    """Resolve an enum member or case-insensitive name to an ``HTTPVerb``."""
    return _coerce_member(value, HTTPVerb, InvalidVerbError)


def sorted_verbs(verbs: Iterable[HTTPVerb]) -> List[HTTPVerb]:
    """Verbs in ascending bit order (GET, POST, PUT, PATCH, DELETE)."""
    return sorted(verbs, key=lambda v: VERB_BITS[v])


# ---------------------------------------------------------------------------
# Requestor mask
# ---------------------------------------------------------------------------


def encode_requestor_mask(kinds: Iterable[Any]) -> int:
    """
    Sum of API=1 and SCRIPT=2; both present gives 3.

    Raises:
        InvalidRequestorError: for anything other than API / SCRIPT.
    """
    members: Set[RequestorType] = {
        _coerce_member(k, RequestorType, InvalidRequestorError) for k in kinds
    }
    return sum(REQUESTOR_BITS[k] for k in members)


def decode_requestor_mask(mask: Any) -> FrozenSet[RequestorType]:
    """
    3 → {API, SCRIPT}; 1 / 2 → one kind; 0 → no requestor.

    Raises:
        MalformedMaskError: for non-integers and values outside [0, 3].
    """
    value: int = _check_mask(mask, MAX_REQUESTOR_MASK, "requestor")
    return frozenset(kind for kind, bit in REQUESTOR_BITS.items() if value & bit)


__all__: List[str] = [
    "VERB_BITS",
    "REQUESTOR_BITS",
    "MAX_VERB_MASK",
    "MAX_REQUESTOR_MASK",
    "encode_verb_mask",
    "decode_verb_mask",
    "coerce_verb",
    "has_verb",
    "toggle_verb",
    "sorted_verbs",
    "encode_requestor_mask",
    "decode_requestor_mask",
]
