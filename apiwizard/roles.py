# File: apiwizard/roles.py
"""
APIWizard - Role Access Compiler
=================================
Converts role service-access rules between the editing shape
(``RoleFormAccess``: checkbox sets) and the persisted shape
(``RoleServiceAccess``: integer masks).

    compile_access      form rows   → persisted records
    decompile_access    persisted   → form rows (per-row decode errors)
    parse_role_payload  PUT /system/role/{id} body → persisted records
    build_role_payload  form rows   → PUT /system/role/{id} body

A corrupt mask on one row never prevents the other rows of the role from
loading: the failure is attached to that row's ``errors``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from apiwizard.bitmask import (
    decode_requestor_mask,
    decode_verb_mask,
    encode_requestor_mask,
    encode_verb_mask,
)
from apiwizard.errors import MalformedMaskError, PermissionCodecError
from apiwizard.models import HTTPVerb, RequestorType, RoleFormAccess, RoleServiceAccess

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.roles")

ACCESS_KEY: str = "roleServiceAccessByRoleId"

FormRow = Union[RoleFormAccess, Mapping[str, Any]]


def _as_form_row(row: FormRow) -> RoleFormAccess:
    if isinstance(row, RoleFormAccess):
        return row
    return RoleFormAccess.model_validate(dict(row))


# ---------------------------------------------------------------------------
# Compile / decompile
# ---------------------------------------------------------------------------


def compile_access(rows: Iterable[FormRow]) -> List[RoleServiceAccess]:
    """
    Encode form rows into persisted records.  Filters and ``filter_op``
    are carried over verbatim.

    Raises:
        InvalidVerbError / InvalidRequestorError: for values outside the
            enumerations.
        PermissionCodecError: for a row still carrying decode errors; its
            sets do not reflect the stored masks.
    """
    compiled: List[RoleServiceAccess] = []
    for row in rows:
        form: RoleFormAccess = _as_form_row(row)
        if form.errors:
            raise PermissionCodecError(
                f"Access row {form.id!r} has unresolved errors: {list(form.errors)}"
            )
        compiled.append(
            RoleServiceAccess(
                id=form.id,
                role_id=form.role_id,
                service_id=form.service_id,
                component=form.component,
                verb_mask=encode_verb_mask(form.verbs),
                requestor_mask=encode_requestor_mask(form.requestors),
                filters=form.filters,
                filter_op=form.filter_op,
            )
        )
    logger.debug("compile_access: %d rows", len(compiled))
    return compiled


def decompile_access(records: Iterable[RoleServiceAccess]) -> List[RoleFormAccess]:
    """Decode persisted records; a malformed mask is reported on its row only."""
    rows: List[RoleFormAccess] = []
    for record in records:
        errors: List[str] = []
        verbs: FrozenSet[HTTPVerb] = frozenset()
        requestors: FrozenSet[RequestorType] = frozenset()
        try:
            verbs = decode_verb_mask(record.verb_mask)
        except MalformedMaskError as exc:
            errors.append(str(exc))
        try:
            requestors = decode_requestor_mask(record.requestor_mask)
        except MalformedMaskError as exc:
            errors.append(str(exc))
        if errors:
            logger.warning(
                "Access row %r (component %s): %s", record.id, record.component, errors
            )
        rows.append(
            RoleFormAccess(
                id=record.id,
                role_id=record.role_id,
                service_id=record.service_id,
                component=record.component,
                verbs=verbs,
                requestors=requestors,
                filters=record.filters,
                filter_op=record.filter_op,
                errors=tuple(errors),
            )
        )
    return rows


# ---------------------------------------------------------------------------
# Role payloads
# ---------------------------------------------------------------------------


def _access_items(payload: Mapping[str, Any]) -> List[Any]:
    items: Any = payload.get(ACCESS_KEY) or []
    if not isinstance(items, list):
        raise ValueError(f"'{ACCESS_KEY}' must be a list, got {type(items).__name__}.")
    return items


def parse_role_payload(payload: Mapping[str, Any]) -> List[RoleServiceAccess]:
    """
    Parse the access list of a role payload.  Filters may arrive as a
    JSON-encoded string.

    Raises:
        ValueError: naming the first row that does not parse.
    """
    records: List[RoleServiceAccess] = []
    for index, item in enumerate(_access_items(payload)):
        try:
            records.append(RoleServiceAccess.model_validate(item))
        except ValidationError as exc:
            raise ValueError(f"Invalid access row {index}: {exc}") from exc
    return records


def decompile_payload(
    records: Union[Mapping[str, Any], Iterable[Mapping[str, Any]]],
) -> List[RoleFormAccess]:
    """
    Like ``decompile_access`` but starting from raw persisted dicts (or a
    whole role payload).  Rows that do not even parse are returned with
    their parse failure in ``errors``.
    """
    items: Iterable[Any] = (
        _access_items(records) if isinstance(records, Mapping) else records
    )
    rows: List[RoleFormAccess] = []
    for index, item in enumerate(items):
        try:
            record: RoleServiceAccess = RoleServiceAccess.model_validate(item)
        except ValidationError as exc:
            logger.warning("Access row %d does not parse: %s", index, exc)
            raw: Mapping[str, Any] = item if isinstance(item, Mapping) else {}
            raw_id: Any = raw.get("id")
            rows.append(
                RoleFormAccess(
                    id=raw_id if isinstance(raw_id, int) else None,
                    component=str(raw.get("component") or "*"),
                    errors=(f"Row {index} could not be parsed: {exc.error_count()} error(s)",),
                )
            )
            continue
        rows.extend(decompile_access([record]))
    return rows


def build_role_payload(
    role_id: Optional[int],
    rows: Iterable[FormRow],
    name: Optional[str] = None,
    description: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Dict[str, Any]:
    """
    Build a role create/update body.  Every access row is stamped with
    *role_id*; keys are camelCase and ``None`` values are left out.
    """
    access: List[Dict[str, Any]] = []
    for record in compile_access(rows):
        if role_id is not None:
            record = record.model_copy(update={"role_id": role_id})
        access.append(record.to_payload())

    payload: Dict[str, Any] = {}
    if role_id is not None:
        payload["id"] = role_id
    if name is not None:
        payload["name"] = name
    if description is not None:
        payload["description"] = description
    if is_active is not None:
        payload["isActive"] = is_active
    payload[ACCESS_KEY] = access
    return payload


__all__: List[str] = [
    "ACCESS_KEY",
    "compile_access",
    "decompile_access",
    "parse_role_payload",
    "decompile_payload",
    "build_role_payload",
]
