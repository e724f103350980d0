# File: apiwizard/wizard.py
"""
APIWizard - Wizard State Machine
=================================
The multi-step generation flow as **pure transition functions** over an
immutable ``WizardState``, plus a thin ``WizardStateMachine`` controller
that holds the current snapshot and notifies observers after every change.

    TABLE_SELECTION ──► ENDPOINT_CONFIGURATION ──► GENERATION_PREVIEW
          ▲                     │  ▲                        │
          └──── retreat ────────┘  └──────── retreat ───────┘
                                                            ▼
                           COMPLETED ◄── GENERATION_PROGRESS ──► ERROR

Gates (``can_advance``):
    TABLE_SELECTION          1 ≤ selected tables ≤ settings.max_tables
    ENDPOINT_CONFIGURATION   ≥ 1 enabled method, no rejected methods,
                             no configuration validation errors
    GENERATION_PREVIEW       always open; synthesis errors are recorded
                             under the preview step

Persistence is not done here: a draft manager subscribes to the controller
(see ``apiwizard.drafts``).
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from apiwizard.bitmask import coerce_verb
from apiwizard.endpoints import (
    ConfigBuildResult,
    apply_overrides,
    build_all_configs,
    build_method_config,
)
from apiwizard.errors import (
    InvalidTransitionError,
    InvalidVerbError,
    MissingPrimaryKeyError,
)
from apiwizard.models import (
    VERB_ORDER,
    EndpointMethodConfig,
    HTTPVerb,
    MethodOverrides,
    TableDescriptor,
    WizardSettings,
    WizardState,
    WizardStep,
)
from apiwizard.openapi import PreviewResult, synthesize_preview
from apiwizard.validators import validate_method_configs, validate_table_selection

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.wizard")

_EDITABLE_STEPS: Tuple[WizardStep, ...] = (
    WizardStep.TABLE_SELECTION,
    WizardStep.ENDPOINT_CONFIGURATION,
)

_NEXT_STEP: Dict[WizardStep, WizardStep] = {
    WizardStep.TABLE_SELECTION: WizardStep.ENDPOINT_CONFIGURATION,
    WizardStep.ENDPOINT_CONFIGURATION: WizardStep.GENERATION_PREVIEW,
    WizardStep.GENERATION_PREVIEW: WizardStep.GENERATION_PROGRESS,
}

_PREVIOUS_STEP: Dict[WizardStep, WizardStep] = {
    WizardStep.ENDPOINT_CONFIGURATION: WizardStep.TABLE_SELECTION,
    WizardStep.GENERATION_PREVIEW: WizardStep.ENDPOINT_CONFIGURATION,
}


def _reject(state: WizardState, action: str, reason: str = "") -> InvalidTransitionError:
    exc = InvalidTransitionError(state.current_step.value, action, reason)
    logger.error("%s", exc)
    return exc


def _require_editable(state: WizardState, action: str) -> None:
    if state.current_step not in _EDITABLE_STEPS:
        raise _reject(state, action, "selections are frozen after configuration")


def _replace(state: WizardState, **changes: Any) -> WizardState:
    return state.model_copy(update=changes)


def _with_errors(
    state: WizardState, step: WizardStep, messages: Iterable[str]
) -> Dict[WizardStep, Tuple[str, ...]]:
    errors: Dict[WizardStep, Tuple[str, ...]] = dict(state.validation_errors)
    found: Tuple[str, ...] = tuple(messages)
    if found:
        errors[step] = found
    else:
        errors.pop(step, None)
    return errors


def _configuration_messages(state: WizardState) -> List[str]:
    messages: List[str] = []
    for table in sorted(state.rejected_methods):
        for verb in state.rejected_methods[table]:
            messages.append(str(MissingPrimaryKeyError(table, verb.value)))
    messages.extend(validate_method_configs(state.enabled_configs()).messages())
    return messages


def _refresh_configuration_errors(state: WizardState) -> WizardState:
    return _replace(
        state,
        validation_errors=_with_errors(
            state, WizardStep.ENDPOINT_CONFIGURATION, _configuration_messages(state)
        ),
    )


def _table_state(state: WizardState, name: str) -> TableDescriptor:
    table: Optional[TableDescriptor] = state.tables.get(name)
    if table is None or name not in state.selected_tables:
        raise _reject(state, "edit", f"table '{name}' is not selected")
    return table


def _store_configs(
    state: WizardState,
    table: str,
    configs: Iterable[EndpointMethodConfig],
    rejected: Iterable[HTTPVerb],
) -> WizardState:
    by_verb: Dict[HTTPVerb, EndpointMethodConfig] = {c.method: c for c in configs}
    rejected_set = set(rejected)
    endpoint_configs = dict(state.endpoint_configs)
    endpoint_configs[table] = tuple(by_verb[v] for v in VERB_ORDER if v in by_verb)
    rejected_methods = dict(state.rejected_methods)
    if rejected_set:
        rejected_methods[table] = tuple(v for v in VERB_ORDER if v in rejected_set)
    else:
        rejected_methods.pop(table, None)
    return _refresh_configuration_errors(
        _replace(state, endpoint_configs=endpoint_configs, rejected_methods=rejected_methods)
    )


# ---------------------------------------------------------------------------
# Pure transitions
# ---------------------------------------------------------------------------


def initial_state(service_name: str) -> WizardState:
    return WizardState(service_name=service_name)


def select_table(
    state: WizardState,
    table: TableDescriptor,
    enabled_verbs: Optional[Iterable[Any]] = None,
    settings: Optional[WizardSettings] = None,
) -> WizardState:
    """
    Add *table* to the selection and build its endpoint configs.

    With the default verb set, verbs the table cannot support (no primary
    key) are simply left off.  Verbs requested explicitly through
    *enabled_verbs* are recorded in ``rejected_methods`` instead and block
    the configuration step until they are switched off.
    """
    _require_editable(state, "select a table")
    result: ConfigBuildResult = build_all_configs(table, enabled_verbs, settings=settings)
    rejected: Tuple[HTTPVerb, ...] = result.rejected_verbs if enabled_verbs is not None else ()
    if result.errors and enabled_verbs is None:
        logger.info(
            "Table '%s' has no primary key; %s left disabled.",
            table.name,
            [v.value for v in result.rejected_verbs],
        )

    tables = dict(state.tables)
    tables[table.name] = table
    selected = state.selected_tables | {table.name}
    new_state: WizardState = _replace(state, tables=tables, selected_tables=selected)
    new_state = _store_configs(new_state, table.name, result.configs, rejected)
    return _replace(
        new_state,
        validation_errors=_with_errors(
            new_state,
            WizardStep.TABLE_SELECTION,
            validate_table_selection(selected, settings).messages(),
        ),
    )


def deselect_table(
    state: WizardState, table_name: str, settings: Optional[WizardSettings] = None
) -> WizardState:
    """Drop *table_name* and everything configured for it."""
    _require_editable(state, "deselect a table")
    if table_name not in state.selected_tables:
        return state
    selected = state.selected_tables - {table_name}
    tables = {k: v for k, v in state.tables.items() if k != table_name}
    configs = {k: v for k, v in state.endpoint_configs.items() if k != table_name}
    rejected = {k: v for k, v in state.rejected_methods.items() if k != table_name}
    new_state: WizardState = _replace(
        state,
        selected_tables=selected,
        tables=tables,
        endpoint_configs=configs,
        rejected_methods=rejected,
    )
    new_state = _refresh_configuration_errors(new_state)
    return _replace(
        new_state,
        validation_errors=_with_errors(
            new_state,
            WizardStep.TABLE_SELECTION,
            validate_table_selection(selected, settings).messages(),
        ),
    )


def set_method_enabled(
    state: WizardState,
    table_name: str,
    verb: Any,
    enabled: bool,
    settings: Optional[WizardSettings] = None,
) -> WizardState:
    """
    Switch one verb of a selected table on or off.

    Switching on a verb the table cannot support records it as rejected;
    switching it off clears the rejection.
    """
    _require_editable(state, "toggle a method")
    table: TableDescriptor = _table_state(state, table_name)
    member: HTTPVerb = coerce_verb(verb)
    current: Optional[EndpointMethodConfig] = None
    configs: List[EndpointMethodConfig] = []
    for cfg in state.configs_for(table_name):
        if cfg.method == member:
            current = cfg
        else:
            configs.append(cfg)
    rejected = set(state.rejected_methods.get(table_name, ())) - {member}

    if enabled and current is not None:
        configs.append(current.model_copy(update={"enabled": True}))
    elif enabled:
        try:
            configs.append(build_method_config(table, member, settings=settings))
        except MissingPrimaryKeyError as exc:
            logger.info("%s", exc)
            rejected.add(member)
    return _store_configs(state, table_name, configs, rejected)


def configure_method(
    state: WizardState,
    table_name: str,
    verb: Any,
    overrides: MethodOverrides,
    settings: Optional[WizardSettings] = None,
) -> WizardState:
    """Merge *overrides* into the config of (table, verb), building it if needed."""
    _require_editable(state, "configure a method")
    table: TableDescriptor = _table_state(state, table_name)
    member: HTTPVerb = coerce_verb(verb)
    existing: Optional[EndpointMethodConfig] = None
    others: List[EndpointMethodConfig] = []
    for cfg in state.configs_for(table_name):
        if cfg.method == member:
            existing = cfg
        else:
            others.append(cfg)
    rejected = set(state.rejected_methods.get(table_name, ()))

    if existing is not None:
        others.append(apply_overrides(existing, overrides))
    else:
        try:
            others.append(build_method_config(table, member, overrides, settings))
            rejected.discard(member)
        except MissingPrimaryKeyError as exc:
            logger.info("%s", exc)
            rejected.add(member)
    return _store_configs(state, table_name, others, rejected)


def gate_errors(
    state: WizardState, settings: Optional[WizardSettings] = None
) -> List[str]:
    """Why the current step cannot be left forwards (empty when it can)."""
    step: WizardStep = state.current_step
    if step == WizardStep.TABLE_SELECTION:
        return validate_table_selection(state.selected_tables, settings).messages()
    if step == WizardStep.ENDPOINT_CONFIGURATION:
        messages: List[str] = []
        if not state.enabled_configs():
            messages.append("Enable at least one method.")
        messages.extend(_configuration_messages(state))
        return messages
    if step == WizardStep.GENERATION_PREVIEW:
        return []
    return [f"No forward transition from {step.value}."]


def can_advance(state: WizardState, settings: Optional[WizardSettings] = None) -> bool:
    return not gate_errors(state, settings)


def preview(state: WizardState, settings: Optional[WizardSettings] = None) -> PreviewResult:
    """Synthesize the document for the current selections."""
    return synthesize_preview(
        [state.tables[name] for name in sorted(state.selected_tables)],
        {name: state.configs_for(name) for name in sorted(state.selected_tables)},
        state.service_name,
        settings,
    )


def advance(state: WizardState, settings: Optional[WizardSettings] = None) -> WizardState:
    """
    Move one step forwards.

    Entering the preview step synthesizes the document and records any
    synthesis errors under ``GENERATION_PREVIEW``.

    Raises:
        InvalidTransitionError: when the gate of the current step is closed,
            or the step has no forward transition.
    """
    step: WizardStep = state.current_step
    if step not in _NEXT_STEP:
        raise _reject(state, "advance")
    errors: List[str] = gate_errors(state, settings)
    if errors:
        raise _reject(state, "advance", "; ".join(errors))

    return _step_forward(state, settings)[0]


def _step_forward(
    state: WizardState, settings: Optional[WizardSettings]
) -> Tuple[WizardState, Optional[PreviewResult]]:
    """Ungated move to the next step, with the preview when one was built."""
    step: WizardStep = state.current_step
    target: WizardStep = _NEXT_STEP[step]
    validation_errors = _with_errors(state, step, ())
    result: Optional[PreviewResult] = None
    if target == WizardStep.GENERATION_PREVIEW:
        result = preview(state, settings)
        validation_errors = _with_errors(
            _replace(state, validation_errors=validation_errors),
            WizardStep.GENERATION_PREVIEW,
            result.errors,
        )
    logger.info("Wizard %s: %s -> %s", state.service_name, step.value, target.value)
    return _replace(state, current_step=target, validation_errors=validation_errors), result


def retreat(state: WizardState) -> WizardState:
    """Move one step back; only configuration and preview allow it."""
    step: WizardStep = state.current_step
    if step not in _PREVIOUS_STEP:
        raise _reject(state, "retreat")
    target: WizardStep = _PREVIOUS_STEP[step]
    logger.info("Wizard %s: %s <- %s", state.service_name, target.value, step.value)
    return _replace(state, current_step=target)


def complete(state: WizardState) -> WizardState:
    if state.current_step != WizardStep.GENERATION_PROGRESS:
        raise _reject(state, "complete", "generation is not in progress")
    return _replace(state, current_step=WizardStep.COMPLETED, error_message=None)


def fail(state: WizardState, message: str) -> WizardState:
    if state.is_terminal:
        raise _reject(state, "fail", "the wizard has already finished")
    logger.error("Wizard %s failed: %s", state.service_name, message)
    return _replace(state, current_step=WizardStep.ERROR, error_message=message)


def cancel(state: WizardState) -> WizardState:
    """Abandon the wizard; the result is a fresh state for the same service."""
    return initial_state(state.service_name)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

Observer = Callable[[str, WizardState, WizardState], None]

# Events emitted by the controller; observers receive (event, before, after).
STEP_EVENTS: Tuple[str, ...] = ("advance", "retreat", "fail")
END_EVENTS: Tuple[str, ...] = ("complete", "cancel")


class WizardStateMachine:
    """
    Holds the current ``WizardState`` and applies transitions to it.

    Each transition replaces the snapshot wholesale and then calls every
    observer with ``(event, previous, current)``.  Gated advances that fail
    are not raised: the gate messages are recorded on the state and
    ``advance()`` returns False.  Method edits with an unknown verb or an
    invalid parameter change are likewise recorded under
    ENDPOINT_CONFIGURATION and leave the configs untouched.
    """

    def __init__(
        self,
        service_name: str,
        settings: Optional[WizardSettings] = None,
        state: Optional[WizardState] = None,
    ) -> None:
        self.settings: WizardSettings = settings or WizardSettings()
        self._state: WizardState = state or initial_state(service_name)
        self._observers: List[Observer] = []
        self.last_preview: Optional[PreviewResult] = None

    @property
    def state(self) -> WizardState:
        return self._state

    @property
    def step(self) -> WizardStep:
        return self._state.current_step

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _commit(self, event: str, new_state: WizardState) -> WizardState:
        previous: WizardState = self._state
        self._state = new_state
        for observer in list(self._observers):
            observer(event, previous, new_state)
        return new_state

    # -- Editing ------------------------------------------------------------

    def select_table(
        self, table: TableDescriptor, enabled_verbs: Optional[Iterable[Any]] = None
    ) -> WizardState:
        return self._commit(
            "edit", select_table(self._state, table, enabled_verbs, self.settings)
        )

    def deselect_table(self, table_name: str) -> WizardState:
        return self._commit("edit", deselect_table(self._state, table_name, self.settings))

    def _reject_edit(self, table_name: str, verb: Any, exc: Exception) -> WizardState:
        """Record a refused method edit under ENDPOINT_CONFIGURATION."""
        if isinstance(exc, ValidationError):
            details: str = "; ".join(err["msg"] for err in exc.errors())
            message: str = f"Invalid edit of {verb} on '{table_name}': {details}"
        else:
            message = str(exc)
        logger.warning("%s", message)
        return self._commit(
            "edit",
            _replace(
                self._state,
                validation_errors=_with_errors(
                    self._state, WizardStep.ENDPOINT_CONFIGURATION, [message]
                ),
            ),
        )

    def set_method_enabled(self, table_name: str, verb: Any, enabled: bool) -> WizardState:
        try:
            new_state: WizardState = set_method_enabled(
                self._state, table_name, verb, enabled, self.settings
            )
        except InvalidVerbError as exc:
            return self._reject_edit(table_name, verb, exc)
        return self._commit("edit", new_state)

    def configure_method(
        self, table_name: str, verb: Any, overrides: MethodOverrides
    ) -> WizardState:
        try:
            new_state: WizardState = configure_method(
                self._state, table_name, verb, overrides, self.settings
            )
        except (InvalidVerbError, ValidationError) as exc:
            return self._reject_edit(table_name, verb, exc)
        return self._commit("edit", new_state)

    # -- Navigation ---------------------------------------------------------

    def can_advance(self) -> bool:
        return can_advance(self._state, self.settings)

    def advance(self) -> bool:
        """
        Advance one step.  Returns False (with the gate messages recorded
        under the current step) when the gate is closed.

        Raises:
            InvalidTransitionError: from steps with no forward transition.
        """
        step: WizardStep = self._state.current_step
        if step not in _NEXT_STEP:
            raise _reject(self._state, "advance")
        errors: List[str] = gate_errors(self._state, self.settings)
        if errors:
            logger.warning("Cannot leave %s: %s", step.value, "; ".join(errors))
            self._commit(
                "edit",
                _replace(
                    self._state,
                    validation_errors=_with_errors(self._state, step, errors),
                ),
            )
            return False
        new_state, result = _step_forward(self._state, self.settings)
        if result is not None:
            self.last_preview = result
        self._commit("advance", new_state)
        return True

    def retreat(self) -> WizardState:
        return self._commit("retreat", retreat(self._state))

    def preview(self) -> PreviewResult:
        self.last_preview = preview(self._state, self.settings)
        return self.last_preview

    def complete(self) -> WizardState:
        return self._commit("complete", complete(self._state))

    def fail(self, message: str) -> WizardState:
        return self._commit("fail", fail(self._state, message))

    def cancel(self) -> WizardState:
        self.last_preview = None
        return self._commit("cancel", cancel(self._state))

    def __repr__(self) -> str:
        return f"<WizardStateMachine {self._state!r}>"


__all__: List[str] = [
    "initial_state",
    "select_table",
    "deselect_table",
    "set_method_enabled",
    "configure_method",
    "gate_errors",
    "can_advance",
    "preview",
    "advance",
    "retreat",
    "complete",
    "fail",
    "cancel",
    "Observer",
    "STEP_EVENTS",
    "END_EVENTS",
    "WizardStateMachine",
]
