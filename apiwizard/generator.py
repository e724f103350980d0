# File: apiwizard/generator.py
"""
APIWizard - Generation Session (Orchestrator)
===============================================
Connects the phases around the wizard:

    Schema discovery payload → TableDescriptors → Wizard → Synthesis → Submission

``GenerationSession`` runs the final step of a wizard that has reached
``GENERATION_PROGRESS``: it synthesizes the document from the wizard state,
hands it to the submission collaborator (any callable taking the document
dict) and moves the wizard to ``COMPLETED`` or ``ERROR``.

Error handling strategy:
    - Input files that cannot be read or parsed raise ``ValueError`` /
      ``FileNotFoundError`` naming the file.
    - Synthesis and submission failures never escape ``run()``; they end
      the wizard in ``ERROR`` and are reported in the ``GenerationReport``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import yaml
from pydantic import ValidationError

from apiwizard.errors import (
    APIWizardError,
    InvalidTransitionError,
    UnsupportedFieldTypeError,
)
from apiwizard.models import (
    OpenAPIDocument,
    TableDescriptor,
    WizardSettings,
    WizardStep,
)
from apiwizard.openapi import synthesize
from apiwizard.utils import Timer
from apiwizard.wizard import WizardStateMachine

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.generator")

Submitter = Callable[[Dict[str, Any]], Any]


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class GenerationReport:
    """Outcome of ``GenerationSession.run()``."""

    success: bool = False
    service_name: str = ""
    final_step: WizardStep = WizardStep.GENERATION_PROGRESS
    total_tables: int = 0
    total_paths: int = 0
    total_schemas: int = 0
    elapsed_seconds: float = 0.0
    document: Optional[OpenAPIDocument] = None
    submission_result: Any = None
    errors: List[str] = field(default_factory=list)

    def summary(self) -> str:
        """Return a human-readable summary string."""
        status: str = "SUCCESS" if self.success else "FAILED"
        lines: List[str] = [
            f"{'=' * 60}",
            "  APIWizard - Generation Report",
            f"{'=' * 60}",
            f"  Status:     {status}",
            f"  Service:    {self.service_name}",
            f"  Step:       {self.final_step.value}",
            f"  Tables:     {self.total_tables}",
            f"  Paths:      {self.total_paths}",
            f"  Schemas:    {self.total_schemas}",
            f"  Total time: {self.elapsed_seconds:.3f}s",
        ]
        if self.errors:
            lines.append(f"{'-' * 60}")
            lines.append(f"  Errors ({len(self.errors)}):")
            for err in self.errors:
                lines.append(f"    x {err}")
        lines.append(f"{'=' * 60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Input loaders
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc


def _load_yaml_file(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc


def load_schema_file(path: Path) -> Any:
    """
    Load a JSON or YAML file, dispatching on the extension.  Unknown
    extensions are tried as JSON, then YAML.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Schema path is not a file: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    if suffix == ".json":
        return _load_json_file(path)
    logger.info("Unknown extension '%s' - trying JSON then YAML.", suffix)
    try:
        return _load_json_file(path)
    except ValueError:
        return _load_yaml_file(path)


def parse_schema_response(payload: Any) -> List[TableDescriptor]:
    """
    Parse a schema discovery response into table descriptors.

    Accepts ``{"resource": [TableInfo, ...]}``, ``{"table": [...]}`` or a
    bare list of ``TableInfo`` objects.

    Raises:
        UnsupportedFieldTypeError: for a column type outside the enumeration.
        ValueError: for any other malformed entry.
    """
    items: Any = payload
    if isinstance(payload, Mapping):
        for key in ("resource", "table", "tables"):
            if key in payload:
                items = payload[key]
                break
        else:
            raise ValueError(
                "Cannot find tables in input. Expected top-level key: "
                "'resource', 'table' or 'tables'."
            )
    if not isinstance(items, list):
        raise ValueError(f"Expected a list of tables, got {type(items).__name__}.")

    tables: List[TableDescriptor] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ValueError(f"Table entry {index} is not an object.")
        try:
            tables.append(TableDescriptor.from_discovery(dict(item)))
        except UnsupportedFieldTypeError:
            raise
        except ValidationError as exc:
            raise ValueError(
                f"Table entry {index} ({item.get('name')!r}) is invalid: {exc}"
            ) from exc
    logger.info("Parsed %d tables from discovery payload.", len(tables))
    return tables


def load_settings_file(path: Path) -> WizardSettings:
    """Load ``WizardSettings`` from JSON/YAML; an empty file means defaults."""
    raw: Any = load_schema_file(path)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Settings file {path} must contain a mapping.")
    data: Mapping[str, Any] = raw.get("settings", raw)
    try:
        return WizardSettings.model_validate(dict(data))
    except ValidationError as exc:
        raise ValueError(f"Config validation failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Headless driver
# ---------------------------------------------------------------------------


def drive_to_preview(
    machine: WizardStateMachine,
    tables: Sequence[TableDescriptor],
    selected: Optional[Iterable[str]] = None,
    methods: Optional[Iterable[Any]] = None,
) -> bool:
    """
    Select *selected* tables (all when omitted) with *methods* enabled and
    advance to ``GENERATION_PREVIEW``.  Returns False when a gate stays
    closed; the messages are on ``machine.state.validation_errors``.

    Raises:
        ValueError: when a selected table is not in *tables*.
    """
    by_name: Dict[str, TableDescriptor] = {t.name: t for t in tables}
    names: List[str] = list(selected) if selected is not None else sorted(by_name)
    missing: List[str] = [n for n in names if n not in by_name]
    if missing:
        raise ValueError(f"Unknown tables: {missing}")

    verbs: Optional[List[Any]] = list(methods) if methods is not None else None
    for name in names:
        machine.select_table(by_name[name], verbs)
    if not machine.advance():
        return False
    return machine.advance()


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class GenerationSession:
    """
    Final step of the wizard: synthesize, submit, finish.

    Usage:
        session = GenerationSession(machine, submitter=client.create_service_docs)
        report = session.run()
    """

    def __init__(self, machine: WizardStateMachine, submitter: Submitter) -> None:
        self.machine: WizardStateMachine = machine
        self.submitter: Submitter = submitter

    def run(self) -> GenerationReport:
        """
        Raises:
            InvalidTransitionError: when the wizard is not in
                ``GENERATION_PROGRESS``.
        """
        state = self.machine.state
        if state.current_step != WizardStep.GENERATION_PROGRESS:
            raise InvalidTransitionError(
                state.current_step.value, "generate", "generation is not in progress"
            )

        report: GenerationReport = GenerationReport(
            service_name=state.service_name,
            total_tables=len(state.selected_tables),
        )
        with Timer("generation") as timer:
            try:
                document: OpenAPIDocument = synthesize(
                    [state.tables[n] for n in sorted(state.selected_tables)],
                    {n: state.configs_for(n) for n in sorted(state.selected_tables)},
                    state.service_name,
                    self.machine.settings,
                )
                report.document = document
                report.total_paths = len(document.paths)
                report.total_schemas = len(document.schema_names)
                report.submission_result = self.submitter(document.to_dict())
            except APIWizardError as exc:
                report.errors.append(str(exc))
            except Exception as exc:
                # Submission is an external collaborator; any failure ends the run.
                logger.exception("Submission failed for service '%s'.", state.service_name)
                report.errors.append(f"Submission failed: {exc}")

        report.elapsed_seconds = timer.elapsed
        if report.errors:
            self.machine.fail(report.errors[0])
        else:
            self.machine.complete()
            report.success = True
        report.final_step = self.machine.step
        logger.info(
            "Generation for '%s' finished: %s",
            state.service_name,
            report.final_step.value,
        )
        return report


__all__: List[str] = [
    "GenerationReport",
    "GenerationSession",
    "Submitter",
    "load_schema_file",
    "parse_schema_response",
    "load_settings_file",
    "drive_to_preview",
]
