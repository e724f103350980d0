# File: apiwizard/exporters.py
"""
APIWizard - Document Exporter
==============================
Renders a synthesized ``OpenAPIDocument`` as JSON or YAML and writes it to
disk atomically (write-to-temp then rename), returning the size and a
SHA-256 checksum of what was written.

Re-exporting the same document to the same path is idempotent: the bytes,
and therefore the checksum, are identical.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import yaml

from apiwizard.models import OpenAPIDocument
from apiwizard.utils import sha256_hex, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.exporters")

SUPPORTED_FORMATS: tuple = ("json", "yaml")

_SUFFIX_FORMATS = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}


@dataclass(frozen=True, slots=True)
class ExportResult:
    """Immutable record of one exported document."""

    path: str
    format: str
    size_bytes: int
    sha256: str


def format_for_path(path: Path) -> str:
    """Pick the output format from *path*'s suffix; JSON when unknown."""
    return _SUFFIX_FORMATS.get(path.suffix.lower(), "json")


def render_document(document: OpenAPIDocument, fmt: str = "json") -> str:
    """
    Serialise *document*.  JSON uses a 2-space indent; YAML keeps the
    document's key order.

    Raises:
        ValueError: for an unsupported format.
    """
    key: str = fmt.lower()
    if key == "json":
        return document.to_json(indent=2) + "\n"
    if key in ("yaml", "yml"):
        return yaml.safe_dump(
            document.to_dict(),
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
        )
    raise ValueError(f"Unsupported export format '{fmt}'. Use one of {SUPPORTED_FORMATS}.")


def export_document(
    document: OpenAPIDocument,
    path: Path,
    fmt: Optional[str] = None,
) -> ExportResult:
    """
    Write *document* to *path*.

    Raises:
        ValueError: for an unsupported format.
        OSError: when the file cannot be written.
    """
    target: Path = Path(path)
    chosen: str = (fmt or format_for_path(target)).lower()
    if chosen == "yml":
        chosen = "yaml"
    content: str = render_document(document, chosen)
    size: int = write_file(target, content)
    result: ExportResult = ExportResult(
        path=str(target),
        format=chosen,
        size_bytes=size,
        sha256=sha256_hex(content),
    )
    logger.info("Exported %s document to %s (%d bytes).", chosen, target, size)
    return result


__all__: List[str] = [
    "SUPPORTED_FORMATS",
    "ExportResult",
    "format_for_path",
    "render_document",
    "export_document",
]
