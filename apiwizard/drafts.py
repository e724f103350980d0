# File: apiwizard/drafts.py
"""
APIWizard - Draft Persistence
==============================
Save-as-you-go for the wizard.  A ``DraftManager`` subscribes to a
``WizardStateMachine`` and writes the state after every step transition:

    {"version": 1, "saved_at": <epoch seconds>, "state": {...}}

Rules:
    - a failed save is logged and never undoes the transition,
    - drafts older than the TTL are discarded on load,
    - unreadable drafts are discarded with a warning,
    - completion and cancel delete the draft.

Stores only move opaque strings around, so any key/value backend with
``save`` / ``load`` / ``delete`` can stand in for the two provided here.
"""

from __future__ import annotations

import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol

from pydantic import ValidationError

from apiwizard.errors import DraftStoreError
from apiwizard.models import WizardSettings, WizardState
from apiwizard.utils import read_file, write_file
from apiwizard.wizard import STEP_EVENTS, END_EVENTS, WizardStateMachine

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.drafts")

DRAFT_FORMAT_VERSION: int = 1

_UNSAFE_KEY_RE: re.Pattern[str] = re.compile(r"[^A-Za-z0-9_.-]")


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class DraftStore(Protocol):
    """Keyed string storage."""

    def save(self, key: str, payload: str) -> None: ...

    def load(self, key: str) -> Optional[str]: ...

    def delete(self, key: str) -> None: ...


class MemoryDraftStore:
    """In-process store; used by tests and embedded callers."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def save(self, key: str, payload: str) -> None:
        self._data[key] = payload

    def load(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class FileDraftStore:
    """One JSON file per key under *directory*, written atomically."""

    def __init__(self, directory: Path) -> None:
        self.directory: Path = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_RE.sub('_', key)}.json"

    def save(self, key: str, payload: str) -> None:
        try:
            write_file(self.path_for(key), payload)
        except OSError as exc:
            raise DraftStoreError(f"Cannot write draft '{key}': {exc}") from exc

    def load(self, key: str) -> Optional[str]:
        path: Path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return read_file(path)
        except OSError as exc:
            raise DraftStoreError(f"Cannot read draft '{key}': {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as exc:
            raise DraftStoreError(f"Cannot delete draft '{key}': {exc}") from exc


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class DraftManager:
    """
    Serialises ``WizardState`` snapshots into a ``DraftStore``.

    Instances are callable so they can be passed straight to
    ``WizardStateMachine.subscribe``.
    """

    def __init__(
        self,
        store: DraftStore,
        key: str = "df-wizard-state",
        ttl_seconds: int = 86400,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store: DraftStore = store
        self.key: str = key
        self.ttl_seconds: int = ttl_seconds
        self._clock: Callable[[], float] = clock

    @classmethod
    def from_settings(
        cls,
        store: DraftStore,
        settings: Optional[WizardSettings] = None,
        clock: Callable[[], float] = time.time,
    ) -> "DraftManager":
        cfg: WizardSettings = settings or WizardSettings()
        return cls(store, cfg.draft_storage_key, cfg.draft_ttl_seconds, clock)

    # -- Persistence --------------------------------------------------------

    def save(self, state: WizardState) -> bool:
        """Persist *state*; returns False (and logs) when the store fails."""
        envelope: Dict[str, Any] = {
            "version": DRAFT_FORMAT_VERSION,
            "saved_at": self._clock(),
            "state": state.model_dump(mode="json"),
        }
        try:
            self.store.save(self.key, json.dumps(envelope, sort_keys=True))
        except (DraftStoreError, OSError) as exc:
            logger.warning("Draft save failed for '%s': %s", self.key, exc)
            return False
        except Exception:
            # Saving never interrupts the wizard, whatever the store raises.
            logger.exception("Draft store raised while saving '%s'.", self.key)
            return False
        logger.debug("Saved draft '%s' at step %s.", self.key, state.current_step.value)
        return True

    def load(self) -> Optional[WizardState]:
        """
        Return the stored draft, or None when there is none, it has expired,
        or it cannot be read.  Expired and unreadable drafts are deleted.
        """
        try:
            raw: Optional[str] = self.store.load(self.key)
        except (DraftStoreError, OSError) as exc:
            logger.warning("Draft load failed for '%s': %s", self.key, exc)
            return None
        if raw is None:
            return None

        try:
            envelope: Dict[str, Any] = json.loads(raw)
            version: Any = envelope["version"]
            saved_at: float = float(envelope["saved_at"])
            payload: Dict[str, Any] = envelope["state"]
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding unreadable draft '%s': %s", self.key, exc)
            self.discard()
            return None

        if version != DRAFT_FORMAT_VERSION:
            logger.warning(
                "Discarding draft '%s' with unknown format version %r.", self.key, version
            )
            self.discard()
            return None

        age: float = self._clock() - saved_at
        if age > self.ttl_seconds:
            logger.info("Discarding draft '%s': %.0fs old (ttl %ds).", self.key, age, self.ttl_seconds)
            self.discard()
            return None

        try:
            return WizardState.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Discarding invalid draft '%s': %s", self.key, exc)
            self.discard()
            return None

    def discard(self) -> None:
        try:
            self.store.delete(self.key)
        except (DraftStoreError, OSError) as exc:
            logger.warning("Draft delete failed for '%s': %s", self.key, exc)
        except Exception:
            logger.exception("Draft store raised while deleting '%s'.", self.key)

    # -- Observer -----------------------------------------------------------

    def __call__(self, event: str, previous: WizardState, current: WizardState) -> None:
        if event in END_EVENTS:
            self.discard()
        elif event in STEP_EVENTS:
            self.save(current)


def resume_machine(
    service_name: str,
    drafts: DraftManager,
    settings: Optional[WizardSettings] = None,
) -> WizardStateMachine:
    """
    Build a ``WizardStateMachine`` for *service_name*, resuming a fresh
    draft of the same service when one exists, and subscribe *drafts*.
    """
    state: Optional[WizardState] = drafts.load()
    if state is not None and (state.service_name != service_name or state.is_terminal):
        logger.info("Ignoring draft for service '%s'.", state.service_name)
        state = None
    machine = WizardStateMachine(service_name, settings, state)
    machine.subscribe(drafts)
    if state is not None:
        logger.info("Resumed draft at step %s.", state.current_step.value)
    return machine


__all__: List[str] = [
    "DRAFT_FORMAT_VERSION",
    "DraftStore",
    "MemoryDraftStore",
    "FileDraftStore",
    "DraftManager",
    "resume_machine",
]
