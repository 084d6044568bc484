"""
Publication intent log.

A publication is a sequence of external writes that cannot be rolled back
(chain transactions, pinned content). Each batch publication is recorded as
an intent whose completed steps and outputs are saved after every step, so
a failed run can be resumed without creating a second batch or re-storing
packages.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from core.schemas.errors import StorageError
from orchestrator.persistence import read_json, write_json_atomic

logger = logging.getLogger(__name__)

STEP_CREATE_BATCH = "create_batch"
STEP_STORE_PACKAGES = "store_packages"
STEP_STORE_ROOT = "store_root"
STEP_INDEX = "index"

PUBLICATION_STEPS = (STEP_CREATE_BATCH, STEP_STORE_PACKAGES, STEP_STORE_ROOT, STEP_INDEX)

IntentStatus = Literal["pending", "failed", "completed"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PublicationIntent(BaseModel):
    """Progress record of one batch publication."""

    model_config = ConfigDict(extra="forbid")

    intent_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    org_id: int
    description: str = ""
    merkle_root: str = Field(..., description="Chain form of the batch root")
    credential_ids: list[str] = Field(default_factory=list)
    status: IntentStatus = "pending"
    completed_steps: list[str] = Field(default_factory=list)

    batch_id: Optional[int] = None
    batch_tx: Optional[str] = None
    content_ids: list[str] = Field(default_factory=list)
    root_tx: Optional[str] = None

    failed_step: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def is_done(self, step: str) -> bool:
        return step in self.completed_steps

    @property
    def pending_steps(self) -> list[str]:
        return [step for step in PUBLICATION_STEPS if step not in self.completed_steps]

    def complete(self, step: str) -> None:
        if step not in self.completed_steps:
            self.completed_steps.append(step)
        self.failed_step = None
        self.error = None
        self.status = "completed" if not self.pending_steps else "pending"
        self.updated_at = _now()

    def fail(self, step: str, error: str) -> None:
        self.status = "failed"
        self.failed_step = step
        self.error = error
        self.updated_at = _now()


class IntentLog(Protocol):
    def save(self, intent: PublicationIntent) -> None: ...

    def get(self, intent_id: str) -> Optional[PublicationIntent]: ...

    def list_intents(self, status: Optional[IntentStatus] = None) -> list[PublicationIntent]: ...


class InMemoryIntentLog:
    def __init__(self) -> None:
        self._intents: dict[str, PublicationIntent] = {}

    def save(self, intent: PublicationIntent) -> None:
        self._intents[intent.intent_id] = intent.model_copy(deep=True)

    def get(self, intent_id: str) -> Optional[PublicationIntent]:
        intent = self._intents.get(intent_id)
        return intent.model_copy(deep=True) if intent else None

    def list_intents(self, status: Optional[IntentStatus] = None) -> list[PublicationIntent]:
        return [
            i.model_copy(deep=True) for i in self._intents.values()
            if status is None or i.status == status
        ]


class FileIntentLog:
    """Intents kept in one JSON file keyed by intent id."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, dict]:
        return read_json(self.path, default={})

    def save(self, intent: PublicationIntent) -> None:
        intents = self._read()
        intents[intent.intent_id] = intent.model_dump(mode="json")
        try:
            write_json_atomic(self.path, intents)
        except OSError as e:
            raise StorageError(f"Failed to write intent log {self.path}: {e}", operation="save") from e
        logger.debug("Saved intent %s (%s)", intent.intent_id, intent.status)

    def get(self, intent_id: str) -> Optional[PublicationIntent]:
        data = self._read().get(intent_id)
        return PublicationIntent.model_validate(data) if data else None

    def list_intents(self, status: Optional[IntentStatus] = None) -> list[PublicationIntent]:
        intents = [PublicationIntent.model_validate(d) for d in self._read().values()]
        return [i for i in intents if status is None or i.status == status]


def build_intent_log(path: Optional[str | Path] = None) -> IntentLog:
    return FileIntentLog(path) if path else InMemoryIntentLog()
