"""Background sync progress snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SyncPhase(str, Enum):  # noqa: UP042
    """Phases a background novel sync moves through.

    PENDING → NOVEL → VOLUME → CHAPTER → (VOLUME → CHAPTER)* → DONE | FAILED
    """

    PENDING = "PENDING"
    NOVEL = "NOVEL"
    VOLUME = "VOLUME"
    CHAPTER = "CHAPTER"
    DONE = "DONE"
    FAILED = "FAILED"


class SyncProgress(BaseModel):
    """Latest known state of one sync task.

    ``current``/``total`` count volumes while the phase is NOVEL or VOLUME,
    and chapters within the current volume while the phase is CHAPTER.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    nid: int | None = None
    phase: SyncPhase = SyncPhase.PENDING
    current: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    name: str | None = None
    vid: int | None = None
    cid: int | None = None
    message: str = ""
    updated_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
