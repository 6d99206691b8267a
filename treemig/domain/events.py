"""Signals and events for the batch migration pipeline.

Two kinds of messages live here:

- Signals (`JobSucceeded`, `JobFailed`) are produced by worker threads and
  travel through the `ResultChannel` to the orchestrator. A job sends exactly
  one signal, tagged with the item's path and generation.
- Events travel through the `EventBus` on the control thread only, from the
  orchestrator to the presentation layer.

See `infrastructure/result_channel.py` and `infrastructure/event_bus.py`.
"""

from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from treemig.domain.errors import MigrationError
from treemig.domain.models import AppState, ItemState


class Signal(BaseModel):
    """Terminal message from one job for one item."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    path: Path
    generation: int


class JobSucceeded(Signal):
    """Migration finished; the optional video step has already been tried."""

    pass


class JobFailed(Signal):
    """Migration failed."""

    error: MigrationError


class Event(BaseModel):
    """Base class for all presentation events."""

    pass


class ItemsRegistered(Event):
    paths: List[Path]
    invalid: int = 0


class ProcessingStarted(Event):
    jobs: int


class ItemFinished(Event):
    """Emitted when a drained signal was applied to its item."""

    path: Path
    state: ItemState
    error_message: Optional[str] = None


class RegistryCleared(Event):
    removed: int


class AppStateChanged(Event):
    previous: AppState
    current: AppState


class ActionMessage(Event):
    """User action feedback (displayed in UI for 60s)."""
    message: str
