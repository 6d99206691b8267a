"""Batch orchestrator: the single owner of all mutable pipeline state.

Holds the item registry, the result channel, the dispatcher and the current
job settings. Every public method must be called from one control thread
(the CLI loop); jobs talk back only through the channel.

Per tick the presentation layer calls `poll()` and then reads `snapshot()`.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional
from treemig.domain.errors import TreeMigError
from treemig.domain.events import (
    ActionMessage,
    AppStateChanged,
    ItemFinished,
    ItemsRegistered,
    JobFailed,
    ProcessingStarted,
    RegistryCleared,
)
from treemig.domain.models import AppState, BatchSnapshot, Item, ItemState, ItemView, JobOutcome, JobSettings
from treemig.infrastructure.event_bus import EventBus
from treemig.infrastructure.result_channel import ResultChannel
from treemig.pipeline.dispatcher import JobDispatcher
from treemig.pipeline.registry import ItemRegistry
from treemig.pipeline.state import COMPLETED_STATES, next_app_state, state_of


class BatchOrchestrator:
    """Drives a batch of migration jobs and aggregates their results.

    Args:
        registry: ItemRegistry holding one item per dropped path.
        dispatcher: JobDispatcher launching jobs; must post to `channel`.
        channel: ResultChannel drained on every `poll()`.
        settings: JobSettings captured for the next dispatch.
        event_bus: Optional EventBus for presentation updates.
    """

    def __init__(
        self,
        registry: ItemRegistry,
        dispatcher: JobDispatcher,
        channel: ResultChannel,
        settings: Optional[JobSettings] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.registry = registry
        self.dispatcher = dispatcher
        self.channel = channel
        self.settings = settings or JobSettings()
        self.event_bus = event_bus or EventBus()
        self.logger = logging.getLogger(__name__)
        self._state = AppState.INIT

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return self._state == AppState.PROCESSING

    # ── Mutation entry points ────────────────────────────────────────────────

    def register_dropped_paths(self, paths: Iterable[Path]) -> List[Item]:
        """Validates and registers paths; refused while a batch is running."""
        paths = [Path(p) for p in paths]
        if self.is_processing:
            self.logger.warning(f"REGISTER: refused {len(paths)} path(s), batch is processing")
            self.event_bus.publish(ActionMessage(message="Cannot add files while processing"))
            return []

        items = [self.registry.register(path) for path in paths]
        invalid = sum(1 for item in items if not item.is_valid)
        self.logger.info(f"REGISTER: {len(items)} path(s), {invalid} invalid")
        self.event_bus.publish(ItemsRegistered(paths=[item.path for item in items], invalid=invalid))

        # New files start a new batch: a finished batch state no longer applies.
        prior = AppState.INIT if self._state in COMPLETED_STATES else self._state
        self._update_state(prior)
        return items

    def start_processing(self) -> int:
        """Dispatches every valid, unfinished item; returns the job count."""
        if self.is_processing:
            self.logger.warning("PROCESS: ignored, batch already processing")
            return 0
        if len(self.registry) == 0:
            self.logger.info("PROCESS: ignored, nothing registered")
            return 0

        self._set_state(AppState.PROCESSING)
        launched = self.dispatcher.dispatch(self.registry.items(), self.settings)
        self.event_bus.publish(ProcessingStarted(jobs=launched))
        return launched

    def clear_all(self) -> int:
        """Removes every item. Running jobs keep running; their signals are dropped."""
        if self.is_processing:
            self.logger.warning("CLEAR: registry cleared while jobs are still running")
        removed = self.registry.clear()
        self.logger.info(f"CLEAR: removed {removed} item(s)")
        self.event_bus.publish(RegistryCleared(removed=removed))
        self._update_state(self._state)
        return removed

    def update_settings(self, **changes) -> JobSettings:
        """Replaces the settings used by the next dispatch."""
        if self.is_processing:
            raise TreeMigError("Settings cannot be changed while files are being processed")
        unknown = sorted(set(changes) - set(JobSettings.model_fields))
        if unknown:
            raise TreeMigError(f"Unknown setting(s): {', '.join(unknown)}")
        # model_copy skips validation; rebuild to apply field constraints.
        candidate = self.settings.model_copy(update=changes)
        self.settings = JobSettings(**candidate.model_dump())
        self.logger.info(f"SETTINGS: updated {', '.join(sorted(changes))}")
        return self.settings

    def poll(self) -> int:
        """Applies every queued signal without blocking, then re-derives state.

        Returns the number of signals applied to live items.
        """
        applied = 0
        for signal in self.channel.drain():
            error = signal.error if isinstance(signal, JobFailed) else None
            if not self.registry.mark_outcome(signal.path, signal.generation, JobOutcome(error=error)):
                continue
            applied += 1
            item = self.registry.get(signal.path)
            self.event_bus.publish(ItemFinished(
                path=signal.path,
                state=state_of(self._state, item),
                error_message=str(error) if error is not None else None,
            ))

        self._update_state(self._state)
        return applied

    # ── Read entry points ────────────────────────────────────────────────────

    def snapshot(self) -> BatchSnapshot:
        views = []
        for item in self.registry.items():
            state = state_of(self._state, item)
            message = None
            if state == ItemState.INVALID_CONFIG:
                message = str(item.config)
            elif state == ItemState.PROCESSING_ERROR:
                message = str(item.outcome.error)
            elif state == ItemState.UNKNOWN:
                self.logger.error(f"SNAPSHOT: {item.path} has no derivable state")
            views.append(ItemView(path=item.path, state=state, generation=item.generation, message=message))
        return BatchSnapshot(app_state=self._state, items=views)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _update_state(self, prior: AppState) -> None:
        self._set_state(next_app_state(prior, self.registry.items()))

    def _set_state(self, state: AppState) -> None:
        previous = self._state
        self._state = state
        if previous != state:
            self.logger.info(f"STATE: {previous.value} → {state.value}")
            self.event_bus.publish(AppStateChanged(previous=previous, current=state))
