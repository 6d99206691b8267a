from datetime import datetime
from treemig.infrastructure.event_bus import EventBus
from treemig.ui.state import UIState
from treemig.domain.events import (
    ActionMessage, AppStateChanged, ItemFinished, ItemsRegistered,
    ProcessingStarted, RegistryCleared,
)
from treemig.domain.models import AppState, ItemState

class UIManager:
    """Subscribes to EventBus and updates UIState."""

    def __init__(self, bus: EventBus, state: UIState):
        self.bus = bus
        self.state = state
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(ItemsRegistered, self.on_items_registered)
        self.bus.subscribe(ProcessingStarted, self.on_processing_started)
        self.bus.subscribe(ItemFinished, self.on_item_finished)
        self.bus.subscribe(RegistryCleared, self.on_registry_cleared)
        self.bus.subscribe(AppStateChanged, self.on_app_state_changed)
        self.bus.subscribe(ActionMessage, self.on_action_message)

    def on_items_registered(self, event: ItemsRegistered):
        with self.state._lock:
            self.state.registered_count += len(event.paths)
            self.state.invalid_count += event.invalid
        if event.invalid:
            self.state.add_activity(f"Added {len(event.paths)} file(s), {event.invalid} invalid")
        else:
            self.state.add_activity(f"Added {len(event.paths)} file(s)")

    def on_processing_started(self, event: ProcessingStarted):
        with self.state._lock:
            self.state.dispatched_count = event.jobs
            self.state.completed_count = 0
            self.state.failed_count = 0
            self.state.processing_start_time = datetime.now()
            self.state.processing_end_time = None
        self.state.add_activity(f"Processing started: {event.jobs} job(s)")

    def on_item_finished(self, event: ItemFinished):
        name = event.path.name
        with self.state._lock:
            if event.state == ItemState.PROCESSING_DONE:
                self.state.completed_count += 1
            else:
                self.state.failed_count += 1
        if event.state == ItemState.PROCESSING_DONE:
            self.state.add_activity(f"✓ {name}")
        else:
            self.state.add_activity(f"✗ {name}: {event.error_message}")

    def on_registry_cleared(self, event: RegistryCleared):
        self.state.reset_counters()
        self.state.add_activity(f"Cleared {event.removed} item(s)")

    def on_app_state_changed(self, event: AppStateChanged):
        if event.previous == AppState.PROCESSING and event.current != AppState.PROCESSING:
            with self.state._lock:
                self.state.processing_end_time = datetime.now()

    def on_action_message(self, event: ActionMessage):
        self.state.set_last_action(event.message)
