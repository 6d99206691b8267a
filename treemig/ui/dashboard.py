from typing import Optional
from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text
from rich.box import ROUNDED
from treemig.domain.models import AppState, ItemState, ItemView
from treemig.ui.state import UIState

ITEM_LABELS = {
    ItemState.PROCESSING_DONE: ("Done", "green"),
    ItemState.PROCESSING_ERROR: ("Error", "red"),
    ItemState.VALID_CONFIG: ("Valid Config", "cyan"),
    ItemState.INVALID_CONFIG: ("Invalid Config", "red"),
    ItemState.PROCESSING: ("Processing", "yellow"),
    ItemState.UNKNOWN: ("Unknown", "magenta"),
}

STATUS_LINES = {
    AppState.INIT: ("Nothing to process: No Config Files", "dim"),
    AppState.INVALID_CONFIGS: ("Cannot process: No or invalid Config Files", "red"),
    AppState.VALID_CONFIGS: ("Ready to process", "green"),
    AppState.PROCESSING: ("Processing…", "yellow"),
    AppState.PROCESSING_DONE: ("Processing done", "green"),
    AppState.PROCESSING_ERRORS: ("Processing error.", "bold red"),
}


def render_status_cell(item: ItemView) -> RenderableType:
    if item.state == ItemState.PROCESSING:
        return Spinner("dots", text=Text("Processing", style="yellow"))
    label, style = ITEM_LABELS[item.state]
    return Text(label, style=style)


def render_path_cell(item: ItemView) -> RenderableType:
    text = Text(str(item.path))
    if item.message and item.state in (ItemState.INVALID_CONFIG, ItemState.PROCESSING_ERROR):
        text.append("\n")
        text.append(item.message, style="red")
    return text


class Dashboard:
    """Item table plus batch status, refreshed by the CLI loop every tick."""

    def __init__(self, state: UIState, console: Optional[Console] = None, refresh_per_second: int = 4):
        self.state = state
        self.console = console or Console()
        self.refresh_per_second = refresh_per_second
        self._live: Optional[Live] = None

    def create_table(self) -> Table:
        with self.state._lock:
            items = list(self.state.snapshot.items)

        table = Table(box=ROUNDED, expand=True, show_lines=False)
        table.add_column("Status", no_wrap=True, min_width=14)
        table.add_column("Path", overflow="fold")
        for item in items:
            table.add_row(render_status_cell(item), render_path_cell(item))
        return table

    def create_status(self) -> Text:
        with self.state._lock:
            app_state = self.state.snapshot.app_state
            done = self.state.completed_count
            failed = self.state.failed_count
            dispatched = self.state.dispatched_count
        message, style = STATUS_LINES[app_state]
        status = Text(message, style=style)
        if dispatched:
            status.append(f"  {done + failed}/{dispatched} finished", style="bold")
            if failed:
                status.append(f" ({failed} failed)", style="red")
            status.append(f"  {self.state.elapsed_seconds:.1f}s", style="dim")
        last_action = self.state.get_last_action()
        if last_action:
            status.append(f"  {last_action}", style="italic")
        return status

    def create_activity(self) -> Text:
        with self.state._lock:
            entries = list(self.state.recent_activity)
        text = Text()
        for i, (stamp, line) in enumerate(entries):
            if i:
                text.append("\n")
            text.append(stamp.strftime("%H:%M:%S "), style="dim")
            text.append(line)
        return text

    def create_display(self) -> RenderableType:
        parts = [self.create_table(), self.create_status()]
        if self.state.recent_activity:
            parts.append(Panel(self.create_activity(), title="Activity", box=ROUNDED))
        return Panel(Group(*parts), title=self.state.ui_title, box=ROUNDED)

    def refresh(self):
        if self._live:
            self._live.update(self.create_display())

    def start(self):
        self._live = Live(self.create_display(), console=self.console, refresh_per_second=self.refresh_per_second)
        self._live.start()
        return self

    def stop(self):
        if self._live:
            self._live.update(self.create_display())
            self._live.stop()
            self._live = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
