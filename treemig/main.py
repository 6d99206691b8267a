import time
import typer
from pathlib import Path
from typing import List, Optional
from rich.console import Console
from treemig.config.loader import load_config
from treemig.config.models import AppConfig
from treemig.domain.errors import SettingsError
from treemig.domain.models import AppState, Codec
from treemig.infrastructure.config_parser import JobConfigParser
from treemig.infrastructure.event_bus import EventBus
from treemig.infrastructure.ffmpeg import FFmpegEncoder
from treemig.infrastructure.logging import setup_logging
from treemig.infrastructure.migration import TreeMigrationAdapter
from treemig.infrastructure.result_channel import ResultChannel
from treemig.pipeline.demo_engines import DemoEncoder, DemoMigrationEngine
from treemig.pipeline.dispatcher import JobDispatcher
from treemig.pipeline.orchestrator import BatchOrchestrator
from treemig.pipeline.registry import ItemRegistry
from treemig.ui.dashboard import Dashboard
from treemig.ui.manager import UIManager
from treemig.ui.state import UIState

DEFAULT_CONFIG_PATH = Path("conf/treemig.yaml")
DEFAULT_LOG_DIR = Path("logs")

app = typer.Typer(help="treemig - batch image tree migration with optional video encoding")


def _load_app_config(config_path: Path) -> AppConfig:
    # The default settings file is optional; an explicit one must exist.
    if config_path == DEFAULT_CONFIG_PATH and not config_path.exists():
        return AppConfig()
    return load_config(config_path)


def build_orchestrator(config: AppConfig, bus: EventBus, demo: bool = False) -> BatchOrchestrator:
    """Wires registry, channel, engines and dispatcher into one orchestrator."""
    if demo:
        migration = DemoMigrationEngine(config.demo)
        encoder = DemoEncoder(config.demo)
    else:
        migration = TreeMigrationAdapter(binary=config.general.migration_binary, debug=config.general.debug)
        encoder = FFmpegEncoder(debug=config.general.debug)

    channel = ResultChannel()
    dispatcher = JobDispatcher(migration=migration, encoder=encoder, channel=channel)
    return BatchOrchestrator(
        registry=ItemRegistry(JobConfigParser()),
        dispatcher=dispatcher,
        channel=channel,
        settings=config.job_settings(),
        event_bus=bus,
    )


@app.command()
def run(
    config_files: List[Path] = typer.Argument(..., help="Migration job files (YAML)"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to settings YAML"),
    video: Optional[bool] = typer.Option(None, "--video/--no-video", help="Encode a video after each migration"),
    codec: Optional[Codec] = typer.Option(None, "--codec", help="Video codec"),
    ffmpeg: Optional[Path] = typer.Option(None, "--ffmpeg", help="ffmpeg binary (or its folder)"),
    video_output: Optional[Path] = typer.Option(None, "--video-output", help="Folder for videos (default: next to images)"),
    frame_rate: Optional[int] = typer.Option(None, "--frame-rate", min=1, max=25, help="Video frame rate"),
    forest_green: Optional[bool] = typer.Option(None, "--forest-green/--no-forest-green", help="Pass forest green mode to the migration"),
    migration_bin: Optional[str] = typer.Option(None, "--migration-bin", help="tree-migration binary"),
    demo: bool = typer.Option(False, "--demo", help="Simulate migrations and encoding (no external binaries)"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    tick: Optional[float] = typer.Option(None, "--tick", min=0.001, help="Seconds between status refreshes"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Validate job files, then run every job concurrently with a live status table."""
    try:
        config = _load_app_config(config_path)
    except (FileNotFoundError, SettingsError) as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    # Apply CLI overrides
    if video is not None: config.video.enabled = video
    if codec is not None: config.video.codec = codec
    if ffmpeg is not None: config.video.ffmpeg_path = ffmpeg
    if video_output is not None: config.video.output_dir = video_output
    if frame_rate is not None: config.video.frame_rate = frame_rate
    if forest_green is not None: config.general.forest_green = forest_green
    if migration_bin is not None: config.general.migration_binary = migration_bin
    if log_path is not None: config.general.log_path = str(log_path)
    if tick is not None: config.general.tick_seconds = tick
    if debug: config.general.debug = True

    log_path_value = Path(config.general.log_path) if config.general.log_path else None
    logger = setup_logging(DEFAULT_LOG_DIR, debug=config.general.debug, log_path=log_path_value)
    logger.info(f"treemig started: files={len(config_files)}, demo={demo}")
    logger.info(
        f"Settings: video={config.video.enabled}, codec={config.video.codec.value}, "
        f"ffmpeg={config.video.ffmpeg_path}, frame_rate={config.video.frame_rate}, "
        f"forest_green={config.general.forest_green}"
    )
    if config.video.enabled and config.video.codec != Codec.NONE and config.video.ffmpeg_path is None:
        logger.warning("Video enabled but no ffmpeg binary configured; videos will be skipped")

    bus = EventBus()
    ui_state = UIState(activity_feed_max_items=config.ui.activity_feed_max_items)
    ui_state.ui_title = "Tree Migration - demo" if demo else "Tree Migration"
    UIManager(bus, ui_state)
    console = Console()
    dashboard = Dashboard(ui_state, console=console, refresh_per_second=config.ui.refresh_per_second)

    orchestrator = build_orchestrator(config, bus, demo=demo)
    orchestrator.register_dropped_paths(config_files)
    orchestrator.poll()
    ui_state.set_snapshot(orchestrator.snapshot())

    if orchestrator.state != AppState.VALID_CONFIGS:
        console.print(dashboard.create_display())
        typer.secho("Cannot process: invalid config files", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        with dashboard:
            orchestrator.start_processing()
            while True:
                orchestrator.poll()
                ui_state.set_snapshot(orchestrator.snapshot())
                dashboard.refresh()
                if not orchestrator.is_processing:
                    break
                time.sleep(config.general.tick_seconds)
    except KeyboardInterrupt:
        # Running jobs cannot be cancelled; daemon threads die with the process.
        logger.info("Interrupted by user, abandoning running jobs")
        typer.secho("\nStopped by user (Ctrl+C); running jobs abandoned", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)

    snapshot = orchestrator.snapshot()
    logger.info(f"treemig finished: state={snapshot.app_state.value}")
    if snapshot.app_state != AppState.PROCESSING_DONE:
        typer.secho("Processing finished with errors", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.secho("Processing done", fg=typer.colors.GREEN)


@app.command()
def check(
    config_files: List[Path] = typer.Argument(..., help="Migration job files (YAML)"),
):
    """Validate job files without running anything."""
    bus = EventBus()
    ui_state = UIState()
    UIManager(bus, ui_state)
    orchestrator = build_orchestrator(AppConfig(), bus)
    orchestrator.register_dropped_paths(config_files)
    orchestrator.poll()
    ui_state.set_snapshot(orchestrator.snapshot())

    Console().print(Dashboard(ui_state).create_table())
    if orchestrator.state != AppState.VALID_CONFIGS:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
