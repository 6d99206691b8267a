"""Concurrent dispatch of migration jobs.

One job per eligible item, all started at once (no pool limit). A job owns
deep copies of everything it reads and reports back only through the
ResultChannel, with exactly one signal on every path:

    migrate --ok--> [encode video, best effort] --> JobSucceeded
         `--error--> JobFailed

Jobs are fire-and-forget: no handle is kept and nothing can cancel them.
Clearing the registry only makes their signal stale.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Optional
from treemig.domain.errors import EncodingConfigError, EncodingError, MigrationError
from treemig.domain.events import JobFailed, JobSucceeded
from treemig.domain.models import Item, JobSettings, MigrationConfig
from treemig.infrastructure.ffmpeg import VideoEncoder
from treemig.infrastructure.migration import MigrationEngine
from treemig.infrastructure.result_channel import ResultChannel

Spawner = Callable[[Callable[[], None], str], None]


def spawn_thread(target: Callable[[], None], name: str) -> None:
    """Default spawner: one daemon thread per job."""
    threading.Thread(target=target, name=name, daemon=True).start()


class JobDispatcher:
    """Starts one job per valid, unfinished item.

    Args:
        migration: Engine migrating one image tree.
        encoder: Engine turning the migrated images into a video.
        channel: Where every job posts its single terminal signal.
        spawn: Callable starting `target` concurrently; tests pass a
            synchronous one.
    """

    def __init__(
        self,
        migration: MigrationEngine,
        encoder: VideoEncoder,
        channel: ResultChannel,
        spawn: Optional[Spawner] = None,
    ):
        self.migration = migration
        self.encoder = encoder
        self.channel = channel
        self.spawn = spawn or spawn_thread
        self.logger = logging.getLogger(__name__)

    def dispatch(self, items: Iterable[Item], settings: JobSettings) -> int:
        """Launches jobs and returns how many were started.

        There is no notion of "already running": an item without an outcome
        is dispatched again on every call.
        """
        launched = 0
        for item in items:
            if not item.is_valid:
                continue
            if item.outcome is not None:
                continue

            config = item.config.model_copy(deep=True)
            path = item.path
            generation = item.generation
            self.logger.info(f"DISPATCH: {path} (generation {generation})")
            self.spawn(
                lambda p=path, g=generation, c=config: self.run_job(p, g, c, settings),
                f"job-{path.name}-{generation}",
            )
            launched += 1

        self.logger.info(f"DISPATCH: {launched} job(s) launched")
        return launched

    def run_job(self, path: Path, generation: int, config: MigrationConfig, settings: JobSettings) -> None:
        """Runs one job to completion and sends its signal."""
        start_time = time.monotonic()
        self.logger.info(f"JOB_START: {path}")

        error: Optional[MigrationError] = None
        try:
            self.migration.run(config, forest_green=settings.forest_green)
        except MigrationError as exc:
            error = exc
        except Exception as exc:
            self.logger.exception(f"JOB_EXCEPTION: {path}")
            error = MigrationError(f"Unexpected migration failure: {exc}")

        if error is not None:
            elapsed = time.monotonic() - start_time
            self.logger.error(f"JOB_END: {path} status=failed elapsed={elapsed:.2f}s ({error})")
            self.channel.send(JobFailed(path=path, generation=generation, error=error))
            return

        if settings.video_requested:
            self._run_video_step(path, config, settings)

        elapsed = time.monotonic() - start_time
        self.logger.info(f"JOB_END: {path} status=done elapsed={elapsed:.2f}s")
        self.channel.send(JobSucceeded(path=path, generation=generation))

    def _run_video_step(self, path: Path, config: MigrationConfig, settings: JobSettings) -> None:
        # Best effort: nothing raised here may change the job result.
        try:
            video_config = self.encoder.build_config(
                config,
                settings.ffmpeg_path,
                settings.codec,
                settings.frame_rate,
                output_dir=settings.video_output_dir,
                extension=settings.video_extension,
                image_pattern=settings.image_pattern,
            )
        except EncodingConfigError as exc:
            self.logger.warning(f"VIDEO_SKIPPED: {path} ({exc})")
            return
        except Exception:
            self.logger.exception(f"VIDEO_SKIPPED: {path} (unexpected error building config)")
            return

        try:
            self.encoder.run(video_config)
        except EncodingError as exc:
            self.logger.warning(f"VIDEO_FAILED: {path} ({exc})")
        except Exception:
            self.logger.exception(f"VIDEO_FAILED: {path} (unexpected encoder error)")
        else:
            self.logger.info(f"VIDEO_DONE: {path} -> {video_config.output_file}")
