"""Simulated engines for demo runs.

Jobs sleep for a random time and fail at a configured rate, so the whole
register → process → poll loop can be shown without the tree-migration and
ffmpeg binaries. Nothing is written to disk.
"""

import logging
import random
import threading
import time
from pathlib import Path
from typing import Optional
from treemig.config.models import DemoConfig
from treemig.domain.errors import EncodingError, MigrationError
from treemig.domain.models import Codec, MigrationConfig
from treemig.infrastructure.ffmpeg import EncodingConfig, video_file_name

DEMO_MIGRATION_ERRORS = [
    "No images found between start and end date",
    "Camera folder missing in source tree",
    "Permission denied writing output tree",
    "Corrupted EXIF timestamp in source image",
]


class _DemoRandom:
    """random.Random shared between job threads."""

    def __init__(self, seed: Optional[int]):
        self._rng = random.Random(seed)
        self._lock = threading.Lock()

    def uniform(self, a: float, b: float) -> float:
        with self._lock:
            return self._rng.uniform(a, b)

    def chance(self, rate: float) -> bool:
        with self._lock:
            return self._rng.random() < rate

    def choice(self, seq):
        with self._lock:
            return self._rng.choice(seq)


class DemoMigrationEngine:
    def __init__(self, demo_config: DemoConfig, sleep=time.sleep):
        self.demo_config = demo_config
        self.rng = _DemoRandom(demo_config.seed)
        self.sleep = sleep
        self.logger = logging.getLogger(__name__)

    def run(self, config: MigrationConfig, forest_green: bool = False) -> None:
        delay = self.rng.uniform(self.demo_config.min_delay_s, self.demo_config.max_delay_s)
        self.sleep(delay)
        if self.rng.chance(self.demo_config.failure_rate):
            raise MigrationError(self.rng.choice(DEMO_MIGRATION_ERRORS))
        self.logger.info(f"DEMO_MIGRATION: {config.location}/{config.camera} done in {delay:.2f}s")


class DemoEncoder:
    def __init__(self, demo_config: DemoConfig, sleep=time.sleep):
        self.demo_config = demo_config
        self.rng = _DemoRandom(None if demo_config.seed is None else demo_config.seed + 1)
        self.sleep = sleep

    def build_config(
        self,
        config: MigrationConfig,
        ffmpeg_path: Path,
        codec: Codec,
        frame_rate: int,
        output_dir: Optional[Path] = None,
        extension: str = ".mov",
        image_pattern: str = "*.jpg",
    ) -> EncodingConfig:
        target_dir = Path(output_dir) if output_dir is not None else Path(config.output_path)
        return EncodingConfig(
            ffmpeg_path=Path(ffmpeg_path),
            input_dir=Path(config.output_path),
            output_file=target_dir / video_file_name(config, extension),
            frame_rate=frame_rate,
            codec=codec,
            image_pattern=image_pattern,
        )

    def run(self, config: EncodingConfig) -> None:
        self.sleep(self.rng.uniform(0.0, self.demo_config.min_delay_s))
        if self.rng.chance(self.demo_config.video_failure_rate):
            raise EncodingError(f"Simulated encoder failure for {config.output_file.name}")
