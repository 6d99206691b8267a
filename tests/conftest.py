import threading
import pytest
import yaml
from pathlib import Path
from typing import Dict, Optional
from treemig.domain.errors import MigrationError
from treemig.domain.models import JobSettings
from treemig.infrastructure.event_bus import EventBus
from treemig.infrastructure.ffmpeg import EncodingConfig, video_file_name
from treemig.infrastructure.result_channel import ResultChannel
from treemig.pipeline.dispatcher import JobDispatcher
from treemig.pipeline.orchestrator import BatchOrchestrator
from treemig.pipeline.registry import ItemRegistry

# ============================================================================
# Job File Fixtures
# ============================================================================

@pytest.fixture
def make_job(tmp_path):
    """Factory writing a valid job YAML (plus its source folder) under tmp_path."""
    def _make(name: str, **overrides) -> Path:
        source = tmp_path / "src" / name
        source.mkdir(parents=True, exist_ok=True)
        data = {
            "source_dir": str(source),
            "output_path": str(tmp_path / "out" / name),
            "location": name,
            "camera": "CAM-01",
            "start_date": "2023-05-01",
            "end_date": "2023-06-30",
        }
        data.update(overrides)
        jobs_dir = tmp_path / "jobs"
        jobs_dir.mkdir(exist_ok=True)
        job_file = jobs_dir / f"{name}.yaml"
        with open(job_file, "w") as f:
            yaml.safe_dump(data, f)
        return job_file
    return _make


@pytest.fixture
def make_invalid_job(make_job):
    """Factory writing a job whose date range is reversed."""
    def _make(name: str) -> Path:
        return make_job(name, start_date="2023-07-01", end_date="2023-06-01")
    return _make

# ============================================================================
# Engine Fakes
# ============================================================================

class FakeMigrationEngine:
    """Records calls; fails for locations listed in `failures`."""

    def __init__(self, failures: Optional[Dict[str, str]] = None):
        self.failures = failures or {}
        self.calls = []
        self._lock = threading.Lock()

    def run(self, config, forest_green: bool = False):
        with self._lock:
            self.calls.append((config.location, forest_green))
        if config.location in self.failures:
            raise MigrationError(self.failures[config.location])


class FakeEncoder:
    def __init__(self, build_error: Optional[Exception] = None, run_error: Optional[Exception] = None):
        self.build_error = build_error
        self.run_error = run_error
        self.built = []
        self.ran = []

    def build_config(self, config, ffmpeg_path, codec, frame_rate, output_dir=None, extension=".mov", image_pattern="*.jpg"):
        if self.build_error:
            raise self.build_error
        encoding = EncodingConfig(
            ffmpeg_path=ffmpeg_path,
            input_dir=config.output_path,
            output_file=(output_dir or config.output_path) / video_file_name(config, extension),
            frame_rate=frame_rate,
            codec=codec,
            image_pattern=image_pattern,
        )
        self.built.append(encoding)
        return encoding

    def run(self, config):
        if self.run_error:
            raise self.run_error
        self.ran.append(config)


class DeferredSpawner:
    """Collects job targets instead of starting threads; run them on demand."""

    def __init__(self):
        self.pending = []

    def __call__(self, target, name):
        self.pending.append((name, target))

    def run_all(self):
        while self.pending:
            _, target = self.pending.pop(0)
            target()


@pytest.fixture
def fake_migration():
    return FakeMigrationEngine()


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture
def make_migration():
    """Factory: make_migration({"location": "reason"}) fails those locations."""
    return FakeMigrationEngine


@pytest.fixture
def make_encoder():
    return FakeEncoder


@pytest.fixture
def spawner():
    return DeferredSpawner()

# ============================================================================
# EventBus / Orchestrator Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()


@pytest.fixture
def make_orchestrator(fake_migration, fake_encoder, spawner, event_bus):
    """Factory for an orchestrator wired to fakes and the deferred spawner."""
    def _make(migration=None, encoder=None, spawn=None, settings: Optional[JobSettings] = None):
        channel = ResultChannel()
        dispatcher = JobDispatcher(
            migration=migration or fake_migration,
            encoder=encoder or fake_encoder,
            channel=channel,
            spawn=spawn or spawner,
        )
        return BatchOrchestrator(
            registry=ItemRegistry(),
            dispatcher=dispatcher,
            channel=channel,
            settings=settings,
            event_bus=event_bus,
        )
    return _make
