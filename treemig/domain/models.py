from datetime import date
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from treemig.domain.errors import ConfigValidationError, MigrationError


class Codec(str, Enum):
    NONE = "none"
    H264 = "h264"
    PRORES = "prores"

    @property
    def label(self) -> str:
        return {"none": "None", "h264": "h.264", "prores": "Prores"}[self.value]


class AppState(str, Enum):
    INIT = "INIT"                            # empty registry
    INVALID_CONFIGS = "INVALID_CONFIGS"
    VALID_CONFIGS = "VALID_CONFIGS"          # all valid, awaiting processing
    PROCESSING = "PROCESSING"
    PROCESSING_DONE = "PROCESSING_DONE"
    PROCESSING_ERRORS = "PROCESSING_ERRORS"


class ItemState(str, Enum):
    INVALID_CONFIG = "INVALID_CONFIG"
    VALID_CONFIG = "VALID_CONFIG"
    PROCESSING = "PROCESSING"
    PROCESSING_DONE = "PROCESSING_DONE"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    UNKNOWN = "UNKNOWN"  # unreachable while registry invariants hold


class MigrationConfig(BaseModel):
    """One validated tree-migration job, parsed from a YAML job file."""

    model_config = ConfigDict(extra="forbid")

    source_dir: Path
    output_path: Path
    location: str = Field(min_length=1)
    camera: str = Field(min_length=1)
    start_date: date
    end_date: date
    config_file: Optional[Path] = None

    @field_validator("location", "camera")
    @classmethod
    def strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("source_dir")
    @classmethod
    def source_must_exist(cls, v: Path) -> Path:
        if not v.is_dir():
            raise ValueError(f"source directory does not exist: {v}")
        return v

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must be <= end_date")
        return self


class JobSettings(BaseModel):
    """Global settings captured for every job of a dispatch batch."""

    model_config = ConfigDict(frozen=True)

    video_enabled: bool = False
    codec: Codec = Codec.NONE
    ffmpeg_path: Optional[Path] = None
    video_output_dir: Optional[Path] = None
    frame_rate: int = Field(default=4, ge=1, le=25)
    video_extension: str = ".mov"
    image_pattern: str = "*.jpg"
    forest_green: bool = False

    @property
    def video_requested(self) -> bool:
        return self.video_enabled and self.codec != Codec.NONE and self.ffmpeg_path is not None


class JobOutcome(BaseModel):
    """Terminal result of one job. error is None on success."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    error: Optional[MigrationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Item(BaseModel):
    """One registered job file.

    path, config and generation are frozen; outcome is written once by the
    orchestrator when the job's signal is drained.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: Path = Field(frozen=True)
    config: Union[MigrationConfig, ConfigValidationError] = Field(frozen=True)
    generation: int = Field(frozen=True)
    outcome: Optional[JobOutcome] = None

    @property
    def is_valid(self) -> bool:
        return isinstance(self.config, MigrationConfig)


class ItemView(BaseModel):
    path: Path
    state: ItemState
    generation: int
    message: Optional[str] = None


class BatchSnapshot(BaseModel):
    app_state: AppState
    items: List[ItemView] = Field(default_factory=list)

    def count(self, state: ItemState) -> int:
        return sum(1 for item in self.items if item.state == state)
