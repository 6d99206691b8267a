from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from treemig.domain.models import Codec, JobSettings

class GeneralConfig(BaseModel):
    migration_binary: str = "tree-migration"
    forest_green: bool = False
    tick_seconds: float = Field(default=0.25, gt=0, le=5.0)
    log_path: Optional[str] = None
    debug: bool = False

class VideoConfig(BaseModel):
    """Optional image-sequence-to-video step run after a successful migration."""
    enabled: bool = False
    codec: Codec = Codec.NONE
    ffmpeg_path: Optional[Path] = None
    output_dir: Optional[Path] = None
    frame_rate: int = Field(default=4, ge=1, le=25)
    extension: str = ".mov"
    image_pattern: str = "*.jpg"

    @field_validator("extension")
    @classmethod
    def normalize_extension(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("extension must not be empty")
        return v if v.startswith(".") else f".{v}"

class UiConfig(BaseModel):
    """UI display configuration."""
    activity_feed_max_items: int = Field(default=5, ge=1, le=20)
    refresh_per_second: int = Field(default=4, ge=1, le=30)

class DemoConfig(BaseModel):
    """Simulated engines for --demo runs (no external binaries needed)."""
    seed: Optional[int] = None
    failure_rate: float = Field(default=0.2, ge=0.0, le=1.0)
    video_failure_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    min_delay_s: float = Field(default=0.5, ge=0.0)
    max_delay_s: float = Field(default=3.0, ge=0.0)

    @model_validator(mode="after")
    def validate_delays(self):
        if self.max_delay_s < self.min_delay_s:
            raise ValueError("max_delay_s must be >= min_delay_s")
        return self

class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    video: VideoConfig = Field(default_factory=VideoConfig)
    ui: UiConfig = Field(default_factory=UiConfig)
    demo: DemoConfig = Field(default_factory=DemoConfig)

    def job_settings(self) -> JobSettings:
        return JobSettings(
            video_enabled=self.video.enabled,
            codec=self.video.codec,
            ffmpeg_path=self.video.ffmpeg_path,
            video_output_dir=self.video.output_dir,
            frame_rate=self.video.frame_rate,
            video_extension=self.video.extension,
            image_pattern=self.video.image_pattern,
            forest_green=self.general.forest_green,
        )
