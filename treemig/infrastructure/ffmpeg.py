import logging
import subprocess
import time
from pathlib import Path
from typing import List, Optional, Protocol
from pydantic import BaseModel, Field
from treemig.domain.errors import EncodingConfigError, EncodingError
from treemig.domain.models import Codec, MigrationConfig

CODEC_ARGS = {
    Codec.H264: ["-c:v", "libx264", "-pix_fmt", "yuv420p"],
    Codec.PRORES: ["-c:v", "prores_ks", "-profile:v", "3", "-pix_fmt", "yuv422p10le"],
}


class EncodingConfig(BaseModel):
    ffmpeg_path: Path
    input_dir: Path
    output_file: Path
    frame_rate: int = Field(ge=1, le=25)
    codec: Codec
    image_pattern: str = "*.jpg"


class VideoEncoder(Protocol):
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
        """Raises EncodingConfigError."""
        ...

    def run(self, config: EncodingConfig) -> None:
        """Raises EncodingError."""
        ...


def video_file_name(config: MigrationConfig, extension: str = ".mov") -> str:
    """`<location>-<camera>-<start>-<end><ext>`, with path separators replaced."""
    parts = [config.location, config.camera, config.start_date.isoformat(), config.end_date.isoformat()]
    stem = "-".join(part.replace("/", "_").replace("\\", "_") for part in parts)
    return stem + extension


def resolve_ffmpeg_binary(ffmpeg_path: Path) -> Path:
    """Accepts either the ffmpeg executable or the folder that holds it."""
    ffmpeg_path = Path(ffmpeg_path)
    if ffmpeg_path.is_dir():
        for name in ("ffmpeg", "ffmpeg.exe"):
            candidate = ffmpeg_path / name
            if candidate.is_file():
                return candidate
        raise EncodingConfigError(f"no ffmpeg binary in {ffmpeg_path}")
    if not ffmpeg_path.is_file():
        raise EncodingConfigError(f"ffmpeg binary not found: {ffmpeg_path}")
    return ffmpeg_path


def build_encoding_config(
    config: MigrationConfig,
    ffmpeg_path: Path,
    codec: Codec,
    frame_rate: int,
    output_dir: Optional[Path] = None,
    extension: str = ".mov",
    image_pattern: str = "*.jpg",
) -> EncodingConfig:
    """Derives the video job for a finished migration.

    The migrated images in `config.output_path` are the input. Without an
    explicit output_dir the video is written next to them.
    """
    if codec == Codec.NONE:
        raise EncodingConfigError("no video codec selected")
    if not 1 <= frame_rate <= 25:
        raise EncodingConfigError(f"frame rate {frame_rate} outside 1..25")

    binary = resolve_ffmpeg_binary(ffmpeg_path)

    input_dir = Path(config.output_path)
    if not input_dir.is_dir():
        raise EncodingConfigError(f"migrated image folder does not exist: {input_dir}")

    target_dir = Path(output_dir) if output_dir is not None else input_dir
    if not target_dir.is_dir():
        raise EncodingConfigError(f"video output folder does not exist: {target_dir}")

    return EncodingConfig(
        ffmpeg_path=binary,
        input_dir=input_dir,
        output_file=target_dir / video_file_name(config, extension),
        frame_rate=frame_rate,
        codec=codec,
        image_pattern=image_pattern,
    )


class FFmpegEncoder:
    """Wrapper around ffmpeg turning a folder of images into one video."""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.logger = logging.getLogger(__name__)

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
        return build_encoding_config(
            config, ffmpeg_path, codec, frame_rate,
            output_dir=output_dir, extension=extension, image_pattern=image_pattern,
        )

    def _build_command(self, config: EncodingConfig) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        cmd = [
            str(config.ffmpeg_path),
            "-y",  # Overwrite output files
            "-framerate", str(config.frame_rate),
            "-pattern_type", "glob",
            "-i", str(config.input_dir / config.image_pattern),
        ]
        cmd.extend(CODEC_ARGS[config.codec])
        cmd.append(str(config.output_file))
        return cmd

    def run(self, config: EncodingConfig) -> None:
        filename = config.output_file.name
        cmd = self._build_command(config)
        if self.debug:
            self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")

        start_time = time.monotonic()
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as exc:
            raise EncodingError(f"Cannot start ffmpeg: {exc}") from exc

        elapsed = time.monotonic() - start_time
        if result.returncode != 0:
            lines = [line for line in (result.stderr or "").splitlines() if line.strip()]
            detail = lines[-1].strip() if lines else "no output"
            raise EncodingError(
                f"ffmpeg exited with code {result.returncode} for {filename}: {detail}",
                returncode=result.returncode,
            )

        self.logger.info(f"FFMPEG_DONE: {filename} elapsed={elapsed:.2f}s")
