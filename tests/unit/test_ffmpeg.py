import subprocess
import pytest
from datetime import date
from pathlib import Path
from unittest.mock import patch, MagicMock
from treemig.domain.errors import EncodingConfigError, EncodingError
from treemig.domain.models import Codec, MigrationConfig
from treemig.infrastructure.ffmpeg import (
    EncodingConfig, FFmpegEncoder, build_encoding_config, resolve_ffmpeg_binary, video_file_name,
)


@pytest.fixture
def migrated(tmp_path):
    """A finished migration: source, output folder with images, ffmpeg binary."""
    source = tmp_path / "src"
    source.mkdir()
    output = tmp_path / "out"
    output.mkdir()
    ffmpeg = tmp_path / "bin" / "ffmpeg"
    ffmpeg.parent.mkdir()
    ffmpeg.write_text("")
    config = MigrationConfig(
        source_dir=source,
        output_path=output,
        location="North Ridge",
        camera="CAM-03",
        start_date=date(2023, 5, 1),
        end_date=date(2023, 6, 30),
    )
    return config, ffmpeg


def test_video_file_name(migrated):
    config, _ = migrated
    assert video_file_name(config) == "North Ridge-CAM-03-2023-05-01-2023-06-30.mov"
    assert video_file_name(config, ".mp4").endswith(".mp4")


def test_video_file_name_replaces_separators(migrated):
    config, _ = migrated
    config = config.model_copy(update={"location": "a/b", "camera": "c\\d"})
    assert video_file_name(config) == "a_b-c_d-2023-05-01-2023-06-30.mov"


def test_resolve_ffmpeg_binary_from_folder(migrated):
    _, ffmpeg = migrated
    assert resolve_ffmpeg_binary(ffmpeg.parent) == ffmpeg
    assert resolve_ffmpeg_binary(ffmpeg) == ffmpeg


def test_resolve_ffmpeg_binary_missing(tmp_path):
    with pytest.raises(EncodingConfigError):
        resolve_ffmpeg_binary(tmp_path / "nothing")
    with pytest.raises(EncodingConfigError, match="no ffmpeg binary"):
        resolve_ffmpeg_binary(tmp_path)


def test_build_encoding_config_defaults_to_migrated_folder(migrated):
    config, ffmpeg = migrated
    encoding = build_encoding_config(config, ffmpeg, Codec.H264, 4)

    assert encoding.input_dir == config.output_path
    assert encoding.output_file == config.output_path / "North Ridge-CAM-03-2023-05-01-2023-06-30.mov"
    assert encoding.ffmpeg_path == ffmpeg


def test_build_encoding_config_explicit_output_dir(migrated, tmp_path):
    config, ffmpeg = migrated
    videos = tmp_path / "videos"
    videos.mkdir()

    encoding = build_encoding_config(config, ffmpeg, Codec.PRORES, 25, output_dir=videos, extension=".mkv")

    assert encoding.output_file.parent == videos
    assert encoding.output_file.suffix == ".mkv"
    assert encoding.frame_rate == 25


@pytest.mark.parametrize("codec, frame_rate, match", [
    (Codec.NONE, 4, "no video codec"),
    (Codec.H264, 0, "frame rate"),
    (Codec.H264, 26, "frame rate"),
])
def test_build_encoding_config_rejects_settings(migrated, codec, frame_rate, match):
    config, ffmpeg = migrated
    with pytest.raises(EncodingConfigError, match=match):
        build_encoding_config(config, ffmpeg, codec, frame_rate)


def test_build_encoding_config_missing_folders(migrated, tmp_path):
    config, ffmpeg = migrated
    with pytest.raises(EncodingConfigError, match="video output folder"):
        build_encoding_config(config, ffmpeg, Codec.H264, 4, output_dir=tmp_path / "nope")

    config = config.model_copy(update={"output_path": tmp_path / "never-migrated"})
    with pytest.raises(EncodingConfigError, match="migrated image folder"):
        build_encoding_config(config, ffmpeg, Codec.H264, 4)


def make_encoding(codec=Codec.H264):
    return EncodingConfig(
        ffmpeg_path=Path("/usr/bin/ffmpeg"),
        input_dir=Path("/data/out"),
        output_file=Path("/data/out/video.mov"),
        frame_rate=8,
        codec=codec,
    )


def test_ffmpeg_command_generation_h264():
    cmd = FFmpegEncoder()._build_command(make_encoding())

    assert cmd[0] == "/usr/bin/ffmpeg"
    assert cmd[cmd.index("-framerate") + 1] == "8"
    assert cmd[cmd.index("-i") + 1] == "/data/out/*.jpg"
    assert "libx264" in cmd
    assert cmd[-1] == "/data/out/video.mov"


def test_ffmpeg_command_generation_prores():
    cmd = FFmpegEncoder()._build_command(make_encoding(Codec.PRORES))
    assert "prores_ks" in cmd
    assert "yuv422p10le" in cmd


def test_ffmpeg_run_success():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value = MagicMock(returncode=0, stderr="")
        FFmpegEncoder().run(make_encoding())
        assert mock_run.called


def test_ffmpeg_run_failure():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value = MagicMock(returncode=1, stderr="frame=0\nUnknown encoder 'prores_ks'\n")
        with pytest.raises(EncodingError) as exc_info:
            FFmpegEncoder().run(make_encoding())

    assert exc_info.value.returncode == 1
    assert "Unknown encoder 'prores_ks'" in str(exc_info.value)


def test_ffmpeg_run_cannot_start():
    with patch("subprocess.run", side_effect=PermissionError("denied")):
        with pytest.raises(EncodingError, match="Cannot start ffmpeg"):
            FFmpegEncoder().run(make_encoding())


def test_build_config_delegates(migrated):
    config, ffmpeg = migrated
    encoding = FFmpegEncoder().build_config(config, ffmpeg, Codec.H264, 4)
    assert encoding.codec == Codec.H264
