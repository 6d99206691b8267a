import pytest
import yaml
from pathlib import Path
from treemig.config.loader import load_config, load_job_config
from treemig.config.models import AppConfig, DemoConfig, VideoConfig
from treemig.domain.errors import SettingsError
from treemig.domain.models import Codec


def write_yaml(path: Path, data) -> Path:
    with open(path, "w") as f:
        yaml.safe_dump(data, f)
    return path


def test_defaults():
    config = AppConfig()
    assert config.general.migration_binary == "tree-migration"
    assert config.general.tick_seconds == 0.25
    assert config.video.enabled is False
    assert config.video.frame_rate == 4
    assert config.ui.activity_feed_max_items == 5


def test_load_config_reads_sections(tmp_path):
    ffmpeg = tmp_path / "ffmpeg"
    ffmpeg.write_text("")
    path = write_yaml(tmp_path / "treemig.yaml", {
        "general": {"forest_green": True, "migration_binary": "/opt/tm"},
        "video": {"enabled": True, "codec": "h264", "ffmpeg_path": str(ffmpeg), "frame_rate": 12},
    })

    config = load_config(path)

    assert config.general.forest_green is True
    assert config.general.migration_binary == "/opt/tm"
    assert config.video.codec == Codec.H264
    assert config.video.ffmpeg_path == ffmpeg
    assert config.video.frame_rate == 12


def test_load_config_empty_file(tmp_path):
    path = tmp_path / "treemig.yaml"
    path.write_text("")
    assert load_config(path) == AppConfig()


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_load_config_drops_stale_ffmpeg_path(tmp_path, caplog):
    path = write_yaml(tmp_path / "treemig.yaml", {"video": {"ffmpeg_path": str(tmp_path / "gone")}})

    config = load_config(path)

    assert config.video.ffmpeg_path is None
    assert "does not exist" in caplog.text


@pytest.mark.parametrize("content", [
    "general: [unclosed",
    "- just\n- a list\n",
    "video:\n  frame_rate: 60\n",
    "general:\n  tick_seconds: 0\n",
])
def test_load_config_invalid_content(tmp_path, content):
    path = tmp_path / "treemig.yaml"
    path.write_text(content)
    with pytest.raises(SettingsError):
        load_config(path)


def test_video_extension_normalized():
    assert VideoConfig(extension="mp4").extension == ".mp4"
    assert VideoConfig(extension=".mkv").extension == ".mkv"


def test_demo_delays_validated():
    with pytest.raises(ValueError):
        DemoConfig(min_delay_s=2.0, max_delay_s=1.0)


def test_job_settings_from_config(tmp_path):
    config = AppConfig()
    config.video.enabled = True
    config.video.codec = Codec.PRORES
    config.video.output_dir = tmp_path
    config.general.forest_green = True

    settings = config.job_settings()

    assert settings.video_enabled is True
    assert settings.codec == Codec.PRORES
    assert settings.video_output_dir == tmp_path
    assert settings.forest_green is True
    assert settings.video_requested is False  # no ffmpeg configured


def test_load_job_config_resolves_relative_paths(tmp_path):
    jobs = tmp_path / "jobs"
    (jobs / "images").mkdir(parents=True)
    job_file = write_yaml(jobs / "ridge.yaml", {
        "source_dir": "images",
        "output_path": "migrated",
        "location": "ridge",
        "camera": "CAM-02",
        "start_date": "2023-05-01",
        "end_date": "2023-05-31",
    })

    config = load_job_config(job_file)

    assert config.source_dir == jobs / "images"
    assert config.output_path == jobs / "migrated"
    assert config.config_file == job_file


def test_load_job_config_keeps_absolute_paths(tmp_path):
    source = tmp_path / "abs-src"
    source.mkdir()
    job_file = write_yaml(tmp_path / "job.yaml", {
        "source_dir": str(source),
        "output_path": str(tmp_path / "abs-out"),
        "location": "ridge",
        "camera": "CAM-02",
        "start_date": "2023-05-01",
        "end_date": "2023-05-31",
    })

    config = load_job_config(job_file)

    assert config.source_dir == source
    assert config.output_path == tmp_path / "abs-out"


def test_load_config_non_string_keys(tmp_path):
    path = tmp_path / "treemig.yaml"
    path.write_text("1: foo\ngeneral:\n  debug: true\n")
    with pytest.raises(SettingsError, match="top-level keys must be strings"):
        load_config(path)
