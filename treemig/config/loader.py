import logging
import yaml
from pathlib import Path
from typing import Any, Dict
from pydantic import ValidationError
from treemig.config.models import AppConfig
from treemig.domain.errors import SettingsError
from treemig.domain.models import MigrationConfig

logger = logging.getLogger(__name__)

def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, 'r') as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"expected a mapping at the top level, got {type(data).__name__}")
    bad_keys = [key for key in data if not isinstance(key, str)]
    if bad_keys:
        raise ValueError(f"top-level keys must be strings, got {bad_keys[0]!r}")
    return data

def load_config(config_path: Path) -> AppConfig:
    """Loads YAML settings and parses them into the AppConfig Pydantic model."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        data = _read_yaml(config_path)
        config = AppConfig(**data)
    except (yaml.YAMLError, ValueError, ValidationError) as exc:
        raise SettingsError(f"Invalid settings file {config_path}: {exc}") from exc

    # A remembered encoder location may have disappeared since it was saved.
    ffmpeg_path = config.video.ffmpeg_path
    if ffmpeg_path is not None and not ffmpeg_path.exists():
        logger.warning(f"ffmpeg_path {ffmpeg_path} does not exist, ignoring it")
        config.video.ffmpeg_path = None

    return config

def load_job_config(config_path: Path) -> MigrationConfig:
    """Parses one migration job file.

    Relative source/output paths are resolved against the job file's folder.
    Raises OSError, yaml.YAMLError, ValueError or pydantic.ValidationError.
    """
    config_path = Path(config_path)
    data = _read_yaml(config_path)

    base_dir = config_path.parent
    for key in ("source_dir", "output_path"):
        value = data.get(key)
        if isinstance(value, str) and value and not Path(value).expanduser().is_absolute():
            data[key] = str(base_dir / value)
        elif isinstance(value, str):
            data[key] = str(Path(value).expanduser())

    data["config_file"] = config_path
    return MigrationConfig(**data)
