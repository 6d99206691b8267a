import logging
import yaml
from pathlib import Path
from pydantic import ValidationError
from treemig.config.loader import load_job_config
from treemig.domain.errors import ConfigValidationError
from treemig.domain.models import MigrationConfig


class JobConfigParser:
    """Turns a dropped path into a validated MigrationConfig.

    Every failure (missing file, unreadable file, bad YAML, schema error) is
    raised as ConfigValidationError with a message meant for the item table.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _format_validation_error(exc: ValidationError) -> str:
        parts = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ())) or "config"
            parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
        return "; ".join(parts)

    def validate(self, path: Path) -> MigrationConfig:
        path = Path(path)
        if path.is_dir():
            raise ConfigValidationError(path, "is a directory, expected a config file")
        if not path.exists():
            raise ConfigValidationError(path, "file does not exist")

        try:
            config = load_job_config(path)
        except ValidationError as exc:
            reason = self._format_validation_error(exc)
        except yaml.YAMLError as exc:
            reason = f"YAML parse error: {exc}"
        except (OSError, UnicodeDecodeError) as exc:
            reason = f"cannot read file: {exc}"
        except ValueError as exc:
            reason = str(exc)
        else:
            self.logger.debug(f"VALIDATE: {path} ok ({config.location}/{config.camera})")
            return config

        self.logger.info(f"VALIDATE: {path} invalid: {reason}")
        raise ConfigValidationError(path, reason)
