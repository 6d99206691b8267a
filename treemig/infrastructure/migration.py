import logging
import subprocess
import time
from typing import List, Optional, Protocol
from treemig.domain.errors import MigrationError
from treemig.domain.models import MigrationConfig


class MigrationEngine(Protocol):
    def run(self, config: MigrationConfig, forest_green: bool = False) -> None:
        """Migrates one image tree. Raises MigrationError on failure."""
        ...


class TreeMigrationAdapter:
    """Wrapper around the external tree-migration binary."""

    def __init__(self, binary: str = "tree-migration", debug: bool = False):
        self.binary = binary
        self.debug = debug
        self.logger = logging.getLogger(__name__)

    def _build_command(self, config: MigrationConfig, forest_green: bool = False) -> List[str]:
        """Constructs the tree-migration command line arguments."""
        cmd = [
            self.binary,
            "--source", str(config.source_dir),
            "--output", str(config.output_path),
            "--location", config.location,
            "--camera", config.camera,
            "--start-date", config.start_date.isoformat(),
            "--end-date", config.end_date.isoformat(),
        ]
        if forest_green:
            cmd.append("--forest-green")
        return cmd

    @staticmethod
    def _last_line(text: Optional[str]) -> str:
        lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
        return lines[-1] if lines else ""

    def run(self, config: MigrationConfig, forest_green: bool = False) -> None:
        name = f"{config.location}/{config.camera}"
        cmd = self._build_command(config, forest_green)
        if self.debug:
            self.logger.debug(f"MIGRATION_CMD: {' '.join(cmd)}")

        start_time = time.monotonic()
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise MigrationError(f"Migration binary not found: {self.binary}") from exc
        except OSError as exc:
            raise MigrationError(f"Cannot start migration: {exc}") from exc

        elapsed = time.monotonic() - start_time
        if result.returncode != 0:
            detail = self._last_line(result.stderr) or self._last_line(result.stdout)
            reason = f"tree-migration exited with code {result.returncode}"
            if detail:
                reason = f"{reason}: {detail}"
            self.logger.error(f"MIGRATION_FAILED: {name} ({reason}) elapsed={elapsed:.2f}s")
            raise MigrationError(reason, returncode=result.returncode)

        self.logger.info(f"MIGRATION_DONE: {name} elapsed={elapsed:.2f}s")
