import itertools
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional
from treemig.domain.errors import ConfigValidationError
from treemig.domain.models import Item, JobOutcome
from treemig.infrastructure.config_parser import JobConfigParser


class ItemRegistry:
    """Registered job files keyed by path.

    Not thread-safe: only the orchestrator's control thread touches it.
    Generations keep increasing across `clear()`, so a signal from a job
    started for an earlier registration of the same path never matches the
    current item.
    """

    def __init__(self, parser: Optional[JobConfigParser] = None):
        self.parser = parser or JobConfigParser()
        self.logger = logging.getLogger(__name__)
        self._items: Dict[Path, Item] = {}
        self._generations = itertools.count(1)

    def register(self, path: Path) -> Item:
        path = Path(path)
        try:
            config = self.parser.validate(path)
        except ConfigValidationError as exc:
            config = exc

        item = Item(path=path, config=config, generation=next(self._generations))
        if path in self._items:
            self.logger.info(f"REGISTER: {path} replaces generation {self._items[path].generation}")
        self._items[path] = item
        return item

    def get(self, path: Path) -> Optional[Item]:
        return self._items.get(Path(path))

    def items(self) -> List[Item]:
        return list(self._items.values())

    def clear(self) -> int:
        removed = len(self._items)
        self._items.clear()
        return removed

    def mark_outcome(self, path: Path, generation: int, outcome: JobOutcome) -> bool:
        """Applies a job outcome; returns False when the signal is stale."""
        item = self._items.get(Path(path))
        if item is None:
            self.logger.debug(f"SIGNAL_DROPPED: {path} no longer registered")
            return False
        if item.generation != generation:
            self.logger.debug(
                f"SIGNAL_DROPPED: {path} generation {generation} != current {item.generation}"
            )
            return False
        if item.outcome is not None:
            self.logger.warning(f"SIGNAL_DROPPED: {path} already has an outcome")
            return False
        item.outcome = outcome
        return True

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, path) -> bool:
        return Path(path) in self._items

    def __iter__(self) -> Iterator[Item]:
        return iter(self.items())
