"""Pure state derivation for items and the whole batch.

Nothing here is cached on items: every tick re-derives both classifications
from (application state, config, outcome).
"""

from typing import Iterable, Optional, Union
from treemig.domain.errors import ConfigValidationError
from treemig.domain.models import AppState, Item, ItemState, JobOutcome, MigrationConfig

COMPLETED_STATES = (AppState.PROCESSING_DONE, AppState.PROCESSING_ERRORS)


def item_state(
    app_state: AppState,
    config: Union[MigrationConfig, ConfigValidationError, None],
    outcome: Optional[JobOutcome],
) -> ItemState:
    """Classifies one item; the first matching rule wins."""
    if outcome is not None and outcome.ok:
        return ItemState.PROCESSING_DONE
    if outcome is not None and not outcome.ok:
        return ItemState.PROCESSING_ERROR
    is_valid = isinstance(config, MigrationConfig)
    if is_valid and outcome is None and app_state == AppState.PROCESSING:
        return ItemState.PROCESSING
    if is_valid:
        return ItemState.VALID_CONFIG
    if isinstance(config, ConfigValidationError):
        return ItemState.INVALID_CONFIG
    return ItemState.UNKNOWN


def state_of(app_state: AppState, item: Item) -> ItemState:
    return item_state(app_state, item.config, item.outcome)


def next_app_state(prior: AppState, items: Iterable[Item]) -> AppState:
    """Derives the batch state for this tick from the state it had on entry.

    Processing ends once no item is in flight; errors win over a clean
    finish. A finished batch keeps its state while no valid item is waiting.
    Otherwise only config validity matters.
    """
    items = list(items)
    if not items:
        return AppState.INIT

    states = [state_of(prior, item) for item in items]

    if prior == AppState.PROCESSING:
        if ItemState.PROCESSING in states:
            return AppState.PROCESSING
        if ItemState.PROCESSING_ERROR in states:
            return AppState.PROCESSING_ERRORS
        return AppState.PROCESSING_DONE

    if prior in COMPLETED_STATES and ItemState.VALID_CONFIG not in states:
        return prior

    if ItemState.INVALID_CONFIG not in states:
        return AppState.VALID_CONFIGS
    return AppState.INVALID_CONFIGS
