from __future__ import annotations

from typing import Optional, Tuple

from selection_state import SelectionState
from widget_config import StepDefinition, WidgetConfiguration


def visible_order(config: WidgetConfiguration) -> Tuple[str, ...]:
    """
    Customer-facing step order: `step_order` minus background route-calculation steps.
    """
    return tuple(key for key in config.step_order if not config.steps[key].is_route_calculation)


class StepSequencer:
    """
    Index arithmetic over the visible step order.

    The order is computed once from the (immutable) configuration; navigation only
    ever moves one step at a time and never reorders or skips steps.
    """

    def __init__(self, config: WidgetConfiguration) -> None:
        self._config = config
        self._order = visible_order(config)
        self._index = 0

    @property
    def order(self) -> Tuple[str, ...]:
        return self._order

    @property
    def index(self) -> int:
        return self._index

    @property
    def current_step_key(self) -> Optional[str]:
        if 0 <= self._index < len(self._order):
            return self._order[self._index]
        return None

    @property
    def current_step(self) -> Optional[StepDefinition]:
        key = self.current_step_key
        return self._config.steps.get(key) if key is not None else None

    @property
    def has_next(self) -> bool:
        return self._index < len(self._order) - 1

    @property
    def has_previous(self) -> bool:
        return self._index > 0

    @property
    def is_last_step(self) -> bool:
        return bool(self._order) and self._index == len(self._order) - 1

    def can_advance(self, selections: SelectionState) -> bool:
        if not self.has_next:
            return False
        return self.is_step_satisfied(selections) or not self._requires_answer()

    def is_step_satisfied(self, selections: SelectionState) -> bool:
        step = self.current_step
        key = self.current_step_key
        if step is None or key is None:
            return False
        return selections.has_answer(key)

    def _requires_answer(self) -> bool:
        step = self.current_step
        if step is None:
            return True
        return step.validation.required

    def advance(self, selections: SelectionState) -> bool:
        if not self.can_advance(selections):
            return False
        self._index += 1
        return True

    def retreat(self) -> bool:
        if not self.has_previous:
            return False
        self._index -= 1
        return True

    def reset(self) -> None:
        self._index = 0
