"""
Common plumbing for store slices.

A slice owns one frozen state snapshot. Mutators build a complete replacement
and commit it in one assignment, so a reader either sees the old snapshot or
the new one, never something in between.
"""

import logging
from typing import Callable, Optional

from pydantic import BaseModel

logger = logging.getLogger("store")

ChangeListener = Callable[[str], None]


class Slice:
    """
    Base class for the cart, products and UI slices.

    Subclasses set `name` and pass their initial state to __init__.
    """

    name = "slice"

    def __init__(self, initial_state: BaseModel, on_change: Optional[ChangeListener] = None):
        self._initial_state = initial_state
        self._state = initial_state
        self._on_change = on_change

    @property
    def state(self):
        """The current snapshot. Frozen; use the mutators to change it."""
        return self._state

    def _commit(self, new_state):
        self._state = new_state
        if self._on_change is not None:
            self._on_change(self.name)
        return new_state

    def _update(self, **changes):
        return self._commit(self._state.model_copy(update=changes))

    def set_loading(self, is_loading: bool):
        return self._update(is_loading=is_loading)

    def set_error(self, error: Optional[str]):
        if error:
            logger.warning(f"[{self.name}] error set: {error}")
        return self._update(error=error)

    def clear_error(self):
        return self._update(error=None)

    def reset(self):
        """Return to the initial state (test isolation, logout)."""
        return self._commit(self._initial_state)
