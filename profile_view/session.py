"""
session.py

An analysis session: the current immutable state, the reducer that
advances it, and the per-thread selector table sized to the loaded profile.
"""

import logging

from . import actions
from .reducers import State, reduce
from .selectors import ProfileSelectors, SelectedThreadSelectors, ThreadSelectors, build_selector_table

logger = logging.getLogger(__name__)


class AnalysisSession:
    def __init__(self, state: State = None):
        self.state = state if state is not None else State()
        self.profile_selectors = ProfileSelectors()
        self._selector_table = ()
        if self.state.profile_view.profile is not None:
            self._rebuild_selector_table()
        self.selected_thread = SelectedThreadSelectors(
            lambda state: self._selector_table, self.profile_selectors)

    def _rebuild_selector_table(self):
        thread_count = len(self.state.profile_view.profile.threads)
        self._selector_table = build_selector_table(thread_count, self.profile_selectors)
        logger.info("built selectors for %d threads", thread_count)

    def dispatch(self, action) -> State:
        self.state = reduce(self.state, action)
        if isinstance(action, actions.ReceiveProfile):
            self._rebuild_selector_table()
        return self.state

    def selectors_for_thread(self, thread_index: int) -> ThreadSelectors:
        if not 0 <= thread_index < len(self._selector_table):
            raise IndexError(f"no thread {thread_index} in the loaded profile")
        return self._selector_table[thread_index]

    def select(self, selector, thread_index: int = None):
        """Evaluate a selector (or the name of a per-thread one) against the current state."""
        if isinstance(selector, str):
            if thread_index is None:
                selector = getattr(self.selected_thread, selector)
            else:
                selector = getattr(self.selectors_for_thread(thread_index), selector)
        return selector(self.state)
