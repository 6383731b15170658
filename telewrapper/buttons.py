"""
Button Bridge — Maps inline-button callback data to handlers.

Identifiers are opaque strings. ``mint`` creates a fresh identifier per
button so application code can attach a closure to a button without
naming it. Nothing is persisted: after a restart every previously issued
identifier is unknown and falls through to the dispatcher's
unknown-button path.
"""

import itertools
import logging
import time
from typing import Dict, List, Optional

from telegram import InlineKeyboardButton

from telewrapper.routing.handlers import ButtonCallback, ButtonRoute

logger = logging.getLogger(__name__)


class ButtonBridge:
    """Registry of button routes keyed by callback data."""

    def __init__(self):
        self._routes: Dict[str, ButtonRoute] = {}
        self._counter = itertools.count(1)

    def __len__(self) -> int:
        return len(self._routes)

    def __contains__(self, button_id: str) -> bool:
        return button_id in self._routes

    def register(self, button_id: str, callback: ButtonCallback) -> ButtonRoute:
        """Register a button handler, replacing any previous one with the same id."""
        if button_id in self._routes:
            logger.debug(f"[BUTTONS] Replacing handler for {button_id}")
        route = ButtonRoute(button_id=button_id, callback=callback)
        self._routes[button_id] = route
        return route

    def get(self, button_id: Optional[str]) -> Optional[ButtonRoute]:
        if button_id is None:
            return None
        return self._routes.get(button_id)

    def next_id(self) -> str:
        return f"btn_{next(self._counter)}_t{int(time.time() * 1000)}"

    def mint(self, label: str, action: ButtonCallback) -> InlineKeyboardButton:
        """Create an inline button whose press runs ``action``."""
        data = self.next_id()
        self.register(data, action)
        return InlineKeyboardButton(text=label, callback_data=data)

    def ids(self) -> List[str]:
        return list(self._routes)
