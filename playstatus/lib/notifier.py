# Play Status
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
StateNotifier — fans each accepted StateUpdate out to the two sinks.

1. One broadcast on STATUS_UPDATE per update, always, carrying the full
   serialized state.
2. The persistent status indicator: shown on the first update, updated in
   place afterwards, removed by clear().  An update whose rendered text is
   identical to what is already displayed is not re-sent.

Wording is configuration ("notification" section), not logic:

    ticker  = ticker_template.format(name, artist)
    title   = name
    body    = content_template.format(artist, album)
"""

import logging

from .broadcast import STATUS_UPDATE, Broadcaster
from .indicator import IndicatorContent, StatusIndicator
from .models import StateUpdate

logger = logging.getLogger(__name__)

DEFAULT_ICON = "playstatus"
DEFAULT_TICKER = "{0} by {1}"
DEFAULT_CONTENT = "{0} - {1}"
DEFAULT_ACTION = "http://localhost:8780/"


class StateNotifier:

    def __init__(self, broadcaster: Broadcaster, indicator: StatusIndicator,
                 ticker_template: str = DEFAULT_TICKER,
                 content_template: str = DEFAULT_CONTENT,
                 icon: str = DEFAULT_ICON,
                 action: str = DEFAULT_ACTION):
        self._broadcaster = broadcaster
        self._indicator = indicator
        self._ticker_template = ticker_template
        self._content_template = content_template
        self._icon = icon
        self._action = action
        self._shown: IndicatorContent | None = None

    @property
    def indicator_visible(self) -> bool:
        return self._shown is not None

    def render(self, update: StateUpdate) -> IndicatorContent:
        """Build indicator content for the playing track of *update*."""
        song = update.playing
        return IndicatorContent(
            icon=self._icon,
            ongoing=True,
            ticker=self._ticker_template.format(song.name, song.artist),
            title=song.name,
            body=self._content_template.format(song.artist, song.album),
            action=self._action,
        )

    def notify(self, update: StateUpdate):
        self.show(update)
        self.broadcast(update)

    def show(self, update: StateUpdate):
        """Bring the indicator in line with *update*."""
        try:
            self._update_indicator(update)
        except Exception:
            logger.exception("Status indicator update failed")

    def broadcast(self, update: StateUpdate):
        """Send *update* on STATUS_UPDATE.  Receivers run on the calling thread."""
        try:
            self._broadcaster.send(STATUS_UPDATE, update.to_dict())
        except Exception:
            logger.exception("Status broadcast failed")

    def clear(self):
        """Remove the indicator if it is showing."""
        if self._shown is None:
            return
        self._shown = None
        try:
            self._indicator.remove()
        except Exception:
            logger.exception("Status indicator removal failed")

    def _update_indicator(self, update: StateUpdate):
        content = self.render(update)
        if self._shown is None:
            self._indicator.show(content)
        elif content != self._shown:
            self._indicator.update(content)
        else:
            return
        self._shown = content
