# Play Status
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Persistent status indicator.

The indicator is the user-visible "now playing" line that lives outside
the core.  StateNotifier drives it through three calls:

    show(content)    — first update: create and make visible
    update(content)  — later updates: change text in place
    remove()         — shutdown

SystemdIndicator renders it as the unit's STATUS= line (visible in
``systemctl status``) and keeps the current content for the HTTP host.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Protocol

from .watchdog import sd_notify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndicatorContent:
    icon: str
    ongoing: bool
    ticker: str
    title: str
    body: str
    action: str

    def to_dict(self) -> dict:
        return {
            "icon": self.icon,
            "ongoing": self.ongoing,
            "ticker": self.ticker,
            "title": self.title,
            "body": self.body,
            "action": self.action,
        }


class StatusIndicator(Protocol):
    def show(self, content: IndicatorContent) -> None: ...

    def update(self, content: IndicatorContent) -> None: ...

    def remove(self) -> None: ...


class SystemdIndicator:
    """Status indicator backed by the systemd STATUS= line."""

    def __init__(self):
        self._lock = threading.Lock()
        self._content: IndicatorContent | None = None

    @property
    def content(self) -> IndicatorContent | None:
        with self._lock:
            return self._content

    def show(self, content: IndicatorContent):
        logger.info("Status indicator shown: %s", content.ticker)
        self._set(content)

    def update(self, content: IndicatorContent):
        logger.debug("Status indicator updated: %s", content.ticker)
        self._set(content)

    def remove(self):
        with self._lock:
            self._content = None
        sd_notify("STATUS=")
        logger.info("Status indicator removed")

    def _set(self, content: IndicatorContent):
        with self._lock:
            self._content = content
        sd_notify(f"STATUS={content.ticker}")
