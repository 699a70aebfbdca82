# Play Status
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
In-process broadcast channel.

Components register a callback for an action name; send() delivers the
payload to every callback registered for that action, on the sender's
thread.  A failing receiver is logged and skipped.

Usage:
    broadcaster = Broadcaster()
    broadcaster.register(STATUS_UPDATE, my_callback)
    broadcaster.send(STATUS_UPDATE, {"now_playing": {...}, "songs": [...]})
"""

import logging
import threading
from collections import defaultdict
from collections.abc import Callable

logger = logging.getLogger(__name__)

# Action carrying a serialized StateUpdate
STATUS_UPDATE = "playstatus.STATUS_UPDATE"

Receiver = Callable[[dict], None]


class Broadcaster:

    def __init__(self):
        self._lock = threading.Lock()
        self._receivers: dict[str, list[Receiver]] = defaultdict(list)

    def register(self, action: str, receiver: Receiver):
        with self._lock:
            self._receivers[action].append(receiver)
        logger.debug("Registered receiver for %s", action)

    def unregister(self, action: str, receiver: Receiver):
        with self._lock:
            receivers = self._receivers.get(action, [])
            if receiver in receivers:
                receivers.remove(receiver)

    def send(self, action: str, payload: dict) -> int:
        """Deliver *payload* to every receiver of *action*; returns how many ran cleanly."""
        with self._lock:
            receivers = list(self._receivers.get(action, []))

        delivered = 0
        for receiver in receivers:
            try:
                receiver(payload)
                delivered += 1
            except Exception:
                logger.exception("Broadcast receiver failed for %s", action)
        return delivered
