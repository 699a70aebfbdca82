# Play Status
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
StatusCore — ties subscription, parsing, state and notification together.

    Idle ──start(key)──▶ Active ──stop()──▶ Idle

While Active, every inbound payload is parsed; an accepted StateUpdate
replaces the stored one and is handed to the notifier.  Payloads that do
not parse change nothing.  Switching keys while Active keeps the last
state until the new subscription delivers its first event.
"""

import logging
import threading

from .models import StateUpdate
from .notifier import StateNotifier
from .parser import parse_event
from .subscription import SerialWorker, SubscriptionManager, Transport

logger = logging.getLogger(__name__)


class StatusCore:

    def __init__(self, transport: Transport, notifier: StateNotifier,
                 worker: SerialWorker | None = None):
        self._notifier = notifier
        self._subscriptions = SubscriptionManager(transport, self, worker)
        # Guards state + indicator as one unit; transports may call from any thread
        self._lock = threading.Lock()
        self._active = False
        self._state: StateUpdate | None = None

    @property
    def active(self) -> bool:
        return self._active

    @property
    def credential(self) -> str | None:
        return self._subscriptions.active_credential

    @property
    def state(self) -> StateUpdate | None:
        return self._state

    @property
    def subscriptions(self) -> SubscriptionManager:
        return self._subscriptions

    def start(self, credential: str):
        """Subscribe with *credential*, replacing any other key."""
        if not credential:
            logger.warning("start() called without an application key")
            return
        with self._lock:
            self._subscriptions.ensure(credential)
            self._active = True

    def stop(self):
        """Drop the subscription and the status indicator.  Safe to repeat."""
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._subscriptions.shutdown()
            self._notifier.clear()
            self._state = None
        logger.info("Status tracking stopped")

    def close(self):
        """Stop and shut down the background worker."""
        self.stop()
        self._subscriptions.close()

    def on_event(self, payload):
        """Handle one raw payload from the transport."""
        with self._lock:
            if not self._active:
                logger.debug("Ignoring event while idle")
                return
            update = parse_event(payload)
            if update is None:
                return
            self._state = update
            logger.info("Now playing: %s - %s (%d queued)",
                        update.playing.artist, update.playing.name,
                        len(update.queued))
            self._notifier.show(update)
        # Outside the lock: receivers may call start()/stop()
        self._notifier.broadcast(update)
