# Play Status
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Subscription lifecycle — one live jukebox subscription per application key.

SubscriptionManager keeps at most one subscription bound to the active
application key.  Changing the key tears the old subscription down and
establishes a new one.  Both steps run on a SerialWorker, a single thread
draining a FIFO queue, so the caller never blocks and teardown always runs
before the establishment queued after it.

Transport contract (implemented by lib.transport.MqttTransport, or a fake
in tests):

    class MyTransport:
        def subscribe(self, credential, listener) -> Subscription: ...

    class MySubscription:
        def disconnect(self) -> None: ...

The listener passed to subscribe() has a single method,
``on_event(payload)``, called once per inbound message on whatever thread
the transport chooses.
"""

import logging
import queue
import threading
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class EventListener(Protocol):
    def on_event(self, payload) -> None: ...


class Subscription(Protocol):
    def disconnect(self) -> None: ...


class Transport(Protocol):
    def subscribe(self, credential: str, listener: EventListener) -> Subscription: ...


class SerialWorker:
    """Single background thread running submitted callables in FIFO order."""

    _STOP = object()

    def __init__(self, name: str = "playstatus-worker"):
        self._queue: queue.Queue = queue.Queue()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def submit(self, task: Callable[[], None]):
        """Queue *task*; returns immediately."""
        self._queue.put(task)

    def join(self):
        """Block until every task queued so far has run."""
        self._queue.join()

    def close(self, timeout: float | None = 5.0):
        """Run what is already queued, then stop the thread."""
        if not self._thread.is_alive():
            return
        self._queue.put(self._STOP)
        self._thread.join(timeout)

    def _run(self):
        while True:
            task = self._queue.get()
            try:
                if task is self._STOP:
                    return
                task()
            except Exception:
                logger.exception("Background task failed")
            finally:
                self._queue.task_done()


class _Binding:
    """One subscription attempt for one application key."""

    def __init__(self, credential: str):
        self.credential = credential
        self.subscription: Subscription | None = None


class _BindingListener:
    """Forwards events for one binding, only while it is the active one."""

    def __init__(self, manager: "SubscriptionManager", binding: _Binding,
                 listener: EventListener):
        self._manager = manager
        self._binding = binding
        self._listener = listener

    def on_event(self, payload):
        if not self._manager._is_active(self._binding):
            logger.debug("Dropping event for retired key %s", self._binding.credential)
            return
        self._listener.on_event(payload)


class SubscriptionManager:
    """Owns the active application key and its single subscription."""

    def __init__(self, transport: Transport, listener: EventListener,
                 worker: SerialWorker | None = None):
        self._transport = transport
        self._listener = listener
        self._worker = worker or SerialWorker()
        self._lock = threading.Lock()
        self._binding: _Binding | None = None

    @property
    def active_credential(self) -> str | None:
        with self._lock:
            return self._binding.credential if self._binding else None

    def ensure(self, credential: str) -> bool:
        """Make sure a subscription for *credential* is live.

        Returns True when a (re)subscription was queued, False when the key
        is empty or already active.
        """
        if not credential:
            logger.warning("Ignoring empty application key")
            return False

        with self._lock:
            old = self._binding
            if old is not None and old.credential == credential:
                return False
            binding = _Binding(credential)
            self._binding = binding
            if old is not None:
                logger.info("Application key changed, replacing subscription")
                self._worker.submit(lambda: self._teardown(old))
            self._worker.submit(lambda: self._establish(binding))
        return True

    def shutdown(self):
        """Tear down the active subscription, if any."""
        with self._lock:
            old = self._binding
            self._binding = None
        if old is None:
            return
        logger.info("Shutting down subscription for key %s", old.credential)
        self._worker.submit(lambda: self._teardown(old))

    def join(self):
        """Wait for queued teardown/establishment work to finish."""
        self._worker.join()

    def close(self):
        """Shut down and stop the background worker."""
        self.shutdown()
        self._worker.close()

    def _is_active(self, binding: _Binding) -> bool:
        with self._lock:
            return self._binding is binding

    # ── Worker-thread tasks ──

    def _establish(self, binding: _Binding):
        if not self._is_active(binding):
            # Superseded before we got to it; the teardown queued after us is a no-op
            logger.debug("Skipping subscribe for retired key %s", binding.credential)
            return
        try:
            binding.subscription = self._transport.subscribe(
                binding.credential, _BindingListener(self, binding, self._listener))
            logger.info("Subscribed with key %s", binding.credential)
        except Exception as e:
            logger.error("Subscribe failed for key %s: %s", binding.credential, e)

    def _teardown(self, binding: _Binding):
        subscription = binding.subscription
        binding.subscription = None
        if subscription is None:
            return
        try:
            subscription.disconnect()
            logger.info("Unsubscribed key %s", binding.credential)
        except Exception as e:
            logger.warning("Unsubscribe failed for key %s: %s", binding.credential, e)
