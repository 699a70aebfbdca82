import threading

import pytest

from playstatus.lib import config
from playstatus.lib.broadcast import STATUS_UPDATE, Broadcaster
from playstatus.lib.core import StatusCore
from playstatus.lib.notifier import StateNotifier


class FakeSubscription:
    def __init__(self, transport, credential, listener):
        self.transport = transport
        self.credential = credential
        self.listener = listener
        self.connected = True

    def disconnect(self):
        self.connected = False
        self.transport.calls.append(("disconnect", self.credential))


class FakeTransport:
    """Records subscribe/disconnect calls in order."""

    def __init__(self):
        self.calls = []
        self.subscriptions = []
        self.threads = set()

    def subscribe(self, credential, listener):
        self.threads.add(threading.current_thread().name)
        self.calls.append(("subscribe", credential))
        sub = FakeSubscription(self, credential, listener)
        self.subscriptions.append(sub)
        return sub

    @property
    def live(self):
        return [s for s in self.subscriptions if s.connected]

    def deliver(self, payload):
        """Push a payload through every subscription the transport ever handed out."""
        for sub in self.subscriptions:
            sub.listener.on_event(payload)


class FakeIndicator:
    def __init__(self):
        self.calls = []
        self.content = None

    def show(self, content):
        self.calls.append(("show", content))
        self.content = content

    def update(self, content):
        self.calls.append(("update", content))
        self.content = content

    def remove(self):
        self.calls.append(("remove", None))
        self.content = None


@pytest.fixture(autouse=True)
def empty_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "_config", {})
    monkeypatch.delenv("NOTIFY_SOCKET", raising=False)
    monkeypatch.delenv("PLAY_APPLICATION_KEY", raising=False)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def indicator() -> FakeIndicator:
    return FakeIndicator()


@pytest.fixture
def broadcasts(broadcaster: Broadcaster) -> list:
    received = []
    broadcaster.register(STATUS_UPDATE, received.append)
    return received


@pytest.fixture
def broadcaster() -> Broadcaster:
    return Broadcaster()


@pytest.fixture
def notifier(broadcaster: Broadcaster, indicator: FakeIndicator) -> StateNotifier:
    return StateNotifier(broadcaster, indicator)


@pytest.fixture
def core(transport: FakeTransport, notifier: StateNotifier):
    status_core = StatusCore(transport, notifier)
    yield status_core
    status_core.close()
