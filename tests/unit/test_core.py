import threading
import time

from playstatus.lib.broadcast import STATUS_UPDATE
from playstatus.lib.models import SongRecord

PAYLOAD = {
    "now_playing": {"id": "1", "name": "Song A", "artist": "Artist",
                    "album": "Album", "starred": True},
    "songs": [{"id": "2", "name": "Song B"}],
}


def test_end_to_end_event(core, transport, indicator, broadcasts) -> None:
    core.start("key-1")
    core.subscriptions.join()

    transport.deliver(PAYLOAD)

    state = core.state
    assert state.playing == SongRecord(id="1", name="Song A", artist="Artist",
                                       album="Album", starred=True)
    assert list(state.queued) == [SongRecord(id="2", name="Song B", artist="",
                                             album="", starred=False)]
    assert indicator.content.title == "Song A"
    assert "Artist" in indicator.content.body
    assert "Album" in indicator.content.body
    assert len(broadcasts) == 1
    assert broadcasts[0] == state.to_dict()


def test_malformed_event_changes_nothing(core, transport, indicator, broadcasts) -> None:
    core.start("key-1")
    core.subscriptions.join()

    transport.deliver({"songs": []})
    transport.deliver({"now_playing": {"id": "1"}})
    transport.deliver("garbage")

    assert core.state is None
    assert indicator.calls == []
    assert broadcasts == []


def test_malformed_event_keeps_previous_state(core, transport, broadcasts) -> None:
    core.start("key-1")
    core.subscriptions.join()
    transport.deliver(PAYLOAD)
    before = core.state

    transport.deliver({"now_playing": None, "songs": []})

    assert core.state is before
    assert len(broadcasts) == 1


def test_start_twice_same_key(core, transport) -> None:
    core.start("key-1")
    core.start("key-1")
    core.subscriptions.join()

    assert transport.calls == [("subscribe", "key-1")]
    assert core.active


def test_start_without_key_stays_idle(core, transport) -> None:
    core.start("")
    core.subscriptions.join()

    assert not core.active
    assert transport.calls == []


def test_migration_keeps_state_until_next_event(core, transport) -> None:
    core.start("key-1")
    core.subscriptions.join()
    transport.deliver(PAYLOAD)
    old_state = core.state

    core.start("key-2")
    core.subscriptions.join()

    assert transport.calls == [
        ("subscribe", "key-1"),
        ("disconnect", "key-1"),
        ("subscribe", "key-2"),
    ]
    assert core.credential == "key-2"
    assert core.state is old_state

    transport.subscriptions[-1].listener.on_event(
        {"now_playing": {"id": "9", "name": "Fresh"}, "songs": []})
    assert core.state.playing.name == "Fresh"


def test_stop_without_start_is_noop(core, transport, indicator) -> None:
    core.stop()
    core.stop()

    assert transport.calls == []
    assert indicator.calls == []
    assert not core.active


def test_stop_tears_down_and_removes_indicator(core, transport, indicator, broadcasts) -> None:
    core.start("key-1")
    core.subscriptions.join()
    transport.deliver(PAYLOAD)

    core.stop()
    core.subscriptions.join()

    assert transport.calls[-1] == ("disconnect", "key-1")
    assert indicator.calls[-1] == ("remove", None)
    assert core.state is None
    assert not core.active

    # Late delivery after stop is ignored
    transport.subscriptions[0].listener.on_event(PAYLOAD)
    assert core.state is None
    assert len(broadcasts) == 1


def test_restart_after_stop(core, transport, indicator) -> None:
    core.start("key-1")
    core.subscriptions.join()
    core.stop()
    core.start("key-1")
    core.subscriptions.join()

    assert transport.calls == [
        ("subscribe", "key-1"),
        ("disconnect", "key-1"),
        ("subscribe", "key-1"),
    ]
    transport.subscriptions[-1].listener.on_event(PAYLOAD)
    assert indicator.calls[-1][0] == "show"


def test_event_while_idle_ignored(core, broadcasts) -> None:
    core.on_event(PAYLOAD)

    assert core.state is None
    assert broadcasts == []


def test_receiver_can_stop_core(core, transport, broadcaster, indicator) -> None:
    stopped = []

    def stop_on_update(payload):
        core.stop()
        stopped.append(payload["now_playing"]["name"])

    broadcaster.register(STATUS_UPDATE, stop_on_update)
    core.start("key-1")
    core.subscriptions.join()

    delivery = threading.Thread(target=transport.deliver, args=(PAYLOAD,))
    delivery.start()
    delivery.join(2)

    assert not delivery.is_alive()
    assert stopped == ["Song A"]
    assert not core.active
    assert indicator.calls[-1] == ("remove", None)


def test_receiver_can_switch_key(core, transport, broadcaster) -> None:
    broadcaster.register(STATUS_UPDATE, lambda payload: core.start("key-2"))
    core.start("key-1")
    core.subscriptions.join()

    delivery = threading.Thread(target=transport.deliver, args=(PAYLOAD,))
    delivery.start()
    delivery.join(2)
    core.subscriptions.join()

    assert not delivery.is_alive()
    assert core.credential == "key-2"
    assert transport.calls[-1] == ("subscribe", "key-2")


def test_concurrent_events_keep_state_and_indicator_together(
        core, transport, indicator, broadcasts) -> None:
    mismatches = []

    def checked(original):
        def call(content):
            time.sleep(0.0005)
            if core.state.playing.name != content.title:
                mismatches.append((core.state.playing.name, content.title))
            original(content)
        return call

    indicator.show = checked(indicator.show)
    indicator.update = checked(indicator.update)

    core.start("key-1")
    core.subscriptions.join()

    def deliver_many(worker_id):
        for i in range(20):
            core.on_event({"now_playing": {"id": f"{worker_id}-{i}",
                                           "name": f"Song {worker_id}-{i}"},
                           "songs": []})

    threads = [threading.Thread(target=deliver_many, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10)

    assert mismatches == []
    assert len(broadcasts) == 160
    assert indicator.content.title == core.state.playing.name
