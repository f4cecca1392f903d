from portal.events import EventBus
from portal.notifications import NotificationCenter, NotificationLevel


def test_event_bus_delivers_in_registration_order():
    bus: EventBus[str] = EventBus("test")
    received: list[tuple[str, str]] = []
    bus.subscribe(lambda event: received.append(("first", event)))
    bus.subscribe(lambda event: received.append(("second", event)))

    bus.publish("hello")

    assert received == [("first", "hello"), ("second", "hello")]


def test_failing_subscriber_does_not_block_others(caplog):
    bus: EventBus[int] = EventBus("test")
    received: list[int] = []

    def broken(_: int) -> None:
        raise RuntimeError("handler bug")

    bus.subscribe(broken)
    bus.subscribe(received.append)

    bus.publish(7)

    assert received == [7]
    assert "handler bug" in caplog.text


def test_unsubscribe_stops_delivery():
    bus: EventBus[int] = EventBus()
    received: list[int] = []
    unsubscribe = bus.subscribe(received.append)

    bus.publish(1)
    unsubscribe()
    unsubscribe()
    bus.publish(2)

    assert received == [1]
    assert len(bus) == 0


def test_notification_center_publishes_and_tracks_messages(notifications: NotificationCenter):
    seen = []
    notifications.bus.subscribe(seen.append)

    ok = notifications.success("Saved")
    failed = notifications.error("Broken")

    assert [n.level for n in seen] == [NotificationLevel.SUCCESS, NotificationLevel.ERROR]
    assert failed.duration > ok.duration
    assert notifications.active == (ok, failed)

    notifications.remove(ok.id)
    assert notifications.active == (failed,)

    notifications.clear()
    assert notifications.active == ()
